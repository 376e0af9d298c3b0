"""Console output for the CLI.

Result tables go through Rich on a TTY and through ``render_text`` otherwise
(or always, with DUCKVERBS_PLAIN=1).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ..query.engine import ResultTable
from ..storage.schema import Schema
from .reporting import numeric_columns, render_text, result_cells, schema_table


def plain_requested() -> bool:
    v = os.environ.get("DUCKVERBS_PLAIN", "").strip().lower()
    return v in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class UI:
    console: Optional[Console] = None

    @classmethod
    def create(cls) -> "UI":
        if plain_requested() or not click.get_text_stream("stdout").isatty():
            return cls()
        return cls(console=Console())

    def rule(self, title: str) -> None:
        if self.console is not None:
            self.console.rule(title)
        else:
            click.echo(f"\n== {title} ==")

    def result(self, result: ResultTable, title: Optional[str] = None) -> None:
        if self.console is None:
            if title:
                click.echo(title)
            click.echo(render_text(result))
            return

        t = Table(title=title, caption=f"{result.num_rows} rows")
        for name, numeric in zip(result.column_names, numeric_columns(result)):
            t.add_column(name, justify="right" if numeric else "left", overflow="fold")
        for row in result_cells(result):
            t.add_row(*row)
        self.console.print(t)

    def schema(self, schema: Schema, title: Optional[str] = None) -> None:
        self.result(schema_table(schema), title=title)

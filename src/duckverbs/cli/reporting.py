"""Turn result tables and schemas into printable cells."""

from __future__ import annotations

import datetime as dt
from typing import Any, List

import pyarrow as pa

from ..query.engine import ResultTable
from ..storage.schema import Schema


def format_cell(v: Any) -> str:
    if v is None:
        return "·"  # missing
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, float):
        return f"{v:,.4f}".rstrip("0").rstrip(".")
    if isinstance(v, int):
        return f"{v:,}"
    if isinstance(v, dt.datetime):
        return v.isoformat(sep=" ")
    return str(v)


def numeric_columns(result: ResultTable) -> List[bool]:
    """Per column: right-align it (integer, floating or decimal values)."""
    return [
        pa.types.is_integer(f.type)
        or pa.types.is_floating(f.type)
        or pa.types.is_decimal(f.type)
        for f in result.table.schema
    ]


def result_cells(result: ResultTable) -> List[List[str]]:
    columns = [result.column(c) for c in result.column_names]
    return [[format_cell(v) for v in row] for row in zip(*columns)]


def schema_table(schema: Schema) -> ResultTable:
    """One row per column: name, semantic type and DuckDB type."""
    return ResultTable(
        pa.table(
            {
                "column": [c.name for c in schema],
                "type": [c.semantic_type.value for c in schema],
                "engine_type": [c.engine_type for c in schema],
            }
        )
    )


def render_text(result: ResultTable) -> str:
    """Fixed-width rendering with numbers right-aligned and a row count."""
    if result.num_rows == 0:
        return "(no rows)"

    names = result.column_names
    numeric = numeric_columns(result)
    cells = result_cells(result)
    widths = [
        max([len(name)] + [len(row[i]) for row in cells])
        for i, name in enumerate(names)
    ]

    def line(values: List[str]) -> str:
        return "  ".join(
            v.rjust(widths[i]) if numeric[i] else v.ljust(widths[i])
            for i, v in enumerate(values)
        ).rstrip()

    out = [line(names), "  ".join("-" * w for w in widths)]
    out.extend(line(row) for row in cells)
    noun = "row" if result.num_rows == 1 else "rows"
    out.append(f"({result.num_rows} {noun})")
    return "\n".join(out)

from __future__ import annotations

from pathlib import Path

import pyarrow as pa
from click.testing import CliRunner

from duckverbs.cli.main import cli
from duckverbs.cli.reporting import render_text, schema_table
from duckverbs.query.engine import ResultTable
from duckverbs.storage.schema import ColumnSchema, Schema, SemanticType


def _csv(tmp_path: Path) -> Path:
    path = tmp_path / "people.csv"
    path.write_text("id,name,score\n1,ann,1.5\n2,bob,2.25\n")
    return path


def test_describe_prints_schema_and_preview(tmp_path: Path) -> None:
    path = _csv(tmp_path)
    runner = CliRunner()
    res = runner.invoke(
        cli, ["--data-dir", str(tmp_path / "data"), "describe", str(path)]
    )
    assert res.exit_code == 0, res.output
    assert "Schema of people.csv" in res.output
    assert "integer" in res.output
    assert "float" in res.output
    assert "bob" in res.output


def test_sql_command_registers_named_views(tmp_path: Path) -> None:
    path = _csv(tmp_path)
    runner = CliRunner()
    res = runner.invoke(
        cli,
        [
            "sql",
            "SELECT name, score * 2 AS doubled FROM people ORDER BY id",
            "--csv",
            f"people={path}",
        ],
    )
    assert res.exit_code == 0, res.output
    assert "✓ Registered people" in res.output
    assert "doubled" in res.output
    assert "4.5" in res.output


def test_describe_missing_file_aborts_with_error(tmp_path: Path) -> None:
    runner = CliRunner()
    res = runner.invoke(cli, ["describe", str(tmp_path / "nope.parquet")])
    assert res.exit_code != 0
    assert "✗ Error" in res.output


def test_sql_error_aborts(tmp_path: Path) -> None:
    runner = CliRunner()
    res = runner.invoke(cli, ["sql", "SELECT * FROM missing_table"])
    assert res.exit_code != 0
    assert "✗ Error" in res.output


def test_render_text_aligns_numbers_and_marks_missing() -> None:
    result = ResultTable(
        pa.table({"name": ["ann", None], "trips": [1500, 2], "avg": [1.5, 2.0]})
    )
    lines = render_text(result).splitlines()

    assert lines[0].split() == ["name", "trips", "avg"]
    assert lines[2].split() == ["ann", "1,500", "1.5"]
    assert lines[3].split() == ["·", "2", "2"]
    # numeric columns are right-aligned under their header
    assert lines[3].index("2") == lines[0].index("trips") + len("trips") - 1
    assert lines[-1] == "(2 rows)"
    assert render_text(ResultTable(pa.table({"a": pa.array([], pa.int64())}))) == "(no rows)"


def test_schema_table_lists_semantic_and_engine_types() -> None:
    schema = Schema(
        (
            ColumnSchema.declared("Area", SemanticType.CATEGORICAL),
            ColumnSchema("count", SemanticType.INTEGER, "BIGINT"),
        )
    )
    assert schema_table(schema).to_pylist() == [
        {"column": "Area", "type": "categorical", "engine_type": "VARCHAR"},
        {"column": "count", "type": "integer", "engine_type": "BIGINT"},
    ]

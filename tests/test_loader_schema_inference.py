from __future__ import annotations

from pathlib import Path

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from duckverbs.errors import FormatError, SchemaError
from duckverbs.query.engine import Engine
from duckverbs.storage.schema import FileFormat, SemanticType, semantic_type_of


def _write_codes_csv(path: Path) -> Path:
    path.write_text(
        "Area,Year,count,when\n"
        "01,2018,100,2018-03-06\n"
        "02,2018,..C,2018-03-06\n"
        "13,2013,42,2013-03-05\n"
    )
    return path


def test_csv_inference_delegated_to_engine(tmp_path: Path) -> None:
    path = _write_codes_csv(tmp_path / "codes.csv")
    with Engine() as engine:
        ref = engine.load(path, "csv")

    assert ref.name == "codes"
    assert ref.format is FileFormat.CSV
    assert ref.schema.names == ["Area", "Year", "count", "when"]
    assert ref.schema.get("Year").semantic_type is SemanticType.INTEGER
    assert ref.schema.get("count").semantic_type is SemanticType.STRING
    assert ref.schema.get("when").semantic_type is SemanticType.DATE


def test_csv_schema_hint_keeps_leading_zero_codes(tmp_path: Path) -> None:
    path = _write_codes_csv(tmp_path / "codes.csv")
    with Engine() as engine:
        q = engine.scan(path, "csv", schema={"Area": "categorical"}, name="codes")
        assert q.schema.get("Area").semantic_type is SemanticType.CATEGORICAL
        assert q.schema.get("Area").engine_type == "VARCHAR"
        assert q.collect().column("Area") == ["01", "02", "13"]


def test_parquet_schema_hint_casts_column(tmp_path: Path) -> None:
    path = tmp_path / "trips.parquet"
    pq.write_table(pa.table({"zone": [1, 2], "fare": [3.5, 4.0]}), path)
    with Engine() as engine:
        q = engine.scan(path, FileFormat.PARQUET, schema={"zone": SemanticType.STRING})
        assert q.schema.get("zone").semantic_type is SemanticType.STRING
        assert q.schema.get("fare").semantic_type is SemanticType.FLOAT
        assert q.collect().column("zone") == ["1", "2"]


def test_loaded_dataset_is_available_to_raw_sql(tmp_path: Path) -> None:
    path = _write_codes_csv(tmp_path / "codes.csv")
    with Engine() as engine:
        engine.load(path, "csv", schema={"Area": "categorical"}, name="census")
        result = engine.sql(
            'SELECT "Area" FROM census WHERE "Year" = ? ORDER BY "Area"', [2018]
        )
    assert result.column("Area") == ["01", "02"]


def test_format_mismatch_and_unreadable_files_raise_format_error(
    tmp_path: Path,
) -> None:
    csv_path = _write_codes_csv(tmp_path / "codes.csv")
    parquet_path = tmp_path / "t.parquet"
    pq.write_table(pa.table({"a": [1]}), parquet_path)
    empty = tmp_path / "empty.csv"
    empty.write_text("")

    with Engine() as engine:
        with pytest.raises(FormatError):
            engine.load(csv_path, "parquet")
        with pytest.raises(FormatError):
            engine.load(parquet_path, "csv")
        with pytest.raises(FormatError):
            engine.load(tmp_path / "nope.csv", "csv")
        with pytest.raises(FormatError):
            engine.load(empty, "csv")
        with pytest.raises(ValueError):
            engine.load(csv_path, "json")


def test_schema_hint_for_unknown_column_raises_schema_error(tmp_path: Path) -> None:
    path = _write_codes_csv(tmp_path / "codes.csv")
    with Engine() as engine:
        with pytest.raises(SchemaError):
            engine.load(path, "csv", schema={"Region": "categorical"})
        with pytest.raises(SchemaError):
            engine.load(path, "csv", schema={"Area": "postcode"})


def test_dataset_reference_is_immutable(tmp_path: Path) -> None:
    path = _write_codes_csv(tmp_path / "codes.csv")
    with Engine() as engine:
        ref = engine.load(path, "csv")
    with pytest.raises(AttributeError):
        ref.name = "other"  # type: ignore[misc]


@pytest.mark.parametrize(
    "engine_type,expected",
    [
        ("BIGINT", SemanticType.INTEGER),
        ("INTEGER", SemanticType.INTEGER),
        ("DOUBLE", SemanticType.FLOAT),
        ("DECIMAL(18,3)", SemanticType.FLOAT),
        ("VARCHAR", SemanticType.STRING),
        ("DATE", SemanticType.DATE),
        ("TIMESTAMP WITH TIME ZONE", SemanticType.TIMESTAMP),
        ("TIMESTAMP_NS", SemanticType.TIMESTAMP),
        ("BOOLEAN", SemanticType.BOOLEAN),
        ("INTEGER[]", SemanticType.OTHER),
    ],
)
def test_semantic_type_mapping(engine_type: str, expected: SemanticType) -> None:
    assert semantic_type_of(engine_type) is expected

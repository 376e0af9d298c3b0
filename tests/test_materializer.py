from __future__ import annotations

import threading
import time
from pathlib import Path
from unittest.mock import MagicMock

import duckdb
import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from duckverbs.config import Config
from duckverbs.errors import (
    QueryCancelledError,
    QueryError,
    ResourceExhaustedError,
)
from duckverbs.query.engine import CancellationToken, Engine, collect, preview
from duckverbs.query.expr import col
from duckverbs.query.lazy import ExecutionPolicy
from duckverbs.query.ops import desc, max_, sum_
from duckverbs.storage.schema import (
    ColumnSchema,
    DatasetReference,
    FileFormat,
    Schema,
    SemanticType,
)


def _numbers(tmp_path: Path, n: int = 100) -> Path:
    path = tmp_path / "numbers.parquet"
    pq.write_table(
        pa.table({"i": list(range(n)), "bucket": [i % 3 for i in range(n)]}),
        path,
    )
    return path


def test_preview_is_bounded(tmp_path: Path) -> None:
    with Engine() as engine:
        q = engine.scan(_numbers(tmp_path), "parquet")
        assert preview(q, 5).num_rows == 5
        assert q.preview(0).num_rows == 0
        assert q.filter(col("i") < 3).preview(5).num_rows == 3
        with pytest.raises(ValueError):
            q.preview(-1)


def test_preview_follows_sort_order(tmp_path: Path) -> None:
    with Engine() as engine:
        q = engine.scan(_numbers(tmp_path), "parquet").sort(desc("i"))
        assert q.preview(5).column("i") == [99, 98, 97, 96, 95]
        # Order survives a later filter / projection.
        q2 = q.filter(col("bucket") == 0).project(["i"])
        assert q2.preview(3).column("i") == [99, 96, 93]


def test_same_chain_twice_gives_identical_results(tmp_path: Path) -> None:
    path = _numbers(tmp_path)

    def build(engine: Engine):
        return (
            engine.table("numbers")
            .filter(col("i") >= 10)
            .aggregate(group_by="bucket", reducers=[sum_("i", "total")])
            .sort("bucket")
        )

    with Engine() as engine:
        engine.load(path, "parquet")
        q1, q2 = build(engine), build(engine)
        assert q1.to_sql() == q2.to_sql()
        r1, r2 = collect(q1), q2.collect()
        assert r1 == r2
        assert r1.table.equals(r2.table)
        assert r1 is not r2


def test_deferred_query_does_not_touch_storage_until_collect(tmp_path: Path) -> None:
    path = _numbers(tmp_path)
    with Engine() as engine:
        base = engine.scan(path, "parquet")
        path.unlink()
        q = base.filter(col("i") > 1).sort("i")  # still fine: nothing executed
        assert q.result is None
        with pytest.raises(QueryError):
            q.collect()


def test_eager_policy_materializes_on_construction(tmp_path: Path) -> None:
    with Engine() as engine:
        engine.load(_numbers(tmp_path, n=10), "parquet")
        q = engine.table("numbers", policy="eager")
        assert q.policy is ExecutionPolicy.EAGER
        assert q.result is not None and q.result.num_rows == 10

        filtered = q.filter(col("i") < 4)
        assert filtered.result.num_rows == 4
        assert filtered.with_policy("deferred").result is None


def test_out_of_memory_surfaces_as_resource_exhausted(tmp_path: Path) -> None:
    with Engine() as engine:
        q = engine.scan(_numbers(tmp_path), "parquet")
        real_conn = engine.conn
        engine.conn = MagicMock()
        engine.conn.execute.side_effect = duckdb.OutOfMemoryException(
            "Out of Memory Error: failed to allocate"
        )
        try:
            with pytest.raises(ResourceExhaustedError):
                q.collect()
        finally:
            engine.conn = real_conn
        # Recoverable: a bounded preview still works.
        assert q.preview(5).num_rows == 5


def test_cancellation(tmp_path: Path) -> None:
    with Engine() as engine:
        q = engine.scan(_numbers(tmp_path), "parquet")

        token = CancellationToken()
        token.cancel()
        with pytest.raises(QueryCancelledError):
            q.collect(cancel_token=token)

        real_conn = engine.conn
        engine.conn = MagicMock()
        engine.conn.execute.side_effect = duckdb.InterruptException("INTERRUPT")
        try:
            with pytest.raises(QueryCancelledError):
                q.collect(cancel_token=CancellationToken())
        finally:
            engine.conn = real_conn

        assert q.collect(cancel_token=CancellationToken()).num_rows == 100


def test_raw_sql_entry_point(tmp_path: Path) -> None:
    with Engine(Config(memory_limit="1GB", threads=1)) as engine:
        engine.sql("CREATE TABLE t AS SELECT 1 AS a")
        assert engine.sql("SELECT a + 1 AS b FROM t").to_pylist() == [{"b": 2}]
        with pytest.raises(QueryError):
            engine.sql("SELECT * FROM does_not_exist")


def test_queries_are_bound_to_their_engine(tmp_path: Path) -> None:
    path = _numbers(tmp_path)
    with Engine() as e1, Engine() as e2:
        q = e1.scan(path, "parquet")
        with pytest.raises(ValueError):
            e2.collect(q)


def test_order_survives_mutating_or_dropping_the_sort_key(tmp_path: Path) -> None:
    path = tmp_path / "kv.csv"
    path.write_text("k,v\nb,2\nc,3\na,1\n")
    with Engine() as engine:
        q = engine.scan(path, "csv").sort("v")

        negated = q.mutate(v=-col("v"))
        result = negated.collect()
        assert result.column("k") == ["a", "b", "c"]
        assert result.column("v") == [-1, -2, -3]
        assert result.column_names == ["k", "v"]
        assert negated.preview(1).column("k") == ["a"]

        dropped = q.project(["k"]).filter(col("k") != "b")
        assert dropped.collect().column_names == ["k"]
        assert dropped.collect().column("k") == ["a", "c"]

        # A new sort replaces the carried key.
        resorted = negated.sort("v")
        assert resorted.collect().column("k") == ["c", "b", "a"]
        assert resorted.collect().column_names == ["k", "v"]


def test_cancel_interrupts_a_running_query() -> None:
    slow = DatasetReference(
        name="slow",
        path=Path("range"),
        format=FileFormat.PARQUET,
        schema=Schema((ColumnSchema.declared("x", SemanticType.INTEGER),)),
        source_sql="SELECT a.range AS x FROM range(1000000) a, range(1000000) b",
    )
    with Engine() as engine:
        q = engine.table(slow).aggregate(reducers=[max_("x", "top")])
        token = CancellationToken()
        timer = threading.Timer(0.5, token.cancel)
        started = time.monotonic()
        timer.start()
        try:
            with pytest.raises(QueryCancelledError):
                q.collect(cancel_token=token)
        finally:
            timer.cancel()
            timer.join()

        assert token.cancelled
        assert time.monotonic() - started < 30
        # The connection stays usable.
        assert engine.sql("SELECT 1 AS one").to_pylist() == [{"one": 1}]


def test_explain_maps_engine_errors(tmp_path: Path) -> None:
    path = _numbers(tmp_path)
    with Engine() as engine:
        q = engine.scan(path, "parquet").filter(col("i") > 3)
        assert "FILTER" in engine.explain(q).upper()
        path.unlink()
        with pytest.raises(QueryError):
            engine.explain(q)

"""DuckDB engine wrapper: loading, raw SQL and materialization of lazy queries."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import duckdb
import pandas as pd
import pyarrow as pa

from ..config import Config
from ..errors import QueryCancelledError, QueryError, ResourceExhaustedError
from ..storage.loader import Loader
from ..storage.schema import DatasetReference, FileFormat, SemanticType
from .lazy import ExecutionPolicy, LazyQuery
from .sqltext import quote_literal

# Unmatched right-side values of a left join (SQL NULL).
MISSING = None


class ResultTable:
    """A materialized, in-memory result backed by a pyarrow Table."""

    def __init__(self, table: pa.Table):
        self.table = table

    @property
    def num_rows(self) -> int:
        return self.table.num_rows

    @property
    def column_names(self) -> List[str]:
        return list(self.table.column_names)

    def __len__(self) -> int:
        return self.table.num_rows

    def column(self, name: str) -> List[Any]:
        return self.table.column(name).to_pylist()

    def to_pylist(self) -> List[Dict[str, Any]]:
        return self.table.to_pylist()

    def to_pandas(self) -> pd.DataFrame:
        return self.table.to_pandas()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResultTable):
            return NotImplemented
        return self.table.equals(other.table)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"<ResultTable {self.num_rows} rows × {len(self.column_names)} cols>"


class CancellationToken:
    """Lets another thread interrupt a running ``collect``."""

    def __init__(self) -> None:
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._conn: Optional[duckdb.DuckDBPyConnection] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()
        with self._lock:
            if self._conn is not None:
                self._conn.interrupt()

    def _bind(self, conn: Optional[duckdb.DuckDBPyConnection]) -> None:
        with self._lock:
            self._conn = conn


class Engine:
    """Owns a DuckDB connection and the datasets loaded into it."""

    def __init__(self, config: Optional[Config] = None, database: str = ":memory:"):
        """Initialize the engine."""
        self.config = config or Config()
        self.conn = duckdb.connect(database)
        if self.config.memory_limit:
            self.conn.execute(
                f"SET memory_limit = {quote_literal(self.config.memory_limit)}"
            )
        if self.config.threads:
            self.conn.execute(f"SET threads = {int(self.config.threads)}")

        self.loader = Loader(self.conn)
        self.datasets: Dict[str, DatasetReference] = {}

    # -------------------------
    # Loading
    # -------------------------
    def load(
        self,
        path: Union[str, Path],
        format: Union[str, FileFormat],
        schema: Optional[Dict[str, Union[str, SemanticType]]] = None,
        name: Optional[str] = None,
    ) -> DatasetReference:
        """Describe a CSV/Parquet file and register it under ``name``."""
        ref = self.loader.load(path, format, schema=schema, name=name)
        self.datasets[ref.name] = ref
        return ref

    def table(
        self,
        dataset: Union[str, DatasetReference],
        policy: Union[str, ExecutionPolicy] = ExecutionPolicy.DEFERRED,
    ) -> LazyQuery:
        """Start a lazy query over a loaded dataset."""
        if isinstance(dataset, str):
            if dataset not in self.datasets:
                raise KeyError(f"No dataset named {dataset!r} has been loaded")
            dataset = self.datasets[dataset]
        return LazyQuery(
            engine=self, base=dataset, policy=ExecutionPolicy(policy)
        )

    def scan(
        self,
        path: Union[str, Path],
        format: Union[str, FileFormat],
        schema: Optional[Dict[str, Union[str, SemanticType]]] = None,
        name: Optional[str] = None,
    ) -> LazyQuery:
        """``load`` followed by ``table``."""
        return self.table(self.load(path, format, schema=schema, name=name))

    # -------------------------
    # Execution
    # -------------------------
    def sql(
        self, text: str, params: Optional[Sequence[Any]] = None
    ) -> ResultTable:
        """Run raw SQL (loaded datasets are available as views)."""
        return self._execute(text, params)

    def collect(
        self,
        query: LazyQuery,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ResultTable:
        """Fully materialize ``query``.

        Raises ResourceExhaustedError if the result does not fit in memory;
        retrying with ``preview`` is the intended recovery.
        """
        self._check_owner(query)
        return self._execute(query.to_sql(), cancel_token=cancel_token)

    def preview(self, query: LazyQuery, n: int = 10) -> ResultTable:
        """Materialize at most ``n`` rows, honouring any sort in the chain."""
        self._check_owner(query)
        if n < 0:
            raise ValueError(f"preview size must be >= 0, got {n}")
        return self._execute(query.to_sql(limit=n))

    def explain(self, query: LazyQuery) -> str:
        """DuckDB's physical plan for ``query`` (does not run it)."""
        self._check_owner(query)
        plan = self._execute(f"EXPLAIN {query.to_sql()}")
        return "\n".join(str(v) for v in plan.column(plan.column_names[-1]))

    def _check_owner(self, query: LazyQuery) -> None:
        if query.engine is not self:
            raise ValueError("Query belongs to a different engine")

    def _execute(
        self,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ResultTable:
        if cancel_token is not None:
            if cancel_token.cancelled:
                raise QueryCancelledError("Query was cancelled before it started")
            cancel_token._bind(self.conn)
        try:
            if params is None:
                result = self.conn.execute(sql)
            else:
                result = self.conn.execute(sql, params)
            if result.description is None:
                # DDL and other statements without a result set
                return ResultTable(pa.table({}))
            return ResultTable(result.to_arrow_table())
        except duckdb.OutOfMemoryException as e:
            raise ResourceExhaustedError(
                f"Result does not fit in memory: {e}; retry with preview()"
            ) from e
        except MemoryError as e:
            raise ResourceExhaustedError(
                "Result does not fit in memory; retry with preview()"
            ) from e
        except duckdb.InterruptException as e:
            raise QueryCancelledError("Query was cancelled") from e
        except duckdb.Error as e:
            raise QueryError(f"Query failed: {e}\nSQL: {sql}") from e
        finally:
            if cancel_token is not None:
                cancel_token._bind(None)

    def close(self) -> None:
        """Close DuckDB connection."""
        self.conn.close()

    def __enter__(self) -> "Engine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def collect(
    query: LazyQuery, cancel_token: Optional[CancellationToken] = None
) -> ResultTable:
    return query.engine.collect(query, cancel_token=cancel_token)


def preview(query: LazyQuery, n: int = 10) -> ResultTable:
    return query.engine.preview(query, n)

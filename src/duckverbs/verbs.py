"""Everything a notebook needs in one import.

    from duckverbs.verbs import Engine, col, desc, sum_
"""

from .config import Config
from .errors import (
    DuckverbsError,
    FilesystemError,
    FormatError,
    NetworkError,
    QueryCancelledError,
    QueryError,
    ResourceExhaustedError,
    SchemaError,
)
from .fetch.fetcher import Download, ensure_all, ensure_local, extract_archive
from .query.engine import (
    MISSING,
    CancellationToken,
    Engine,
    ResultTable,
    collect,
    preview,
)
from .query.expr import col, lit
from .query.lazy import ExecutionPolicy, LazyQuery
from .query.ops import asc, count, desc, max_, mean, min_, n_distinct, sum_
from .storage.schema import DatasetReference, FileFormat, SemanticType

__all__ = [
    "CancellationToken",
    "Config",
    "DatasetReference",
    "Download",
    "DuckverbsError",
    "Engine",
    "ExecutionPolicy",
    "FileFormat",
    "FilesystemError",
    "FormatError",
    "LazyQuery",
    "MISSING",
    "NetworkError",
    "QueryCancelledError",
    "QueryError",
    "ResourceExhaustedError",
    "ResultTable",
    "SchemaError",
    "SemanticType",
    "asc",
    "col",
    "collect",
    "count",
    "desc",
    "ensure_all",
    "ensure_local",
    "extract_archive",
    "lit",
    "max_",
    "mean",
    "min_",
    "n_distinct",
    "preview",
    "sum_",
]

"""Dataset references and column schemas."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from ..errors import SchemaError


class FileFormat(str, Enum):
    CSV = "csv"
    PARQUET = "parquet"

    @classmethod
    def parse(cls, value: "str | FileFormat") -> "FileFormat":
        if isinstance(value, FileFormat):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unsupported format: {value!r} (expected csv or parquet)"
            ) from None


class SemanticType(str, Enum):
    """Logical column types, independent of the engine's physical types."""

    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    CATEGORICAL = "categorical"  # code column, kept as text
    DATE = "date"
    TIMESTAMP = "timestamp"
    BOOLEAN = "boolean"
    OTHER = "other"

    @property
    def engine_type(self) -> str:
        """DuckDB type used when a column is declared with this semantic type."""
        return _ENGINE_TYPES[self]

    @property
    def is_numeric(self) -> bool:
        return self in (SemanticType.INTEGER, SemanticType.FLOAT)


_ENGINE_TYPES = {
    SemanticType.INTEGER: "BIGINT",
    SemanticType.FLOAT: "DOUBLE",
    SemanticType.STRING: "VARCHAR",
    SemanticType.CATEGORICAL: "VARCHAR",
    SemanticType.DATE: "DATE",
    SemanticType.TIMESTAMP: "TIMESTAMP",
    SemanticType.BOOLEAN: "BOOLEAN",
    SemanticType.OTHER: "VARCHAR",
}

_INTEGER_TYPES = {
    "TINYINT",
    "SMALLINT",
    "INTEGER",
    "BIGINT",
    "HUGEINT",
    "UTINYINT",
    "USMALLINT",
    "UINTEGER",
    "UBIGINT",
    "UHUGEINT",
}
_FLOAT_TYPES = {"FLOAT", "DOUBLE", "REAL"}


def semantic_type_of(engine_type: str) -> SemanticType:
    """Map a DuckDB type name (as reported by DESCRIBE) to a SemanticType."""
    t = engine_type.strip().upper()
    base = re.split(r"[(\s]", t, maxsplit=1)[0]
    if base in _INTEGER_TYPES:
        return SemanticType.INTEGER
    if base in _FLOAT_TYPES or base == "DECIMAL":
        return SemanticType.FLOAT
    if base in ("VARCHAR", "TEXT", "STRING"):
        return SemanticType.STRING
    if base == "DATE":
        return SemanticType.DATE
    if base.startswith("TIMESTAMP"):
        return SemanticType.TIMESTAMP
    if base in ("BOOLEAN", "BOOL"):
        return SemanticType.BOOLEAN
    return SemanticType.OTHER


@dataclass(frozen=True)
class ColumnSchema:
    name: str
    semantic_type: SemanticType
    engine_type: str

    @classmethod
    def declared(cls, name: str, semantic_type: SemanticType) -> "ColumnSchema":
        return cls(name, semantic_type, semantic_type.engine_type)


@dataclass(frozen=True)
class Schema:
    """Ordered, immutable collection of column schemas."""

    columns: Tuple[ColumnSchema, ...]

    def __post_init__(self) -> None:
        # DuckDB identifiers are case-insensitive, even when quoted.
        seen = set()
        for c in self.columns:
            if c.name.lower() in seen:
                raise SchemaError(f"Duplicate column name: {c.name}")
            seen.add(c.name.lower())

    def __iter__(self) -> Iterator[ColumnSchema]:
        return iter(self.columns)

    def __len__(self) -> int:
        return len(self.columns)

    def __contains__(self, name: object) -> bool:
        return any(c.name == name for c in self.columns)

    @property
    def names(self) -> List[str]:
        return [c.name for c in self.columns]

    def get(self, name: str) -> ColumnSchema:
        for c in self.columns:
            if c.name == name:
                return c
        raise SchemaError(
            f"Unknown column {name!r}; available: {', '.join(self.names)}"
        )

    def require(self, names, context: str = "query") -> None:
        missing = [n for n in names if n not in self]
        if missing:
            raise SchemaError(
                f"{context} references undeclared column(s) "
                f"{', '.join(repr(m) for m in missing)}; "
                f"available: {', '.join(self.names)}"
            )

    def to_dict(self) -> Dict[str, str]:
        return {c.name: c.semantic_type.value for c in self.columns}


@dataclass(frozen=True)
class DatasetReference:
    """A loaded dataset: logical name, source file, format and schema."""

    name: str
    path: Path
    format: FileFormat
    schema: Schema
    source_sql: str  # SELECT statement producing the typed rows

    def __str__(self) -> str:
        return f"{self.name} ({self.format.value}: {self.path})"


def parse_schema_hint(
    hint: Optional[Dict[str, "str | SemanticType"]],
) -> Dict[str, SemanticType]:
    if not hint:
        return {}
    out: Dict[str, SemanticType] = {}
    for name, t in hint.items():
        try:
            out[name] = t if isinstance(t, SemanticType) else SemanticType(t)
        except ValueError:
            raise SchemaError(
                f"Unknown semantic type {t!r} for column {name!r}"
            ) from None
    return out

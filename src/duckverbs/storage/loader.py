"""Point DuckDB at CSV / Parquet files and describe them.

Schema inference is delegated to DuckDB (``DESCRIBE`` over the reader, which
only samples the file); nothing is read into Python memory here.
"""

import re
from pathlib import Path
from typing import Dict, List, Optional, Union

import duckdb

from ..errors import FormatError, SchemaError
from ..query.sqltext import quote_ident, quote_str
from .schema import (
    ColumnSchema,
    DatasetReference,
    FileFormat,
    Schema,
    SemanticType,
    parse_schema_hint,
    semantic_type_of,
)

PARQUET_MAGIC = b"PAR1"


def default_dataset_name(path: Path) -> str:
    """Identifier-safe name derived from the file name."""
    name = re.sub(r"\W+", "_", path.stem).strip("_").lower()
    if not name or name[0].isdigit():
        name = f"t_{name}"
    return name


class Loader:
    """Creates DatasetReferences (and matching views) on a DuckDB connection."""

    def __init__(self, conn: duckdb.DuckDBPyConnection):
        self.conn = conn

    def load(
        self,
        path: Union[str, Path],
        format: Union[str, FileFormat],
        schema: Optional[Dict[str, Union[str, SemanticType]]] = None,
        name: Optional[str] = None,
    ) -> DatasetReference:
        """
        Describe a local file and register it as a view.

        Args:
            path: Local CSV or Parquet file
            format: "csv" or "parquet"
            schema: Optional column → semantic type hint overriding inference
            name: Logical dataset name (defaults to the file stem)

        Returns:
            An immutable DatasetReference
        """
        path_obj = Path(path)
        fmt = FileFormat.parse(format)
        hints = parse_schema_hint(schema)
        dataset_name = name or default_dataset_name(path_obj)

        self._check_file(path_obj, fmt)

        # Describe once untyped so hint columns can be validated up front.
        inferred = self._describe(
            self._reader_sql(path_obj, fmt, {}), path_obj, fmt
        )
        inferred_names = [c for c, _ in inferred]
        unknown = [c for c in hints if c not in inferred_names]
        if unknown:
            raise SchemaError(
                f"Schema hint names column(s) not in {path_obj.name}: "
                f"{', '.join(unknown)}"
            )

        if fmt is FileFormat.CSV:
            source_sql = self._reader_sql(path_obj, fmt, hints)
        else:
            source_sql = self._cast_sql(
                self._reader_sql(path_obj, fmt, {}), hints
            )

        described = (
            self._describe(source_sql, path_obj, fmt) if hints else inferred
        )
        columns = []
        for col_name, engine_type in described:
            semantic = hints.get(col_name) or semantic_type_of(engine_type)
            columns.append(ColumnSchema(col_name, semantic, engine_type))

        ref = DatasetReference(
            name=dataset_name,
            path=path_obj,
            format=fmt,
            schema=Schema(tuple(columns)),
            source_sql=source_sql,
        )
        self.conn.execute(
            f"CREATE OR REPLACE VIEW {quote_ident(dataset_name)} AS {source_sql}"
        )
        return ref

    def _check_file(self, path: Path, fmt: FileFormat) -> None:
        if not path.is_file():
            raise FormatError(f"{path} does not exist or is not a file")
        try:
            with path.open("rb") as f:
                head = f.read(4)
        except OSError as e:
            raise FormatError(f"Cannot read {path}: {e}") from e
        if not head:
            raise FormatError(f"{path} is empty")
        if fmt is FileFormat.PARQUET and head != PARQUET_MAGIC:
            raise FormatError(f"{path} is not a Parquet file")
        if fmt is FileFormat.CSV and head == PARQUET_MAGIC:
            raise FormatError(f"{path} looks like Parquet, not CSV")

    def _reader_sql(
        self, path: Path, fmt: FileFormat, hints: Dict[str, SemanticType]
    ) -> str:
        if fmt is FileFormat.PARQUET:
            return f"SELECT * FROM read_parquet({quote_str(str(path))})"

        args = [quote_str(str(path)), "header = true"]
        if hints:
            types = ", ".join(
                f"{quote_str(col)}: {quote_str(t.engine_type)}"
                for col, t in hints.items()
            )
            args.append(f"types = {{{types}}}")
        return f"SELECT * FROM read_csv({', '.join(args)})"

    def _cast_sql(
        self, reader_sql: str, hints: Dict[str, SemanticType]
    ) -> str:
        if not hints:
            return reader_sql
        casts = ", ".join(
            f"CAST({quote_ident(col)} AS {t.engine_type}) AS {quote_ident(col)}"
            for col, t in hints.items()
        )
        return reader_sql.replace("SELECT *", f"SELECT * REPLACE ({casts})", 1)

    def _describe(
        self, source_sql: str, path: Path, fmt: FileFormat
    ) -> List[tuple]:
        try:
            rows = self.conn.execute(f"DESCRIBE {source_sql}").fetchall()
        except duckdb.Error as e:
            raise FormatError(
                f"Cannot read {path} as {fmt.value}: {e}"
            ) from e
        return [(str(r[0]), str(r[1])) for r in rows]

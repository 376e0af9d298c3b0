"""SQL text helpers: identifier and literal quoting."""

from __future__ import annotations

import datetime as dt
import math
from pathlib import Path
from typing import Any


def quote_ident(name: str) -> str:
    return '"' + str(name).replace('"', '""') + '"'


def quote_str(value: str) -> str:
    return "'" + str(value).replace("'", "''") + "'"


def quote_literal(value: Any) -> str:
    """Render a Python value as a DuckDB literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "'NaN'::DOUBLE"
        if math.isinf(value):
            return "'Infinity'::DOUBLE" if value > 0 else "'-Infinity'::DOUBLE"
        return repr(value)
    if isinstance(value, dt.datetime):
        return f"TIMESTAMP {quote_str(value.isoformat(sep=' '))}"
    if isinstance(value, dt.date):
        return f"DATE {quote_str(value.isoformat())}"
    if isinstance(value, (str, Path)):
        return quote_str(str(value))
    raise TypeError(f"Cannot render {type(value).__name__} as a SQL literal")

"""Column expressions used by filter and mutate.

Expressions are plain immutable trees; they know which columns they reference
(for build-time schema validation) and how to render themselves as SQL.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, FrozenSet, Iterable, Tuple

from ..storage.schema import Schema, SemanticType
from .sqltext import quote_ident, quote_literal


class Expr:
    """Base class for expressions; supports Python operators."""

    def to_sql(self) -> str:
        raise NotImplementedError

    def columns(self) -> FrozenSet[str]:
        raise NotImplementedError

    def result_type(self, schema: Schema) -> SemanticType:
        raise NotImplementedError

    def __bool__(self) -> bool:
        raise TypeError(
            "Expressions have no truth value; combine them with &, | and ~"
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.to_sql()}>"

    # Arithmetic
    def __add__(self, other: Any) -> "Expr":
        return BinaryOp("+", self, _wrap(other))

    def __radd__(self, other: Any) -> "Expr":
        return BinaryOp("+", _wrap(other), self)

    def __sub__(self, other: Any) -> "Expr":
        return BinaryOp("-", self, _wrap(other))

    def __rsub__(self, other: Any) -> "Expr":
        return BinaryOp("-", _wrap(other), self)

    def __mul__(self, other: Any) -> "Expr":
        return BinaryOp("*", self, _wrap(other))

    def __rmul__(self, other: Any) -> "Expr":
        return BinaryOp("*", _wrap(other), self)

    def __truediv__(self, other: Any) -> "Expr":
        return BinaryOp("/", self, _wrap(other))

    def __rtruediv__(self, other: Any) -> "Expr":
        return BinaryOp("/", _wrap(other), self)

    def __neg__(self) -> "Expr":
        return UnaryOp("-", self)

    # Comparisons
    def __eq__(self, other: Any) -> "Expr":  # type: ignore[override]
        if other is None:
            return IsNull(self)
        return BinaryOp("=", self, _wrap(other))

    def __ne__(self, other: Any) -> "Expr":  # type: ignore[override]
        if other is None:
            return IsNull(self, negate=True)
        return BinaryOp("<>", self, _wrap(other))

    def __lt__(self, other: Any) -> "Expr":
        return BinaryOp("<", self, _wrap(other))

    def __le__(self, other: Any) -> "Expr":
        return BinaryOp("<=", self, _wrap(other))

    def __gt__(self, other: Any) -> "Expr":
        return BinaryOp(">", self, _wrap(other))

    def __ge__(self, other: Any) -> "Expr":
        return BinaryOp(">=", self, _wrap(other))

    __hash__ = object.__hash__

    # Boolean logic
    def __and__(self, other: Any) -> "Expr":
        return BinaryOp("AND", self, _wrap(other))

    def __or__(self, other: Any) -> "Expr":
        return BinaryOp("OR", self, _wrap(other))

    def __invert__(self) -> "Expr":
        return UnaryOp("NOT", self)

    # Named helpers
    def isin(self, values: Iterable[Any]) -> "Expr":
        return IsIn(self, tuple(values))

    def like(self, pattern: str) -> "Expr":
        return BinaryOp("LIKE", self, Literal(pattern))

    def is_null(self) -> "Expr":
        return IsNull(self)

    def not_null(self) -> "Expr":
        return IsNull(self, negate=True)

    def cast(self, semantic_type: "str | SemanticType") -> "Expr":
        return Cast(self, SemanticType(semantic_type))


class Column(Expr):
    def __init__(self, name: str):
        self.name = name

    def to_sql(self) -> str:
        return quote_ident(self.name)

    def columns(self) -> FrozenSet[str]:
        return frozenset([self.name])

    def result_type(self, schema: Schema) -> SemanticType:
        return schema.get(self.name).semantic_type


class Literal(Expr):
    def __init__(self, value: Any):
        quote_literal(value)  # reject unsupported values early
        self.value = value

    def to_sql(self) -> str:
        return quote_literal(self.value)

    def columns(self) -> FrozenSet[str]:
        return frozenset()

    def result_type(self, schema: Schema) -> SemanticType:
        v = self.value
        if isinstance(v, bool):
            return SemanticType.BOOLEAN
        if isinstance(v, int):
            return SemanticType.INTEGER
        if isinstance(v, float):
            return SemanticType.FLOAT
        if isinstance(v, dt.datetime):
            return SemanticType.TIMESTAMP
        if isinstance(v, dt.date):
            return SemanticType.DATE
        if isinstance(v, str):
            return SemanticType.STRING
        return SemanticType.OTHER


_ARITHMETIC = {"+", "-", "*", "/"}


class BinaryOp(Expr):
    def __init__(self, op: str, left: Expr, right: Expr):
        self.op = op
        self.left = left
        self.right = right

    def to_sql(self) -> str:
        return f"({self.left.to_sql()} {self.op} {self.right.to_sql()})"

    def columns(self) -> FrozenSet[str]:
        return self.left.columns() | self.right.columns()

    def result_type(self, schema: Schema) -> SemanticType:
        if self.op not in _ARITHMETIC:
            return SemanticType.BOOLEAN
        if self.op == "/":
            return SemanticType.FLOAT
        lt = self.left.result_type(schema)
        rt = self.right.result_type(schema)
        if lt is SemanticType.INTEGER and rt is SemanticType.INTEGER:
            return SemanticType.INTEGER
        if lt.is_numeric and rt.is_numeric:
            return SemanticType.FLOAT
        return SemanticType.OTHER


class UnaryOp(Expr):
    def __init__(self, op: str, operand: Expr):
        self.op = op
        self.operand = operand

    def to_sql(self) -> str:
        return f"({self.op} {self.operand.to_sql()})"

    def columns(self) -> FrozenSet[str]:
        return self.operand.columns()

    def result_type(self, schema: Schema) -> SemanticType:
        if self.op == "NOT":
            return SemanticType.BOOLEAN
        return self.operand.result_type(schema)


class IsIn(Expr):
    def __init__(self, operand: Expr, values: Tuple[Any, ...]):
        if not values:
            raise ValueError("isin() needs at least one value")
        self.operand = operand
        self.values = tuple(_wrap(v) for v in values)

    def to_sql(self) -> str:
        items = ", ".join(v.to_sql() for v in self.values)
        return f"({self.operand.to_sql()} IN ({items}))"

    def columns(self) -> FrozenSet[str]:
        cols = self.operand.columns()
        for v in self.values:
            cols = cols | v.columns()
        return cols

    def result_type(self, schema: Schema) -> SemanticType:
        return SemanticType.BOOLEAN


class IsNull(Expr):
    def __init__(self, operand: Expr, negate: bool = False):
        self.operand = operand
        self.negate = negate

    def to_sql(self) -> str:
        suffix = "IS NOT NULL" if self.negate else "IS NULL"
        return f"({self.operand.to_sql()} {suffix})"

    def columns(self) -> FrozenSet[str]:
        return self.operand.columns()

    def result_type(self, schema: Schema) -> SemanticType:
        return SemanticType.BOOLEAN


class Cast(Expr):
    """TRY_CAST: values that do not convert become NULL (e.g. census "..C")."""

    def __init__(self, operand: Expr, semantic_type: SemanticType):
        self.operand = operand
        self.semantic_type = semantic_type

    def to_sql(self) -> str:
        return (
            f"TRY_CAST({self.operand.to_sql()} "
            f"AS {self.semantic_type.engine_type})"
        )

    def columns(self) -> FrozenSet[str]:
        return self.operand.columns()

    def result_type(self, schema: Schema) -> SemanticType:
        return self.semantic_type


def col(name: str) -> Column:
    return Column(name)


def lit(value: Any) -> Literal:
    return Literal(value)


def _wrap(value: Any) -> Expr:
    return value if isinstance(value, Expr) else Literal(value)

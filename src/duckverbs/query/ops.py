"""The closed set of relational operations a LazyQuery can carry.

Each operation validates itself against its input schema and derives its
output schema; no engine access happens here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence, Tuple, Union

from ..errors import SchemaError
from ..storage.schema import ColumnSchema, Schema, SemanticType
from .expr import Expr, _wrap

if TYPE_CHECKING:
    from .lazy import LazyQuery


REDUCER_FUNCS = ("sum", "mean", "min", "max", "count", "n_distinct")
JOIN_HOWS = ("inner", "left")
RIGHT_SUFFIX = "_right"


@dataclass(frozen=True)
class Reducer:
    """An aggregate function applied to one column (or to rows, for count)."""

    func: str
    column: Union[str, None]
    alias: str

    def __post_init__(self) -> None:
        if self.func not in REDUCER_FUNCS:
            raise ValueError(f"Unknown reducer: {self.func}")
        if self.column is None and self.func != "count":
            raise ValueError(f"{self.func}() needs a column")

    def result_type(self, schema: Schema) -> SemanticType:
        if self.func in ("count", "n_distinct"):
            return SemanticType.INTEGER
        if self.func == "mean":
            return SemanticType.FLOAT
        t = schema.get(self.column).semantic_type
        if self.func == "sum" and not t.is_numeric:
            raise SchemaError(f"sum() over non-numeric column {self.column!r}")
        return t


def _reducer(func: str, column: Union[str, None], alias: Union[str, None]):
    return Reducer(func, column, alias or (f"{func}_{column}" if column else "n"))


def sum_(column: str, alias: Union[str, None] = None) -> Reducer:
    return _reducer("sum", column, alias)


def mean(column: str, alias: Union[str, None] = None) -> Reducer:
    return _reducer("mean", column, alias)


def min_(column: str, alias: Union[str, None] = None) -> Reducer:
    return _reducer("min", column, alias)


def max_(column: str, alias: Union[str, None] = None) -> Reducer:
    return _reducer("max", column, alias)


def count(column: Union[str, None] = None, alias: Union[str, None] = None) -> Reducer:
    return _reducer("count", column, alias)


def n_distinct(column: str, alias: Union[str, None] = None) -> Reducer:
    return _reducer("n_distinct", column, alias)


@dataclass(frozen=True)
class SortKey:
    column: str
    descending: bool = False


def desc(column: str) -> SortKey:
    return SortKey(column, descending=True)


def asc(column: str) -> SortKey:
    return SortKey(column)


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------
@dataclass(frozen=True, eq=False)
class Filter:
    predicate: Expr

    def output_schema(self, schema: Schema) -> Schema:
        schema.require(sorted(self.predicate.columns()), "filter")
        return schema


@dataclass(frozen=True, eq=False)
class Project:
    columns: Tuple[str, ...]

    def output_schema(self, schema: Schema) -> Schema:
        if not self.columns:
            raise SchemaError("project needs at least one column")
        schema.require(self.columns, "project")
        return Schema(tuple(schema.get(c) for c in self.columns))


@dataclass(frozen=True, eq=False)
class Mutate:
    """Add (or replace) columns computed from expressions on the input row."""

    assignments: Tuple[Tuple[str, Expr], ...]

    def output_schema(self, schema: Schema) -> Schema:
        if not self.assignments:
            raise SchemaError("mutate needs at least one assignment")
        new_cols = {}
        for name, expr in self.assignments:
            schema.require(sorted(expr.columns()), f"mutate({name})")
            semantic = expr.result_type(schema)
            new_cols[name] = ColumnSchema.declared(name, semantic)
        kept = [new_cols.pop(c.name, c) for c in schema]
        return Schema(tuple(kept) + tuple(new_cols.values()))


@dataclass(frozen=True, eq=False)
class Aggregate:
    group_by: Tuple[str, ...]
    reducers: Tuple[Reducer, ...]

    def output_schema(self, schema: Schema) -> Schema:
        if not self.reducers:
            raise SchemaError("aggregate needs at least one reducer")
        schema.require(self.group_by, "aggregate group_by")
        schema.require(
            [r.column for r in self.reducers if r.column is not None],
            "aggregate",
        )
        cols = [schema.get(c) for c in self.group_by]
        for r in self.reducers:
            cols.append(ColumnSchema.declared(r.alias, r.result_type(schema)))
        return Schema(tuple(cols))


@dataclass(frozen=True, eq=False)
class Sort:
    keys: Tuple[SortKey, ...]

    def output_schema(self, schema: Schema) -> Schema:
        if not self.keys:
            raise SchemaError("sort needs at least one key")
        schema.require([k.column for k in self.keys], "sort")
        return schema


@dataclass(frozen=True, eq=False)
class Join:
    """Join against another lazy query on (left, right) column pairs."""

    right: "LazyQuery"
    on: Tuple[Tuple[str, str], ...]
    how: str = "inner"

    def __post_init__(self) -> None:
        if self.how not in JOIN_HOWS:
            raise ValueError(f"Unsupported join type: {self.how}")
        if not self.on:
            raise SchemaError("join needs at least one key")

    def right_output_columns(self, left: Schema) -> Tuple[Tuple[str, str], ...]:
        """(right column, output name) for the right side's non-key columns."""
        right_keys = {r for _, r in self.on}
        taken = {n.lower() for n in left.names}
        out = []
        for c in self.right.schema:
            if c.name in right_keys:
                continue
            alias = c.name
            while alias.lower() in taken:
                alias = alias + RIGHT_SUFFIX
            taken.add(alias.lower())
            out.append((c.name, alias))
        return tuple(out)

    def output_schema(self, schema: Schema) -> Schema:
        schema.require([l for l, _ in self.on], "join (left side)")
        self.right.schema.require([r for _, r in self.on], "join (right side)")
        cols = list(schema)
        for name, alias in self.right_output_columns(schema):
            c = self.right.schema.get(name)
            cols.append(ColumnSchema(alias, c.semantic_type, c.engine_type))
        return Schema(tuple(cols))


Operation = Union[Filter, Project, Mutate, Aggregate, Sort, Join]


def normalize_join_keys(
    on: Union[str, Sequence[Union[str, Tuple[str, str]]]],
) -> Tuple[Tuple[str, str], ...]:
    if isinstance(on, str):
        return ((on, on),)
    pairs = []
    for item in on:
        if isinstance(item, str):
            pairs.append((item, item))
        else:
            left, right = item
            pairs.append((left, right))
    return tuple(pairs)


def normalize_sort_keys(
    keys: Sequence[Union[str, SortKey]],
) -> Tuple[SortKey, ...]:
    return tuple(k if isinstance(k, SortKey) else SortKey(k) for k in keys)


def normalize_assignments(assignments) -> Tuple[Tuple[str, Expr], ...]:
    return tuple((name, _wrap(expr)) for name, expr in assignments.items())

"""Immutable lazy query values.

A LazyQuery is a base dataset plus an ordered tuple of operations. Every verb
validates column names against the derived schema and returns a new value;
nothing touches storage until ``collect`` / ``preview`` is called (or the
query was built with the eager policy).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence, Tuple, Union

from ..storage.schema import DatasetReference, Schema
from .compiler import compile_query
from .expr import Expr
from .ops import (
    Aggregate,
    Filter,
    Join,
    Mutate,
    Operation,
    Project,
    Reducer,
    Sort,
    SortKey,
    normalize_assignments,
    normalize_join_keys,
    normalize_sort_keys,
)

if TYPE_CHECKING:
    from .engine import CancellationToken, Engine, ResultTable


class ExecutionPolicy(str, Enum):
    DEFERRED = "deferred"
    EAGER = "eager"  # materialize as soon as the query value is built


@dataclass(frozen=True, eq=False)
class LazyQuery:
    engine: "Engine" = field(repr=False)
    base: DatasetReference
    ops: Tuple[Operation, ...] = ()
    schema: Optional[Schema] = None
    policy: ExecutionPolicy = ExecutionPolicy.DEFERRED
    _result: Optional["ResultTable"] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.schema is None:
            schema = self.base.schema
            for op in self.ops:
                schema = op.output_schema(schema)
            object.__setattr__(self, "schema", schema)
        if self.policy is ExecutionPolicy.EAGER and self._result is None:
            object.__setattr__(self, "_result", self.engine.collect(self))

    # -------------------------
    # Verbs
    # -------------------------
    def _then(self, op: Operation) -> "LazyQuery":
        # Validate first so schema errors surface before any execution.
        schema = op.output_schema(self.schema)
        return replace(
            self, ops=self.ops + (op,), schema=schema, _result=None
        )

    def filter(self, predicate: Expr) -> "LazyQuery":
        if not isinstance(predicate, Expr):
            raise TypeError("filter() expects an expression, e.g. col('x') > 1")
        return self._then(Filter(predicate))

    def project(self, columns: Union[str, Sequence[str]]) -> "LazyQuery":
        if isinstance(columns, str):
            columns = [columns]
        return self._then(Project(tuple(columns)))

    select = project

    def mutate(self, **assignments: Any) -> "LazyQuery":
        return self._then(Mutate(normalize_assignments(assignments)))

    def aggregate(
        self,
        group_by: Union[str, Sequence[str], None] = None,
        reducers: Sequence[Reducer] = (),
    ) -> "LazyQuery":
        if group_by is None:
            group_by = ()
        elif isinstance(group_by, str):
            group_by = (group_by,)
        return self._then(Aggregate(tuple(group_by), tuple(reducers)))

    summarise = aggregate

    def sort(self, *keys: Union[str, SortKey]) -> "LazyQuery":
        if len(keys) == 1 and isinstance(keys[0], (list, tuple)):
            keys = tuple(keys[0])
        return self._then(Sort(normalize_sort_keys(keys)))

    arrange = sort

    def join(
        self,
        other: "LazyQuery",
        on: Union[str, Sequence[Union[str, Tuple[str, str]]]],
        how: str = "inner",
    ) -> "LazyQuery":
        if other.engine is not self.engine:
            raise ValueError("Cannot join queries from different engines")
        return self._then(Join(other, normalize_join_keys(on), how))

    def with_policy(self, policy: Union[str, ExecutionPolicy]) -> "LazyQuery":
        return replace(self, policy=ExecutionPolicy(policy), _result=None)

    # -------------------------
    # Inspection / materialization
    # -------------------------
    @property
    def columns(self) -> Sequence[str]:
        return self.schema.names

    @property
    def result(self) -> Optional["ResultTable"]:
        """Snapshot taken at construction for eager queries; None otherwise."""
        return self._result

    def to_sql(self, limit: Optional[int] = None) -> str:
        return compile_query(self, limit=limit)

    def collect(
        self, cancel_token: Optional["CancellationToken"] = None
    ) -> "ResultTable":
        return self.engine.collect(self, cancel_token=cancel_token)

    def preview(self, n: int = 10) -> "ResultTable":
        return self.engine.preview(self, n)

    def describe(self) -> Dict[str, str]:
        return self.schema.to_dict()

    def __repr__(self) -> str:
        verbs = " → ".join(type(op).__name__.lower() for op in self.ops)
        return f"<LazyQuery {self.base.name}{' → ' + verbs if verbs else ''}>"

"""Compile a LazyQuery into a single DuckDB SELECT statement.

Each operation wraps the previous statement as a subquery. The output is a
pure function of the base dataset and the operation chain, so identical chains
compile to identical SQL.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Tuple

from ..storage.schema import Schema, SemanticType
from .ops import Aggregate, Filter, Join, Mutate, Project, Reducer, Sort, SortKey
from .sqltext import quote_ident

if TYPE_CHECKING:
    from .lazy import LazyQuery


def _reducer_sql(r: Reducer, schema: Schema) -> str:
    if r.func == "count":
        inner = "COUNT(*)" if r.column is None else f"COUNT({quote_ident(r.column)})"
    elif r.func == "n_distinct":
        inner = f"COUNT(DISTINCT {quote_ident(r.column)})"
    elif r.func == "mean":
        inner = f"AVG({quote_ident(r.column)})"
    elif r.func == "sum":
        inner = f"SUM({quote_ident(r.column)})"
        # SUM(BIGINT) is HUGEINT in DuckDB; keep integer sums as BIGINT.
        if schema.get(r.column).semantic_type is SemanticType.INTEGER:
            inner = f"CAST({inner} AS BIGINT)"
    else:
        inner = f"{r.func.upper()}({quote_ident(r.column)})"
    return f"{inner} AS {quote_ident(r.alias)}"


def _order_by(keys: Sequence[Tuple[str, bool]]) -> str:
    parts = [
        f"{quote_ident(column)} {'DESC' if descending else 'ASC'} NULLS LAST"
        for column, descending in keys
    ]
    return "ORDER BY " + ", ".join(parts)


_HIDDEN_PREFIX = "__sortkey_"


class _SortCarry:
    """Keeps a sort's key values alive through later verbs.

    When a later mutate overwrites a key or a projection drops it, the
    pre-change value travels on under a hidden alias so the final ORDER BY
    still sees what the sort saw.
    """

    def __init__(self, keys: Tuple[SortKey, ...]):
        self.keys: List[Tuple[str, bool]] = [(k.column, k.descending) for k in keys]
        self.hidden: List[str] = []

    def carry(self, lost: Iterable[str]) -> List[str]:
        """SELECT items passing hidden keys through, plus new ones for ``lost``."""
        lost_lc = {n.lower() for n in lost}
        items = [quote_ident(h) for h in self.hidden]
        for i, (column, descending) in enumerate(self.keys):
            if column in self.hidden or column.lower() not in lost_lc:
                continue
            hidden = f"{_HIDDEN_PREFIX}{len(self.hidden)}"
            self.hidden.append(hidden)
            items.append(f"{quote_ident(column)} AS {quote_ident(hidden)}")
            self.keys[i] = (hidden, descending)
        return items


def compile_query(query: "LazyQuery", limit: Optional[int] = None) -> str:
    """
    Render ``query`` as SQL.

    Args:
        query: The lazy query to compile
        limit: Optional row bound appended to the outermost statement

    Returns:
        A SELECT statement
    """
    sql = query.base.source_sql
    schema = query.base.schema
    pending: Optional[_SortCarry] = None
    last_was_sort = False

    for depth, op in enumerate(query.ops):
        alias = f"_q{depth}"
        out_schema = op.output_schema(schema)
        last_was_sort = False

        if isinstance(op, Filter):
            sql = f"SELECT * FROM ({sql}) AS {alias} WHERE {op.predicate.to_sql()}"
        elif isinstance(op, Project):
            items = [quote_ident(c) for c in op.columns]
            if pending is not None:
                kept = {c.lower() for c in op.columns}
                items += pending.carry(n for n in schema.names if n.lower() not in kept)
            sql = f"SELECT {', '.join(items)} FROM ({sql}) AS {alias}"
        elif isinstance(op, Mutate):
            exprs = dict(op.assignments)
            items = []
            for c in out_schema:
                if c.name in exprs:
                    items.append(f"{exprs[c.name].to_sql()} AS {quote_ident(c.name)}")
                else:
                    items.append(quote_ident(c.name))
            if pending is not None:
                items += pending.carry(exprs)
            sql = f"SELECT {', '.join(items)} FROM ({sql}) AS {alias}"
        elif isinstance(op, Aggregate):
            groups = [quote_ident(c) for c in op.group_by]
            items = groups + [_reducer_sql(r, schema) for r in op.reducers]
            sql = f"SELECT {', '.join(items)} FROM ({sql}) AS {alias}"
            if groups:
                sql += f" GROUP BY {', '.join(groups)}"
            pending = None
        elif isinstance(op, Sort):
            sql = f"SELECT {_visible(schema, pending)} FROM ({sql}) AS {alias}"
            pending = _SortCarry(op.keys)
            sql += f" {_order_by(pending.keys)}"
            last_was_sort = True
        elif isinstance(op, Join):
            sql = _join_sql(sql, schema, op)
            pending = None
        else:  # pragma: no cover - closed set
            raise TypeError(f"Unknown operation: {type(op).__name__}")

        schema = out_schema

    # Filters/projections/mutations after a sort keep its order; restate it
    # outermost and drop the hidden key columns.
    if pending is not None and not last_was_sort:
        sql = (
            f"SELECT {_visible(schema, pending)} FROM ({sql}) AS _sorted "
            f"{_order_by(pending.keys)}"
        )

    if limit is not None:
        sql = f"{sql} LIMIT {int(limit)}"
    return sql


def _visible(schema: Schema, pending: Optional[_SortCarry]) -> str:
    if pending is None or not pending.hidden:
        return "*"
    return ", ".join(quote_ident(n) for n in schema.names)


def _join_sql(left_sql: str, left_schema: Schema, op: Join) -> str:
    right_sql = compile_query(op.right)
    items = [f"_l.{quote_ident(c)}" for c in left_schema.names]
    for name, out_name in op.right_output_columns(left_schema):
        items.append(f"_r.{quote_ident(name)} AS {quote_ident(out_name)}")
    cond = " AND ".join(
        f"_l.{quote_ident(l)} = _r.{quote_ident(r)}" for l, r in op.on
    )
    kind = "LEFT JOIN" if op.how == "left" else "INNER JOIN"
    return (
        f"SELECT {', '.join(items)} FROM ({left_sql}) AS _l "
        f"{kind} ({right_sql}) AS _r ON {cond}"
    )

from __future__ import annotations

import datetime as dt
from pathlib import Path

import pytest

from duckverbs.query.engine import Engine
from duckverbs.query.expr import col, lit
from duckverbs.query.ops import desc, sum_
from duckverbs.query.sqltext import quote_ident, quote_literal


def test_quoting() -> None:
    assert quote_ident('we"ird') == '"we""ird"'
    assert quote_literal("O'Brien") == "'O''Brien'"
    assert quote_literal(None) == "NULL"
    assert quote_literal(True) == "TRUE"
    assert quote_literal(3) == "3"
    assert quote_literal(dt.date(2018, 3, 6)) == "DATE '2018-03-06'"
    with pytest.raises(TypeError):
        quote_literal(object())


def test_expression_sql() -> None:
    expr = (col("v") > 1) & (col("g") == "m") | col("x").is_null()
    assert expr.to_sql() == '((("v" > 1) AND ("g" = \'m\')) OR ("x" IS NULL))'
    assert (col("a") == None).to_sql() == '("a" IS NULL)'  # noqa: E711
    assert col("a").isin([1, 2]).to_sql() == '("a" IN (1, 2))'
    assert col("c").cast("integer").to_sql() == 'TRY_CAST("c" AS BIGINT)'
    assert (2 * col("a")).to_sql() == '(2 * "a")'
    assert lit("x").columns() == frozenset()
    assert ((col("a") + col("b")) / 2).columns() == frozenset({"a", "b"})


def test_compiled_chain_shape(tmp_path: Path) -> None:
    (tmp_path / "g.csv").write_text("g,v\nm,10\n")
    with Engine() as engine:
        q = (
            engine.scan(tmp_path / "g.csv", "csv")
            .filter(col("v") > 1)
            .aggregate(group_by="g", reducers=[sum_("v", "total")])
            .sort(desc("total"))
        )
        sql = q.to_sql()
        assert 'WHERE ("v" > 1)' in sql
        assert 'CAST(SUM("v") AS BIGINT) AS "total"' in sql
        assert 'GROUP BY "g"' in sql
        assert sql.endswith('ORDER BY "total" DESC NULLS LAST')
        assert q.to_sql(limit=5).endswith("LIMIT 5")
        assert "GROUP_BY" in engine.explain(q).upper()

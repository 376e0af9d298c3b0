from __future__ import annotations

from pathlib import Path

from duckverbs.query.engine import MISSING, Engine
from duckverbs.query.expr import col
from duckverbs.query.ops import count, desc, max_, mean, min_, n_distinct, sum_


def _engine(tmp_path: Path) -> Engine:
    (tmp_path / "a.csv").write_text("id,x\n1,a\n2,b\n")
    (tmp_path / "b.csv").write_text("id,y\n1,p\n")
    (tmp_path / "g.csv").write_text("g,v\nm,10\nm,20\nf,5\n")
    engine = Engine()
    engine.load(tmp_path / "a.csv", "csv", name="a")
    engine.load(tmp_path / "b.csv", "csv", name="b")
    engine.load(tmp_path / "g.csv", "csv", name="g")
    return engine


def test_inner_join_drops_unmatched_rows(tmp_path: Path) -> None:
    with _engine(tmp_path) as engine:
        result = engine.table("a").join(engine.table("b"), on="id").collect()
    assert result.to_pylist() == [{"id": 1, "x": "a", "y": "p"}]


def test_left_join_fills_missing_marker(tmp_path: Path) -> None:
    with _engine(tmp_path) as engine:
        result = (
            engine.table("a")
            .join(engine.table("b"), on="id", how="left")
            .sort("id")
            .collect()
        )
    assert result.to_pylist() == [
        {"id": 1, "x": "a", "y": "p"},
        {"id": 2, "x": "b", "y": MISSING},
    ]


def test_join_on_differently_named_keys_and_colliding_columns(tmp_path: Path) -> None:
    (tmp_path / "lookup.csv").write_text("code,x\n1,first\n2,second\n")
    with _engine(tmp_path) as engine:
        lookup = engine.scan(tmp_path / "lookup.csv", "csv", name="lookup")
        q = engine.table("a").join(lookup, on=[("id", "code")]).sort("id")
        assert q.columns == ["id", "x", "x_right"]
        assert q.collect().to_pylist() == [
            {"id": 1, "x": "a", "x_right": "first"},
            {"id": 2, "x": "b", "x_right": "second"},
        ]


def test_aggregate_sum_by_group(tmp_path: Path) -> None:
    with _engine(tmp_path) as engine:
        result = (
            engine.table("g")
            .aggregate(group_by="g", reducers=[sum_("v", "v")])
            .collect()
        )
    assert {r["g"]: r["v"] for r in result.to_pylist()} == {"m": 30, "f": 5}


def test_sorted_aggregate_is_deterministic(tmp_path: Path) -> None:
    with _engine(tmp_path) as engine:
        q = engine.table("g").aggregate(group_by="g", reducers=[sum_("v", "v")])
        assert q.sort("g").collect().to_pylist() == [
            {"g": "f", "v": 5},
            {"g": "m", "v": 30},
        ]
        assert q.sort(desc("v")).collect().column("g") == ["m", "f"]


def test_all_reducers_and_global_aggregate(tmp_path: Path) -> None:
    with _engine(tmp_path) as engine:
        row = (
            engine.table("g")
            .aggregate(
                reducers=[
                    count(alias="rows"),
                    n_distinct("g", "groups"),
                    mean("v", "avg_v"),
                    min_("v", "lo"),
                    max_("v", "hi"),
                ]
            )
            .collect()
            .to_pylist()
        )
    assert row == [
        {"rows": 3, "groups": 2, "avg_v": 35 / 3, "lo": 5, "hi": 20}
    ]


def test_filter_and_mutate(tmp_path: Path) -> None:
    with _engine(tmp_path) as engine:
        result = (
            engine.table("g")
            .filter((col("g") == "m") & ~(col("v") < 15))
            .mutate(v=col("v") * 10, label=col("g").isin(["m", "x"]))
            .collect()
        )
    assert result.to_pylist() == [{"g": "m", "v": 200, "label": True}]

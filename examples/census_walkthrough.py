#!/usr/bin/env python3
"""Example: New Zealand census (age/sex/ethnic group by area).

Downloads and unzips the Stats NZ archive under data/nz_census/, joins the
coded fact table with its lookups and prints population summaries.
"""

from __future__ import annotations

import argparse
from pathlib import Path

from duckverbs.verbs import Config, Engine
from duckverbs.pipelines import census


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Explore the NZ census archive with DuckDB."
    )
    parser.add_argument("--data-dir", default="data", help="Data directory")
    parser.add_argument("--year", type=int, default=2018, help="Census year")
    parser.add_argument(
        "--area", default="Auckland Region", help="Area for the ethnic breakdown"
    )
    parser.add_argument(
        "--memory-limit", default=None, help="DuckDB memory limit, e.g. 4GB"
    )
    args = parser.parse_args()

    config = Config(data_dir=Path(args.data_dir), memory_limit=args.memory_limit)
    config.ensure_dirs()
    files = census.fetch(config)

    with Engine(config) as engine:
        tables = census.load(engine, files)
        print(census.population_by_area_and_sex(tables, args.year).preview(20).to_pandas())
        print(census.ethnic_breakdown(tables, args.area, args.year).collect().to_pandas())
        print(census.suppressed_cell_share(tables, args.year).to_pandas())

    return 0


if __name__ == "__main__":
    raise SystemExit(main())

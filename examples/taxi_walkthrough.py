#!/usr/bin/env python3
"""Example: NYC taxi trips with lazy verbs and raw SQL.

Downloads one month of TLC trip data plus the zone lookup under
data/nyc_taxi/, then prints a few summaries.
"""

from __future__ import annotations

import argparse
from pathlib import Path

from duckverbs.verbs import Config, Engine, col, count, desc, mean
from duckverbs.pipelines import taxi


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Explore one month of NYC taxi trips with DuckDB."
    )
    parser.add_argument("--data-dir", default="data", help="Data directory")
    parser.add_argument("--year", type=int, default=2023, help="Year")
    parser.add_argument("--month", type=int, default=1, help="Month (1..12)")
    parser.add_argument(
        "--workers", type=int, default=2, help="Parallel downloads"
    )
    args = parser.parse_args()

    config = Config(data_dir=Path(args.data_dir), download_workers=args.workers)
    config.ensure_dirs()
    files = taxi.fetch(config, year=args.year, month=args.month)

    with Engine(config) as engine:
        tables = taxi.load(engine, files)
        print(tables.trips.describe())

        print(taxi.borough_summary(tables).collect().to_pandas())

        # Long trips by dropoff zone, built inline.
        long_trips = (
            taxi.valid_trips(tables)
            .filter(col("trip_distance") > 20)
            .join(
                tables.zones.project(["LocationID", "Zone"]),
                on=[("DOLocationID", "LocationID")],
            )
            .aggregate(
                group_by="Zone",
                reducers=[count(alias="trips"), mean("fare_amount", "avg_fare")],
            )
            .sort(desc("trips"))
        )
        print(long_trips.preview(10).to_pandas())

        print(taxi.busiest_routes(engine, limit=10).to_pandas())

    return 0


if __name__ == "__main__":
    raise SystemExit(main())

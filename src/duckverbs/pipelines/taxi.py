"""NYC taxi walkthrough: trips joined with the zone lookup, summarised per borough."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..config import Config
from ..fetch.catalog import downloads, taxi_files
from ..fetch.fetcher import ensure_all
from ..query.engine import Engine, ResultTable
from ..query.expr import col
from ..query.lazy import LazyQuery
from ..query.ops import count, desc, mean, sum_

ZONE_SCHEMA = {
    "LocationID": "integer",
    "Borough": "string",
    "Zone": "string",
    "service_zone": "string",
}


@dataclass(frozen=True)
class TaxiFiles:
    trips: Path
    zones: Path


@dataclass(frozen=True)
class TaxiTables:
    trips: LazyQuery
    zones: LazyQuery


def fetch(
    config: Config, year: int = 2023, month: int = 1, color: str = "yellow"
) -> TaxiFiles:
    """Download one month of trips plus the zone lookup (skips files on disk)."""
    trips, zones = ensure_all(
        downloads(taxi_files(year, month, color), config.data_dir),
        max_workers=config.download_workers,
        timeout=config.download_timeout_sec,
        chunk_bytes=config.download_chunk_bytes,
    )
    return TaxiFiles(trips=trips, zones=zones)


def load(engine: Engine, files: TaxiFiles) -> TaxiTables:
    return TaxiTables(
        trips=engine.scan(files.trips, "parquet", name="trips"),
        zones=engine.scan(files.zones, "csv", schema=ZONE_SCHEMA, name="zones"),
    )


def valid_trips(tables: TaxiTables) -> LazyQuery:
    return tables.trips.filter(
        (col("passenger_count") > 0)
        & (col("trip_distance") > 0)
        & (col("total_amount") > 0)
    )


def borough_summary(tables: TaxiTables) -> LazyQuery:
    """Trip count, distance, tip share and revenue per pickup borough."""
    zones = tables.zones.project(["LocationID", "Borough"])
    return (
        valid_trips(tables)
        .join(zones, on=[("PULocationID", "LocationID")])
        .mutate(tip_pct=col("tip_amount") / col("total_amount") * 100)
        .aggregate(
            group_by="Borough",
            reducers=[
                count(alias="trips"),
                mean("trip_distance", "avg_distance"),
                mean("tip_pct", "avg_tip_pct"),
                sum_("total_amount", "revenue"),
            ],
        )
        .sort(desc("trips"))
    )


def trips_by_passenger_count(tables: TaxiTables) -> LazyQuery:
    return (
        valid_trips(tables)
        .aggregate(
            group_by="passenger_count",
            reducers=[count(alias="trips"), mean("fare_amount", "avg_fare")],
        )
        .sort("passenger_count")
    )


def busiest_routes(engine: Engine, limit: int = 10) -> ResultTable:
    """Raw SQL over the registered ``trips`` / ``zones`` views."""
    return engine.sql(
        f"""
        SELECT pu."Zone" AS pickup_zone,
               dz."Zone" AS dropoff_zone,
               COUNT(*) AS trips
        FROM trips t
        JOIN zones pu ON t."PULocationID" = pu."LocationID"
        JOIN zones dz ON t."DOLocationID" = dz."LocationID"
        GROUP BY 1, 2
        ORDER BY trips DESC, pickup_zone, dropoff_zone
        LIMIT {int(limit)}
        """
    )

"""New Zealand census walkthrough: age/sex/ethnic counts by area.

The Stats NZ archive holds one long fact table (``Data8277.csv``) whose
dimension columns are codes, plus one ``Code,Description,SortOrder`` lookup
per dimension. Suppressed counts are published as ``..C``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict

from ..config import Config
from ..fetch.catalog import CENSUS_DATA_FILE, CENSUS_LOOKUP_FILES, census_archive
from ..fetch.fetcher import ensure_local, extract_archive
from ..query.engine import Engine
from ..query.expr import col
from ..query.lazy import LazyQuery
from ..query.ops import desc, sum_

# Codes of the "total" rows in each dimension.
TOTAL_AGE = "999999"
TOTAL_ETHNIC = "9999"
TOTAL_SEX = "9"

DATA_SCHEMA = {
    "Year": "integer",
    "Age": "categorical",
    "Ethnic": "categorical",
    "Sex": "categorical",
    "Area": "categorical",
    "count": "string",
}
LOOKUP_SCHEMA = {
    "Code": "categorical",
    "Description": "string",
    "SortOrder": "integer",
}


@dataclass(frozen=True)
class CensusTables:
    data: LazyQuery
    lookups: Dict[str, LazyQuery]

    def labels(self, dimension: str, label: str) -> LazyQuery:
        """Two-column ``Code → <label>`` view of a lookup table."""
        return (
            self.lookups[dimension]
            .mutate(**{label: col("Description")})
            .project(["Code", label])
        )


def fetch(config: Config) -> Dict[str, Path]:
    """Download and extract the census archive; returns member name → path."""
    job = census_archive().download(config.data_dir)
    archive = ensure_local(
        job.url,
        job.dest,
        timeout=config.download_timeout_sec,
        chunk_bytes=config.download_chunk_bytes,
        expected_size=job.expected_size,
        sha256=job.sha256,
    )
    members = [CENSUS_DATA_FILE] + list(CENSUS_LOOKUP_FILES.values())
    paths = extract_archive(archive, archive.parent, members=members)
    return {p.name: p for p in paths}


def load(engine: Engine, files: Dict[str, Path]) -> CensusTables:
    data = engine.scan(
        files[CENSUS_DATA_FILE], "csv", schema=DATA_SCHEMA, name="census"
    )
    lookups = {}
    for dim, file_name in CENSUS_LOOKUP_FILES.items():
        schema = dict(LOOKUP_SCHEMA)
        if dim == "year":
            schema["Code"] = "integer"
        lookups[dim] = engine.scan(
            files[file_name], "csv", schema=schema, name=f"census_{dim}"
        )
    return CensusTables(data=data, lookups=lookups)


def population_by_area_and_sex(
    tables: CensusTables, year: int = 2018
) -> LazyQuery:
    """Usually-resident population (all ages, all ethnicities) per area and sex."""
    return (
        tables.data.filter(
            (col("Year") == year)
            & (col("Age") == TOTAL_AGE)
            & (col("Ethnic") == TOTAL_ETHNIC)
            & (col("Sex") != TOTAL_SEX)
        )
        .mutate(population=col("count").cast("integer"))
        .filter(col("population").not_null())
        .join(tables.labels("area", "area_name"), on=[("Area", "Code")])
        .join(tables.labels("sex", "sex_name"), on=[("Sex", "Code")])
        .aggregate(
            group_by=["area_name", "sex_name"],
            reducers=[sum_("population", "population")],
        )
        .sort(desc("population"), "area_name", "sex_name")
    )


def ethnic_breakdown(
    tables: CensusTables, area_name: str, year: int = 2018
) -> LazyQuery:
    """Counts per ethnic group for one area; suppressed cells stay missing."""
    return (
        tables.data.filter(
            (col("Year") == year)
            & (col("Age") == TOTAL_AGE)
            & (col("Sex") == TOTAL_SEX)
        )
        .join(tables.labels("area", "area_name"), on=[("Area", "Code")])
        .filter(col("area_name") == area_name)
        .join(
            tables.labels("ethnic", "ethnic_group"),
            on=[("Ethnic", "Code")],
            how="left",
        )
        .mutate(people=col("count").cast("integer"))
        .project(["ethnic_group", "people"])
        .sort(desc("people"))
    )


def suppressed_cell_share(tables: CensusTables, year: int = 2018):
    """Raw SQL: share of ``..C`` cells per sex code (uses the registered view)."""
    engine = tables.data.engine
    return engine.sql(
        """
        SELECT "Sex" AS sex_code,
               COUNT(*) AS cells,
               AVG(CASE WHEN "count" = '..C' THEN 1 ELSE 0 END) AS suppressed_share
        FROM census
        WHERE "Year" = ?
        GROUP BY "Sex"
        ORDER BY "Sex"
        """,
        [year],
    )

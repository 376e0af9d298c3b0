"""Remote datasets used by the bundled pipelines.

Files land under ``<data_dir>/<dataset>/``; archives are extracted next to
the downloaded zip.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .fetcher import Download

TLC_BASE_URL = "https://d37ci6vzurychx.cloudfront.net"
TAXI_ZONE_URL = f"{TLC_BASE_URL}/misc/taxi+_zone_lookup.csv"

CENSUS_URL = (
    "https://www3.stats.govt.nz/2018census/"
    "Age-sex-by-ethnic-group-grouped-total-responses-census-usually-resident-"
    "population-counts-2006-2013-2018-Censuses-RC-TA-SA2-DHB.zip"
)

# Members of the census archive: one fact table plus one lookup per dimension.
CENSUS_DATA_FILE = "Data8277.csv"
CENSUS_LOOKUP_FILES = {
    "age": "DimenLookupAge8277.csv",
    "area": "DimenLookupArea8277.csv",
    "ethnic": "DimenLookupEthnic8277.csv",
    "sex": "DimenLookupSex8277.csv",
    "year": "DimenLookupYear8277.csv",
}


@dataclass(frozen=True)
class RemoteFile:
    """A downloadable file and where it is stored locally."""

    url: str
    relative_path: str
    format: str  # "csv", "parquet" or "zip"
    expected_size: Optional[int] = None
    sha256: Optional[str] = None

    def local_path(self, data_dir: Path) -> Path:
        return Path(data_dir) / self.relative_path

    def download(self, data_dir: Path) -> Download:
        return Download(
            url=self.url,
            dest=self.local_path(data_dir),
            expected_size=self.expected_size,
            sha256=self.sha256,
        )


def taxi_trips(
    year: int = 2023, month: int = 1, color: str = "yellow"
) -> RemoteFile:
    if color not in ("yellow", "green"):
        raise ValueError(f"Unknown taxi color: {color}")
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be in 1..12, got {month}")
    name = f"{color}_tripdata_{year}-{month:02d}.parquet"
    return RemoteFile(
        url=f"{TLC_BASE_URL}/trip-data/{name}",
        relative_path=f"nyc_taxi/{name}",
        format="parquet",
    )


def taxi_zones() -> RemoteFile:
    return RemoteFile(
        url=TAXI_ZONE_URL,
        relative_path="nyc_taxi/taxi_zone_lookup.csv",
        format="csv",
    )


def census_archive() -> RemoteFile:
    return RemoteFile(
        url=CENSUS_URL,
        relative_path="nz_census/age_sex_ethnic_8277.zip",
        format="zip",
    )


def taxi_files(
    year: int = 2023, month: int = 1, color: str = "yellow"
) -> List[RemoteFile]:
    return [taxi_trips(year, month, color), taxi_zones()]


def downloads(files: List[RemoteFile], data_dir: Path) -> List[Download]:
    """Jobs for ``ensure_all``; size / checksum pins travel with each file."""
    return [f.download(data_dir) for f in files]

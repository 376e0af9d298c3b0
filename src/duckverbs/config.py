"""Configuration management for duckverbs pipelines."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class Config:
    """Configuration settings for fetching, loading and querying datasets."""

    # Data storage paths
    data_dir: Path = Path("data")

    # Download settings
    download_timeout_sec: float = 120.0
    download_chunk_bytes: int = 8 * 1024 * 1024
    download_workers: int = 1  # >1 downloads independent files concurrently

    # DuckDB settings (None keeps DuckDB's own default)
    memory_limit: Optional[str] = None  # e.g. "4GB"
    threads: Optional[int] = None

    # Display settings
    preview_rows: int = 10

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables."""
        threads = os.getenv("THREADS")
        return cls(
            data_dir=Path(os.getenv("DATA_DIR", "data")),
            download_timeout_sec=float(os.getenv("DOWNLOAD_TIMEOUT", "120")),
            download_workers=int(os.getenv("DOWNLOAD_WORKERS", "1")),
            memory_limit=os.getenv("MEMORY_LIMIT") or None,
            threads=int(threads) if threads else None,
            preview_rows=int(os.getenv("PREVIEW_ROWS", "10")),
        )

    def ensure_dirs(self) -> None:
        """Ensure all required directories exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

"""Download remote datasets into the local data directory.

Downloads stream into a sibling ``.part`` file which is renamed onto the
destination only once the transfer completed, so an existing destination is
always a finished download.
"""

from __future__ import annotations

import hashlib
import os
import zipfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import requests

from ..errors import FilesystemError, FormatError, NetworkError

PathLike = Union[str, Path]

DEFAULT_TIMEOUT_SEC = 120.0
DEFAULT_CHUNK_BYTES = 8 * 1024 * 1024


def _sha256_of(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for block in iter(lambda: f.read(1024 * 1024), b""):
            h.update(block)
    return h.hexdigest()


def is_complete(
    path: Path,
    expected_size: Optional[int] = None,
    sha256: Optional[str] = None,
) -> bool:
    """Check an existing file against the optional size / checksum."""
    if not path.is_file():
        return False
    if expected_size is not None and path.stat().st_size != expected_size:
        return False
    if sha256 is not None and _sha256_of(path) != sha256.lower():
        return False
    return True


def _part_path(dest: Path) -> Path:
    return dest.with_name(dest.name + ".part")


def ensure_local(
    url: str,
    dest_path: PathLike,
    *,
    timeout: float = DEFAULT_TIMEOUT_SEC,
    chunk_bytes: int = DEFAULT_CHUNK_BYTES,
    expected_size: Optional[int] = None,
    sha256: Optional[str] = None,
    session: Optional[requests.Session] = None,
) -> Path:
    """
    Make sure ``url`` is available at ``dest_path``.

    Args:
        url: Remote resource (HTTP/HTTPS)
        dest_path: Local destination file
        timeout: Connect/read timeout in seconds
        chunk_bytes: Streaming chunk size
        expected_size: If set, an existing file of another size is re-downloaded
        sha256: If set, an existing file with another digest is re-downloaded
        session: Optional requests session (connection reuse, tests)

    Returns:
        The destination path
    """
    dest = Path(dest_path)
    if dest.exists():
        if expected_size is None and sha256 is None:
            return dest
        if is_complete(dest, expected_size, sha256):
            return dest
        print(f"  {dest.name} is incomplete or corrupt; downloading again")

    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(
            f"Cannot create directory {dest.parent}: {e}"
        ) from e

    http = session if session is not None else requests
    part = _part_path(dest)

    print(f"Downloading {url} → {dest}")
    try:
        response = http.get(url, stream=True, timeout=timeout)
    except requests.Timeout as e:
        raise NetworkError(f"Timed out fetching {url}", url) from e
    except requests.RequestException as e:
        raise NetworkError(f"Cannot reach {url}: {e}", url) from e

    try:
        if not 200 <= response.status_code < 300:
            raise NetworkError(
                f"GET {url} returned HTTP {response.status_code}",
                url,
                status_code=response.status_code,
            )
        try:
            with part.open("wb") as f:
                for chunk in response.iter_content(chunk_size=chunk_bytes):
                    if chunk:
                        f.write(chunk)
        except requests.RequestException as e:
            part.unlink(missing_ok=True)
            raise NetworkError(
                f"Transfer of {url} interrupted: {e}", url
            ) from e
        except OSError as e:
            part.unlink(missing_ok=True)
            raise FilesystemError(f"Cannot write {part}: {e}") from e
    finally:
        response.close()

    if not is_complete(part, expected_size, sha256):
        part.unlink(missing_ok=True)
        raise NetworkError(
            f"Downloaded content of {url} failed size/checksum validation",
            url,
        )

    try:
        os.replace(part, dest)
    except OSError as e:
        part.unlink(missing_ok=True)
        raise FilesystemError(f"Cannot move download onto {dest}: {e}") from e

    size_mb = dest.stat().st_size / 1_048_576
    print(f"✓ {dest.name} ({size_mb:.1f} MB)")
    return dest


@dataclass(frozen=True)
class Download:
    """One transfer for ``ensure_all``, with its optional completeness checks."""

    url: str
    dest: Path
    expected_size: Optional[int] = None
    sha256: Optional[str] = None


def _as_download(item: Union[Download, Tuple[str, PathLike]]) -> Download:
    if isinstance(item, Download):
        return item
    url, dest = item
    return Download(url=url, dest=Path(dest))


def ensure_all(
    items: Iterable[Union[Download, Tuple[str, PathLike]]],
    *,
    max_workers: int = 1,
    timeout: float = DEFAULT_TIMEOUT_SEC,
    chunk_bytes: int = DEFAULT_CHUNK_BYTES,
) -> List[Path]:
    """Run ``ensure_local`` for independent transfers, in order of input.

    ``items`` are ``Download`` jobs or plain (url, dest) pairs. With
    ``max_workers > 1`` the transfers run in a thread pool. The first failure
    propagates once all submitted transfers finished.
    """
    jobs = [_as_download(i) for i in items]

    def run(job: Download) -> Path:
        return ensure_local(
            job.url,
            job.dest,
            timeout=timeout,
            chunk_bytes=chunk_bytes,
            expected_size=job.expected_size,
            sha256=job.sha256,
        )

    if max_workers <= 1 or len(jobs) <= 1:
        return [run(job) for job in jobs]

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(run, job) for job in jobs]
        return [f.result() for f in futures]


def extract_archive(
    archive: PathLike,
    dest_dir: PathLike,
    members: Optional[Sequence[str]] = None,
) -> List[Path]:
    """
    Unzip ``archive`` into ``dest_dir``; members already on disk are skipped.

    Args:
        archive: Path to a zip file
        dest_dir: Output directory
        members: Optional subset of member names to extract

    Returns:
        Paths of the requested (or all) extracted files
    """
    archive = Path(archive)
    out_dir = Path(dest_dir)
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Cannot create directory {out_dir}: {e}") from e

    root = out_dir.resolve()
    try:
        with zipfile.ZipFile(archive) as zf:
            names = list(members) if members else [
                n for n in zf.namelist() if not n.endswith("/")
            ]
            available = set(zf.namelist())
            extracted: List[Path] = []
            for name in names:
                if name not in available:
                    raise FormatError(f"{archive} has no member {name!r}")
                target = (out_dir / name).resolve()
                if root not in target.parents:
                    raise FormatError(
                        f"Refusing to extract {name!r} outside {out_dir}"
                    )
                if not target.exists():
                    zf.extract(name, out_dir)
                extracted.append(out_dir / name)
            return extracted
    except zipfile.BadZipFile as e:
        raise FormatError(f"{archive} is not a valid zip archive: {e}") from e
    except FileNotFoundError as e:
        raise FormatError(f"Archive {archive} does not exist") from e

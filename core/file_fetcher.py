"""
File acquisition for print jobs.

Jobs reference their document by URL (the upstream ordering service stores
uploads in object storage). Local paths and file:// URLs are accepted too,
which is what operators use to re-print a file by hand.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit, unquote

import requests

from .exceptions import ErrorKind, FetchError


CHUNK_SIZE = 64 * 1024


class FileFetcher:
    """
    Downloads a job's file into a scratch directory.

    Redirects are followed by requests. Every failure is raised as
    FetchError so the queue retries the job.
    """

    def __init__(
        self,
        timeout_seconds: float = 60.0,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._logger = logger or logging.getLogger("print_queue.core.file_fetcher")

    def fetch(self, source: str, dest_dir: Path, filename: str) -> Path:
        """
        Fetch a document.

        Args:
            source: http(s) URL, file:// URL or local path
            dest_dir: Existing directory to write into
            filename: Name of the local copy

        Returns:
            Path of the local copy

        Raises:
            FetchError: Download failed (kind TIMEOUT on timeouts)
        """
        if not source:
            raise FetchError(source, "no file source")

        destination = Path(dest_dir) / filename
        scheme = urlsplit(source).scheme.lower()

        if scheme in ("http", "https"):
            self._download(source, destination)
        else:
            self._copy_local(source, destination)

        self._logger.info(f"Fetched {source} -> {destination} ({destination.stat().st_size} bytes)")
        return destination

    def _download(self, url: str, destination: Path) -> None:
        self._logger.info(f"Downloading file from {url}...")
        try:
            with self._session.get(url, stream=True, timeout=self.timeout_seconds) as response:
                if response.status_code != 200:
                    raise FetchError(
                        url,
                        f"HTTP {response.status_code}",
                        status_code=response.status_code,
                    )
                with open(destination, "wb") as handle:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            handle.write(chunk)
        except requests.Timeout as e:
            destination.unlink(missing_ok=True)
            raise FetchError(url, f"timed out after {self.timeout_seconds:.0f}s", ErrorKind.TIMEOUT) from e
        except requests.RequestException as e:
            destination.unlink(missing_ok=True)
            raise FetchError(url, str(e)) from e
        except FetchError:
            destination.unlink(missing_ok=True)
            raise

    def _copy_local(self, source: str, destination: Path) -> None:
        parts = urlsplit(source)
        local = Path(unquote(parts.path)) if parts.scheme == "file" else Path(source)
        if not local.is_file():
            raise FetchError(source, f"no such file: {local}")
        try:
            shutil.copyfile(local, destination)
        except OSError as e:
            raise FetchError(source, str(e)) from e

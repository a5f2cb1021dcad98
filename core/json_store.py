"""
Whole-file JSON persistence.

Used for the print queue and the delivery-number counters. Each save
rewrites the entire document: it is written to a temporary file in the
same directory and moved over the old one with os.replace(), so a crash
mid-write leaves either the old or the new content, never a torn file.

No locking beyond that: one process, one writer.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional


class JsonFileStore:
    """Reads and atomically rewrites one JSON document."""

    def __init__(self, path: Path, logger: Optional[logging.Logger] = None):
        self.path = Path(path)
        self._logger = logger or logging.getLogger("print_queue.core.json_store")

    def load(self, default: Any = None) -> Any:
        """
        Read the document.

        A missing file returns ``default``. An unreadable file, invalid JSON
        or bytes that are not UTF-8 are logged and also return ``default``;
        the bad file is left in place until the next save overwrites it.
        """
        if not self.path.exists():
            return default

        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                return json.load(handle)
        except (OSError, ValueError) as e:
            # ValueError: JSONDecodeError or UnicodeDecodeError
            self._logger.error(f"Could not read {self.path}, starting empty: {e}")
            return default

    def save(self, data: Any) -> None:
        """
        Replace the document with ``data``.

        Raises:
            OSError: The file could not be written
            TypeError: ``data`` is not JSON serializable
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

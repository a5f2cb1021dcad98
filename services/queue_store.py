"""
Durable storage of the print queue.

The queue persists as a JSON array of QueuedJob records, in queue order,
rewritten wholesale after every change.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

from core.exceptions import InvalidJobError
from core.json_store import JsonFileStore
from models.queued_job import QueuedJob
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)


class QueueStore:
    """
    Loads and saves the ordered list of queued jobs.

    Loading never fails: a missing or corrupt file is an empty queue, and a
    corrupt or invalid record is skipped (and logged) without losing the
    others.
    """

    def __init__(self, path: Path):
        self._store = JsonFileStore(Path(path), logger=logger)

    @property
    def path(self) -> Path:
        return self._store.path

    def load(self) -> List[QueuedJob]:
        """Read the persisted queue, in order."""
        raw = self._store.load(default=[])
        if not isinstance(raw, list):
            logger.error(f"Queue file {self.path} does not hold a list, starting empty")
            return []

        jobs: List[QueuedJob] = []
        for index, record in enumerate(raw):
            try:
                queued_job = QueuedJob.from_dict(record)
                # A record that could never print would block the head forever
                queued_job.job.validate()
                jobs.append(queued_job)
            except (KeyError, TypeError, ValueError, AttributeError, InvalidJobError) as e:
                logger.error(f"Skipping corrupt queue record #{index}: {e}")

        if jobs:
            logger.info(f"Loaded {len(jobs)} jobs from queue")
        return jobs

    def save(self, jobs: Sequence[QueuedJob]) -> None:
        """
        Persist the queue.

        Raises:
            OSError: The queue file could not be written
        """
        self._store.save([job.to_dict() for job in jobs])

"""
Queue bookkeeping for a PrintJob.

A QueuedJob's position in the queue list is its processing priority:
index 0 is the next job and, while the worker runs, the one in flight.
"""

from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from .print_job import PrintJob


_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_job_id() -> str:
    """
    Generate a queue job id: ``job_<epoch-ms>_<9 random base36 chars>``.

    Sorts roughly by creation time and is unique within a process lifetime.
    """
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"job_{int(time.time() * 1000)}_{suffix}"


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class QueuedJob:
    """
    A PrintJob waiting in (or at the head of) the durable queue.

    Mutated only by the queue worker (attempts, timestamps, last error) and
    by the executor (delivery number of the wrapped job).
    """

    id: str
    job: PrintJob
    printer_index: int
    attempts: int = 0
    created_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None

    last_error: Optional[str] = None
    """Message of the most recent failed attempt."""

    last_error_kind: Optional[str] = None
    """ErrorKind value of the most recent failed attempt."""

    @classmethod
    def create(
        cls,
        job: PrintJob,
        printer_index: int,
        now: Optional[datetime] = None
    ) -> "QueuedJob":
        """Wrap a job for the queue with a fresh id and zero attempts."""
        return cls(
            id=generate_job_id(),
            job=job,
            printer_index=printer_index,
            attempts=0,
            created_at=now or datetime.now(timezone.utc),
        )

    def start_attempt(self, now: Optional[datetime] = None) -> int:
        """Count a new attempt and stamp it. Returns the attempt number."""
        self.attempts += 1
        self.last_attempt_at = now or datetime.now(timezone.utc)
        return self.attempts

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted form (also used by the status endpoint)."""
        return {
            "id": self.id,
            "job": self.job.to_dict(),
            "printerIndex": self.printer_index,
            "attempts": self.attempts,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "lastAttemptAt": self.last_attempt_at.isoformat() if self.last_attempt_at else None,
            "lastError": self.last_error,
            "lastErrorKind": self.last_error_kind,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueuedJob":
        """
        Create from the persisted form.

        Raises:
            KeyError, TypeError, ValueError, InvalidJobError: Corrupt record
        """
        return cls(
            id=str(data["id"]),
            job=PrintJob.from_dict(data["job"]),
            printer_index=int(data.get("printerIndex", 1)),
            attempts=int(data.get("attempts", 0)),
            created_at=_parse_timestamp(data.get("createdAt")) or datetime.now(timezone.utc),
            last_attempt_at=_parse_timestamp(data.get("lastAttemptAt")),
            last_error=data.get("lastError"),
            last_error_kind=data.get("lastErrorKind"),
        )

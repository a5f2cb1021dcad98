"""
Print attempt result model.

Produced by the JobExecutor for every attempt and consumed by the JobQueue,
which removes the job on success and schedules a retry on failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from core.exceptions import ErrorKind


@dataclass(frozen=True)
class PrintResult:
    """
    Outcome of one print attempt.

    ``message`` is the short, classified summary shown to operators
    ("Printer is offline"); ``error`` holds the underlying details.
    """

    success: bool
    """Whether every part of the job (separators, content, summary) printed."""

    message: str
    """Human-readable summary."""

    delivery_number: Optional[str] = None

    error: str = ""
    """Details of the failure (empty on success)."""

    error_kind: Optional[ErrorKind] = None
    """Retry classification (None on success)."""

    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def completed(cls, delivery_number: Optional[str]) -> "PrintResult":
        """Create a result for a job that printed completely."""
        return cls(
            success=True,
            message="Print job completed successfully",
            delivery_number=delivery_number,
        )

    @classmethod
    def failed(
        cls,
        message: str,
        error: str,
        error_kind: ErrorKind,
        delivery_number: Optional[str] = None
    ) -> "PrintResult":
        """
        Create a result for a failed attempt.

        Args:
            message: Classified summary (e.g. "Printer not connected")
            error: Details or resolution hint
            error_kind: Drives the retry delay
            delivery_number: Delivery number of the job, if assigned
        """
        return cls(
            success=False,
            message=message,
            delivery_number=delivery_number,
            error=error,
            error_kind=error_kind,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "deliveryNumber": self.delivery_number,
            "error": self.error,
            "errorKind": self.error_kind.value if self.error_kind else None,
            "finishedAt": self.finished_at.isoformat(),
        }

"""
Delivery number generation.

Format: {LETTER}{YYYYMMDD}{PRINTER_INDEX}{FILE_NUMBER}
Example: A2025011511 = letter A, 2025-01-15, printer index 1, file number 1

Rules:
    - Ten files per letter (file numbers 1..10), then the letter advances
    - 26 letters per day (260 files), then the cycle wraps to the start letter
    - The first number issued on a new calendar day restarts at the start letter

The executor reads the delivery number back to decide which separator pages
to print: file number 1 gets a full-page letter separator, every file gets
a "File no: N" page.
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Callable, Dict, Any, Optional

from core.json_store import JsonFileStore
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

FILES_PER_LETTER = 10
LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"

_DELIVERY_NUMBER_RE = re.compile(r"^([A-Z])(\d{8})(\d+)$")


def next_letter(letter: str) -> str:
    """Return the following letter, Z wraps to A."""
    return LETTERS[(LETTERS.index(letter) + 1) % len(LETTERS)]


def format_delivery_number(letter: str, date: str, printer_index: int, file_number: int) -> str:
    return f"{letter}{date}{printer_index}{file_number}"


def parse_file_number(delivery_number: Optional[str]) -> Optional[int]:
    """
    Extract the file number (1..10) from a delivery number.

    The file number is the trailing digit. File numbers never end in 0
    except 10, so a trailing 0 is read as file 10.

    Returns:
        The file number, or None if the string is not a delivery number
    """
    match = _DELIVERY_NUMBER_RE.match(delivery_number or "")
    if not match:
        return None
    digits = match.group(3)
    last = int(digits[-1])
    if last == 0:
        return FILES_PER_LETTER if len(digits) >= 2 and digits.endswith("10") else None
    return last


def parse_letter(delivery_number: Optional[str]) -> Optional[str]:
    """Extract the letter of a delivery number, or None if it is not one."""
    match = _DELIVERY_NUMBER_RE.match(delivery_number or "")
    return match.group(1) if match else None


@dataclass
class DeliveryNumberState:
    """
    Counters behind the delivery number sequence.

    ``current_count_in_letter`` drives the letter rollover;
    ``current_file_number_in_letter`` is what ends up in the number. Both
    move in lockstep: the file number wraps on its own above 10 and is also
    reset together with the count when the letter advances.
    """

    current_letter: str
    current_count_in_letter: int = 0
    current_file_number_in_letter: int = 0
    total_files_today: int = 0
    last_date: str = ""
    """YYYYMMDD the counters are valid for."""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], start_letter: str) -> "DeliveryNumberState":
        letter = str(data.get("current_letter", start_letter))
        if letter not in LETTERS or len(letter) != 1:
            letter = start_letter
        return cls(
            current_letter=letter,
            current_count_in_letter=int(data.get("current_count_in_letter", 0)),
            current_file_number_in_letter=int(data.get("current_file_number_in_letter", 0)),
            total_files_today=int(data.get("total_files_today", 0)),
            last_date=str(data.get("last_date", "")),
        )


class DeliveryNumberIssuer:
    """
    Issues delivery numbers.

    One instance per process, created by the app factory. Calls are
    serialized with a lock because the HTTP thread may issue numbers at
    submission while the queue worker issues them lazily.

    Usage:
        issuer = DeliveryNumberIssuer(start_letter="A")
        issuer.issue_next(1)   # "A2025011511"
    """

    def __init__(
        self,
        start_letter: str = "A",
        clock: Optional[Callable[[], datetime]] = None,
        store: Optional[JsonFileStore] = None
    ):
        """
        Args:
            start_letter: Letter of the first file each day
            clock: Returns the current local datetime (injectable for tests)
            store: Persists the counters across restarts; None keeps them in memory

        Raises:
            ValueError: start_letter is not a single letter A-Z
        """
        start_letter = (start_letter or "A").strip().upper()
        if len(start_letter) != 1 or start_letter not in LETTERS:
            raise ValueError(f"Delivery number start letter must be A-Z, got {start_letter!r}")

        self.start_letter = start_letter
        self._clock = clock or datetime.now
        self._store = store
        self._lock = threading.Lock()
        self._state = self._load_state()

    def _today(self) -> str:
        return self._clock().strftime("%Y%m%d")

    def _load_state(self) -> DeliveryNumberState:
        fresh = DeliveryNumberState(current_letter=self.start_letter, last_date=self._today())
        if self._store is None:
            return fresh

        raw = self._store.load(default=None)
        if not isinstance(raw, dict):
            return fresh
        try:
            state = DeliveryNumberState.from_dict(raw, self.start_letter)
        except (TypeError, ValueError) as e:
            logger.error(f"Ignoring corrupt delivery number state: {e}")
            return fresh

        logger.info(
            f"Restored delivery number state: letter {state.current_letter}, "
            f"file {state.current_file_number_in_letter}, date {state.last_date}"
        )
        return state

    def _save_state(self) -> None:
        if self._store is None:
            return
        try:
            self._store.save(self._state.to_dict())
        except OSError as e:
            # The number is already issued; a restart may re-issue it
            logger.error(f"Could not persist delivery number state: {e}")

    def issue_next(self, printer_index: int) -> str:
        """
        Issue the next delivery number.

        Args:
            printer_index: Printer index embedded in the number

        Returns:
            Delivery number string
        """
        with self._lock:
            today = self._today()
            state = self._state

            if today != state.last_date:
                logger.info(f"New day {today}: restarting delivery numbers at {self.start_letter}")
                state.current_letter = self.start_letter
                state.current_count_in_letter = 0
                state.current_file_number_in_letter = 0
                state.total_files_today = 0
                state.last_date = today

            state.current_count_in_letter += 1
            state.total_files_today += 1

            state.current_file_number_in_letter += 1
            if state.current_file_number_in_letter > FILES_PER_LETTER:
                state.current_file_number_in_letter = 1

            if state.current_count_in_letter > FILES_PER_LETTER:
                state.current_letter = next_letter(state.current_letter)
                state.current_count_in_letter = 1
                state.current_file_number_in_letter = 1

            delivery_number = format_delivery_number(
                state.current_letter, today, printer_index, state.current_file_number_in_letter
            )
            self._save_state()

        logger.info(
            f"Generated delivery number: {delivery_number} (Letter: {state.current_letter}, "
            f"File Number: {state.current_file_number_in_letter}, "
            f"Count: {state.current_count_in_letter}, Total: {state.total_files_today})"
        )
        return delivery_number

    def next_is_first_of_letter_cycle(self) -> bool:
        """True when the next issued number will be file 1 of a (possibly new) letter."""
        with self._lock:
            state = self._state
            if self._today() != state.last_date:
                return True
            return (
                state.current_count_in_letter == 0
                or state.current_count_in_letter >= FILES_PER_LETTER
            )

    def current_letter(self) -> str:
        with self._lock:
            return self._state.current_letter

    def current_file_number(self) -> int:
        with self._lock:
            return self._state.current_file_number_in_letter

    def snapshot(self) -> DeliveryNumberState:
        """Copy of the current counters (for health output and tests)."""
        with self._lock:
            return DeliveryNumberState(**asdict(self._state))

    def reset(self) -> None:
        """Restart today's sequence at the start letter."""
        with self._lock:
            self._state = DeliveryNumberState(current_letter=self.start_letter, last_date=self._today())
            self._save_state()
        logger.info(f"Delivery number state reset to {self.start_letter}")

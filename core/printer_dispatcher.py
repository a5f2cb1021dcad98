"""
Printer dispatch.

PrinterDispatcher is the seam between the print queue and the operating
system. The queue and the executor only ever call dispatch() and
check_status(); everything platform specific lives behind them.

CupsDispatcher is the implementation shipped with the server. It shells out
to the CUPS command line tools (lp, lpstat), which is what is available on
the Linux and macOS print hosts this runs on.

ERROR CONTRACT:
    dispatch() returns None on success and raises DispatchError on failure.
    The raised error carries an ErrorKind:
    - PRINTER_UNAVAILABLE (PrinterUnavailableError): printer missing,
      disabled, offline or powered off
    - TIMEOUT: the lp command did not return within the timeout
    - TRANSIENT: anything else

Usage:
    dispatcher = CupsDispatcher(printer_name="HP_LaserJet", timeout_seconds=120)
    dispatcher.dispatch(Path("doc.pdf"), ColorMode.BW, copies=2)
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, List, Optional, Sequence

from models.print_job import ColorMode, PageSize, Sided
from .exceptions import (
    DispatchError,
    ErrorKind,
    PrinterUnavailableError,
    classify_error_message,
)


@dataclass(frozen=True)
class PrinterStatus:
    """Result of a printer availability check."""

    available: bool
    message: str
    details: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "available": self.available,
            "message": self.message,
            "details": self.details,
        }


class PrinterDispatcher(ABC):
    """
    Sends one rendered document to the printer.

    Implementations must be synchronous from the caller's point of view:
    dispatch() returns once the job has been accepted by the spooler.
    """

    @abstractmethod
    def dispatch(
        self,
        document: Path,
        color_mode: ColorMode,
        copies: int = 1,
        page_size: PageSize = PageSize.A4,
        sided: Sided = Sided.SINGLE,
    ) -> None:
        """
        Print a document.

        Args:
            document: Path of the file to print
            color_mode: ColorMode.COLOR or ColorMode.BW (never MIXED)
            copies: Number of copies
            page_size: Paper size
            sided: Single or double sided

        Raises:
            DispatchError: With the ErrorKind of the failure
        """

    @abstractmethod
    def check_status(self) -> PrinterStatus:
        """Report whether the printer is currently able to accept jobs."""


# Tokens in lpstat output
_READY_TOKENS = ("is idle", "now printing", "enabled")
_DOWN_TOKENS = ("disabled", "offline", "stopped", "paused")


class CupsDispatcher(PrinterDispatcher):
    """
    Dispatcher backed by the CUPS command line tools.

    The color mode is passed per job as the IPP ``print-color-mode``
    option, so the driver-level mode never lags behind the spooled job.
    """

    def __init__(
        self,
        printer_name: str = "",
        timeout_seconds: float = 120.0,
        lp_command: str = "lp",
        lpstat_command: str = "lpstat",
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            printer_name: CUPS queue name; empty uses the system default printer
            timeout_seconds: Upper bound for each lp/lpstat invocation
            lp_command: lp executable (name or path)
            lpstat_command: lpstat executable (name or path)
            logger: Logger instance (creates default if not provided)
        """
        self.printer_name = printer_name
        self.timeout_seconds = timeout_seconds
        self._lp = lp_command
        self._lpstat = lpstat_command
        self._logger = logger or logging.getLogger("print_queue.core.printer_dispatcher")

    def build_command(
        self,
        document: Path,
        color_mode: ColorMode,
        copies: int,
        page_size: PageSize,
        sided: Sided,
    ) -> List[str]:
        """Build the lp argument list for one document."""
        command = [self._lp]
        if self.printer_name:
            command += ["-d", self.printer_name]
        command += ["-n", str(max(1, copies))]
        command += ["-o", f"media={page_size.value}"]
        command += [
            "-o",
            "print-color-mode=monochrome" if color_mode is ColorMode.BW else "print-color-mode=color",
        ]
        command += [
            "-o",
            "sides=two-sided-long-edge" if sided is Sided.DOUBLE else "sides=one-sided",
        ]
        command.append(str(document))
        return command

    def dispatch(
        self,
        document: Path,
        color_mode: ColorMode,
        copies: int = 1,
        page_size: PageSize = PageSize.A4,
        sided: Sided = Sided.SINGLE,
    ) -> None:
        if color_mode is ColorMode.MIXED:
            raise ValueError("Mixed color documents must be split before dispatch")

        status = self.check_status()
        if not status.available:
            raise PrinterUnavailableError(
                f"{status.message}. {status.details}".strip(), self.printer_name
            )

        command = self.build_command(document, color_mode, copies, page_size, sided)
        self._logger.info(
            f"Dispatching {document.name} (mode={color_mode.value}, copies={copies}, "
            f"size={page_size.value}, sided={sided.value})"
        )
        output = self._run(command)
        if output:
            # "request id is HP_LaserJet-42 (1 file(s))"
            self._logger.debug(f"lp: {output}")

    def check_status(self) -> PrinterStatus:
        if self.printer_name:
            command = [self._lpstat, "-p", self.printer_name]
        else:
            command = [self._lpstat, "-d"]

        try:
            output = self._run(command)
        except DispatchError as e:
            if e.kind is ErrorKind.PRINTER_UNAVAILABLE:
                return PrinterStatus(
                    available=False,
                    message=f"Printer not connected: {self.printer_name or 'default'}",
                    details="Please check USB connection and ensure printer is powered on",
                )
            return PrinterStatus(
                available=False,
                message="Printer check failed",
                details=e.message,
            )

        text = output.lower()
        if not self.printer_name:
            if "no system default destination" in text or not text:
                return PrinterStatus(
                    available=False,
                    message="Printer not found: no default printer configured",
                    details="Set PRINTER_NAME or configure a default CUPS destination",
                )
            return PrinterStatus(available=True, message="Printer is available", details=output)

        if not text:
            return PrinterStatus(
                available=False,
                message=f"Printer not found: {self.printer_name}",
                details="Printer may not be installed or connected.",
            )
        if any(token in text for token in _DOWN_TOKENS):
            return PrinterStatus(
                available=False,
                message=f"Printer is offline: {self.printer_name}",
                details="Printer may be powered off or disconnected. Please check power and USB connection.",
            )
        if any(token in text for token in _READY_TOKENS):
            return PrinterStatus(available=True, message="Printer is available", details=output)

        return PrinterStatus(available=True, message="Printer is available (status unclear)", details=output)

    def _run(self, command: Sequence[str]) -> str:
        """
        Run a CUPS command and return its stripped stdout.

        Raises:
            DispatchError: Missing executable, timeout or non-zero exit
        """
        if shutil.which(command[0]) is None:
            raise DispatchError(
                f"{command[0]} not found - is CUPS installed?",
                ErrorKind.TRANSIENT,
                self.printer_name,
            )

        try:
            completed = subprocess.run(
                list(command),
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired:
            raise DispatchError(
                f"{command[0]} timed out after {self.timeout_seconds:.0f}s",
                ErrorKind.TIMEOUT,
                self.printer_name,
            )
        except OSError as e:
            raise DispatchError(f"{command[0]} could not be started: {e}", ErrorKind.TRANSIENT, self.printer_name)

        if completed.returncode != 0:
            stderr = (completed.stderr or completed.stdout or "").strip()
            message = stderr or f"{command[0]} exited with status {completed.returncode}"
            lowered = message.lower()
            if "does not exist" in lowered or "unknown destination" in lowered:
                raise PrinterUnavailableError(f"Printer not found: {message}", self.printer_name)
            raise DispatchError(message, classify_error_message(message), self.printer_name)

        return (completed.stdout or "").strip()

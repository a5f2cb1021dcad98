"""
Unit tests for the CUPS dispatcher.

subprocess.run and shutil.which are patched; no printer is needed.
"""

import subprocess
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from core.exceptions import DispatchError, ErrorKind, PrinterUnavailableError
from core.printer_dispatcher import CupsDispatcher
from models.print_job import ColorMode, PageSize, Sided


def _completed(stdout="", stderr="", returncode=0):
    return Mock(stdout=stdout, stderr=stderr, returncode=returncode)


@pytest.fixture
def dispatcher():
    return CupsDispatcher(printer_name="HP_LaserJet", timeout_seconds=5)


@pytest.fixture
def cups():
    """Patch the CUPS tools; tests set side_effect / return_value on ``run``."""
    with patch("core.printer_dispatcher.shutil.which", return_value="/usr/bin/lp"), \
            patch("core.printer_dispatcher.subprocess.run") as run:
        yield run


class TestBuildCommand:
    """Test lp argument construction."""

    def test_bw_single_sided(self, dispatcher):
        command = dispatcher.build_command(Path("/tmp/doc.pdf"), ColorMode.BW, 2, PageSize.A4, Sided.SINGLE)

        assert command == [
            "lp", "-d", "HP_LaserJet", "-n", "2",
            "-o", "media=A4",
            "-o", "print-color-mode=monochrome",
            "-o", "sides=one-sided",
            "/tmp/doc.pdf",
        ]

    def test_color_double_sided(self, dispatcher):
        command = dispatcher.build_command(Path("doc.pdf"), ColorMode.COLOR, 1, PageSize.A3, Sided.DOUBLE)

        assert "print-color-mode=color" in command
        assert "sides=two-sided-long-edge" in command
        assert "media=A3" in command

    def test_default_printer(self):
        command = CupsDispatcher().build_command(Path("doc.pdf"), ColorMode.BW, 1, PageSize.A4, Sided.SINGLE)
        assert "-d" not in command

    def test_copies_at_least_one(self, dispatcher):
        command = dispatcher.build_command(Path("doc.pdf"), ColorMode.BW, 0, PageSize.A4, Sided.SINGLE)
        assert command[command.index("-n") + 1] == "1"


class TestDispatch:
    """Test dispatch() and its error mapping."""

    def test_success(self, dispatcher, cups):
        cups.side_effect = [
            _completed("printer HP_LaserJet is idle.  enabled since Mon"),
            _completed("request id is HP_LaserJet-42 (1 file(s))"),
        ]

        dispatcher.dispatch(Path("doc.pdf"), ColorMode.BW)

        lp_command = cups.call_args_list[1].args[0]
        assert lp_command[0] == "lp"
        assert lp_command[-1] == "doc.pdf"
        assert cups.call_args_list[1].kwargs["timeout"] == 5

    def test_mixed_rejected(self, dispatcher, cups):
        with pytest.raises(ValueError):
            dispatcher.dispatch(Path("doc.pdf"), ColorMode.MIXED)
        cups.assert_not_called()

    def test_offline_printer(self, dispatcher, cups):
        cups.return_value = _completed("printer HP_LaserJet disabled since Mon -\n\tPaused")

        with pytest.raises(PrinterUnavailableError) as exc_info:
            dispatcher.dispatch(Path("doc.pdf"), ColorMode.BW)

        assert exc_info.value.kind is ErrorKind.PRINTER_UNAVAILABLE
        assert "offline" in exc_info.value.message
        assert cups.call_count == 1

    def test_timeout(self, dispatcher, cups):
        cups.side_effect = [
            _completed("printer HP_LaserJet is idle."),
            subprocess.TimeoutExpired(cmd="lp", timeout=5),
        ]

        with pytest.raises(DispatchError) as exc_info:
            dispatcher.dispatch(Path("doc.pdf"), ColorMode.BW)

        assert exc_info.value.kind is ErrorKind.TIMEOUT

    def test_lp_failure_is_transient(self, dispatcher, cups):
        cups.side_effect = [
            _completed("printer HP_LaserJet is idle."),
            _completed(stderr="lp: Unsupported document-format", returncode=1),
        ]

        with pytest.raises(DispatchError) as exc_info:
            dispatcher.dispatch(Path("doc.txt"), ColorMode.BW)

        assert exc_info.value.kind is ErrorKind.TRANSIENT
        assert "Unsupported document-format" in exc_info.value.message

    def test_missing_cups(self, dispatcher):
        with patch("core.printer_dispatcher.shutil.which", return_value=None):
            status = dispatcher.check_status()
            with pytest.raises(PrinterUnavailableError):
                dispatcher.dispatch(Path("doc.pdf"), ColorMode.BW)

        assert status.available is False
        assert "is CUPS installed" in status.details


class TestCheckStatus:
    """Test lpstat parsing."""

    def test_idle(self, dispatcher, cups):
        cups.return_value = _completed("printer HP_LaserJet is idle.  enabled since Mon")
        assert dispatcher.check_status().available is True

    def test_unknown_printer(self, dispatcher, cups):
        cups.return_value = _completed(stderr="lpstat: Invalid destination name in list \"HP\"", returncode=1)

        status = dispatcher.check_status()

        assert status.available is False
        assert status.message == "Printer check failed"

    def test_printer_does_not_exist(self, dispatcher, cups):
        cups.return_value = _completed(stderr="lpstat: The printer or class does not exist.", returncode=1)

        status = dispatcher.check_status()

        assert status.available is False
        assert status.message.startswith("Printer not connected")

    def test_no_default_destination(self, cups):
        cups.return_value = _completed("no system default destination")

        status = CupsDispatcher().check_status()

        assert status.available is False
        assert "no default printer" in status.message

    def test_default_destination(self, cups):
        cups.return_value = _completed("system default destination: Office")

        assert CupsDispatcher().check_status().available is True
        assert cups.call_args.args[0] == ["lpstat", "-d"]

    def test_empty_output(self, dispatcher, cups):
        cups.return_value = _completed("")

        status = dispatcher.check_status()

        assert status.available is False
        assert status.message == "Printer not found: HP_LaserJet"

    def test_to_dict(self, dispatcher, cups):
        cups.return_value = _completed("printer HP_LaserJet now printing HP_LaserJet-41")

        data = dispatcher.check_status().to_dict()

        assert data["available"] is True
        assert set(data) == {"available", "message", "details"}

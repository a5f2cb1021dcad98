"""
Unit tests for the data models.
"""

from datetime import datetime, timezone

import pytest

from core.exceptions import ErrorKind, InvalidJobError, InvalidPageColorsError
from models import (
    ColorMode,
    CustomerInfo,
    PageColorAssignment,
    PageSize,
    PrintJob,
    PrintResult,
    PrintingOptions,
    QueuedJob,
    Sided,
)


@pytest.fixture
def upstream_payload():
    """A job as stored by the queue (camelCase, as submitted upstream)."""
    return {
        "fileUrl": "https://storage.example.com/orders/123/thesis.pdf",
        "fileName": "thesis.pdf",
        "fileType": "application/pdf",
        "printingOptions": {
            "pageSize": "A3",
            "color": "mixed",
            "sided": "double",
            "copies": 2,
            "pageCount": 10,
            "pageColors": {"colorPages": [2, 3, 7], "bwPages": []},
        },
        "deliveryNumber": "A2025011511",
        "orderId": "ord_42",
        "customerInfo": {"name": "Asha", "email": "asha@example.com", "phone": "555-0100"},
    }


class TestPrintingOptions:
    """Test option parsing and defaults."""

    def test_defaults(self):
        options = PrintingOptions.from_dict(None)

        assert options.page_size is PageSize.A4
        assert options.color_mode is ColorMode.BW
        assert options.sided is Sided.SINGLE
        assert options.copies == 1
        assert options.page_count is None

    def test_numeric_strings_accepted(self):
        options = PrintingOptions.from_dict({"copies": "3", "pageCount": "12"})
        assert options.copies == 3
        assert options.page_count == 12

    @pytest.mark.parametrize("data, field", [
        ({"pageSize": "Letter"}, "pageSize"),
        ({"color": "sepia"}, "color"),
        ({"sided": "triple"}, "sided"),
        ({"copies": "many"}, "copies"),
        ({"copies": True}, "copies"),
    ])
    def test_invalid_values(self, data, field):
        with pytest.raises(InvalidJobError) as exc_info:
            PrintingOptions.from_dict(data)
        assert exc_info.value.field == field


class TestPageColorAssignment:
    """Test parsing of the submitted pageColors value."""

    def test_mapping(self):
        assignment = PageColorAssignment.parse({"colorPages": [2, 3], "bwPages": [1]})

        assert assignment.color_pages == frozenset({2, 3})
        assert assignment.bw_pages == frozenset({1})

    def test_list_uses_first(self):
        assignment = PageColorAssignment.parse([
            {"colorPages": [5], "bwPages": []},
            {"colorPages": [1], "bwPages": []},
        ])
        assert assignment.color_pages == frozenset({5})

    @pytest.mark.parametrize("raw", [None, []])
    def test_absent(self, raw):
        assert PageColorAssignment.parse(raw) is None

    @pytest.mark.parametrize("raw", [
        {"colorPages": [1]},
        {"bwPages": [1]},
        {"colorPages": 1, "bwPages": []},
        {"colorPages": [1.5], "bwPages": []},
        {"colorPages": [True], "bwPages": []},
        "1,2,3",
    ])
    def test_malformed(self, raw):
        with pytest.raises(InvalidPageColorsError):
            PageColorAssignment.parse(raw)

    def test_malformed_is_value_error(self):
        with pytest.raises(ValueError):
            PageColorAssignment.parse({"colorPages": "x", "bwPages": []})


class TestPrintJob:
    """Test the PrintJob model."""

    def test_from_dict(self, upstream_payload):
        job = PrintJob.from_dict(upstream_payload)

        assert job.file_source == upstream_payload["fileUrl"]
        assert job.display_name == "thesis.pdf"
        assert job.printing_options.color_mode is ColorMode.MIXED
        assert job.printing_options.page_size is PageSize.A3
        assert job.printing_options.copies == 2
        assert job.delivery_number == "A2025011511"
        assert job.customer_info == CustomerInfo("Asha", "asha@example.com", "555-0100")

    def test_round_trip(self, upstream_payload):
        assert PrintJob.from_dict(upstream_payload).to_dict() == upstream_payload

    def test_validate_missing_source(self):
        with pytest.raises(InvalidJobError) as exc_info:
            PrintJob(file_source="  ").validate()
        assert exc_info.value.field == "fileUrl"

    def test_validate_copies(self):
        job = PrintJob(file_source="https://x/a.pdf", printing_options=PrintingOptions(copies=0))
        with pytest.raises(InvalidJobError):
            job.validate()

    def test_assign_delivery_number_once(self):
        job = PrintJob(file_source="https://x/a.pdf")
        job.assign_delivery_number("A2025011511")
        job.assign_delivery_number("A2025011511")

        with pytest.raises(ValueError):
            job.assign_delivery_number("A2025011512")

    def test_file_extension(self):
        assert PrintJob(file_source="https://x/a", display_name="Report.DOCX").file_extension == ".docx"
        assert PrintJob(file_source="https://x/scan.png?sig=1", display_name="").file_extension == ".png"
        assert PrintJob(file_source="https://x/blob", display_name="blob").file_extension == ".pdf"

    def test_is_pdf(self):
        assert PrintJob(file_source="https://x/a.pdf").is_pdf is True
        assert PrintJob(file_source="https://x/a.png", display_name="a.png", mime_type="image/png").is_pdf is False

    def test_order_metadata(self, upstream_payload):
        assert PrintJob.from_dict(upstream_payload).has_order_metadata is True
        assert PrintJob(file_source="https://x/a.pdf").has_order_metadata is False


class TestQueuedJob:
    """Test queue bookkeeping."""

    def test_start_attempt(self):
        queued = QueuedJob.create(PrintJob(file_source="https://x/a.pdf"), 1)
        now = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)

        assert queued.start_attempt(now) == 1
        assert queued.start_attempt(now) == 2
        assert queued.last_attempt_at == now

    def test_persisted_form(self, upstream_payload):
        created = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)
        queued = QueuedJob.create(PrintJob.from_dict(upstream_payload), 3, now=created)
        queued.start_attempt(created)
        queued.last_error = "Printer is offline"
        queued.last_error_kind = ErrorKind.PRINTER_UNAVAILABLE.value

        restored = QueuedJob.from_dict(queued.to_dict())

        assert restored.id == queued.id
        assert restored.printer_index == 3
        assert restored.attempts == 1
        assert restored.created_at == created
        assert restored.last_attempt_at == created
        assert restored.last_error == "Printer is offline"
        assert restored.last_error_kind == "printer_unavailable"
        assert restored.job.to_dict() == upstream_payload

    def test_naive_timestamps_read_as_utc(self, upstream_payload):
        data = QueuedJob.create(PrintJob.from_dict(upstream_payload), 1).to_dict()
        data["createdAt"] = "2025-01-15T09:00:00"

        assert QueuedJob.from_dict(data).created_at.tzinfo == timezone.utc

    def test_missing_id_rejected(self, upstream_payload):
        with pytest.raises(KeyError):
            QueuedJob.from_dict({"job": upstream_payload})


class TestPrintResult:
    def test_completed(self):
        result = PrintResult.completed("A2025011511")

        assert result.success is True
        assert result.to_dict()["errorKind"] is None
        assert result.to_dict()["deliveryNumber"] == "A2025011511"

    def test_failed(self):
        result = PrintResult.failed("Printer is offline", "lp: offline", ErrorKind.PRINTER_UNAVAILABLE)

        data = result.to_dict()
        assert data["success"] is False
        assert data["message"] == "Printer is offline"
        assert data["errorKind"] == "printer_unavailable"

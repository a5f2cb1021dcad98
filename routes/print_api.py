"""
Print API routes (JSON, API key protected).

Handles:
- POST /api/print         - Queue one file (legacy shape) or several (multi-file shape)
- GET  /api/queue/status  - Queue snapshot
- POST /api/queue/clear   - Remove every queued job
- GET  /api/health        - Printer status and queue totals

Every route requires the API key, sent as ``X-API-Key: <key>`` or
``Authorization: Bearer <key>``.
"""

import hmac
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Dict, List, Optional

import bleach
from flask import Blueprint, current_app, jsonify, request

from core.exceptions import InvalidJobError
from models.print_job import CustomerInfo, PrintJob, PrintingOptions
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

print_api_bp = Blueprint("print_api", __name__, url_prefix="/api")

# Constants
MAX_NAME_LENGTH = 255
MAX_FIELD_LENGTH = 500


def _sanitize_text(text: Any, max_length: Optional[int] = MAX_FIELD_LENGTH) -> str:
    """Sanitize submitted text."""
    if text is None:
        return ""
    text = str(text).strip()
    text = bleach.clean(text, tags=[], strip=True)
    if max_length and len(text) > max_length:
        text = text[:max_length]
    return text


def _presented_api_key() -> str:
    key = request.headers.get("X-API-Key", "")
    if key:
        return key
    authorization = request.headers.get("Authorization", "")
    if authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip()
    return ""


def api_key_required(fn):
    """Reject requests that do not carry the configured API key."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        expected = current_app.config.get("API_KEY") or ""
        if not expected:
            logger.error("API_KEY not configured in environment")
            return jsonify({"success": False, "error": "Server configuration error"}), 500

        presented = _presented_api_key()
        if not presented or not hmac.compare_digest(presented.encode(), expected.encode()):
            logger.warning(f"Rejected request to {request.path}: invalid API key")
            return jsonify({"success": False, "error": "Unauthorized: Invalid API key"}), 401

        return fn(*args, **kwargs)
    return wrapper


# =============================================================================
# PAYLOAD NORMALIZATION
# =============================================================================

def _parse_printer_index(value: Any) -> int:
    if value is None or value == "":
        return 1
    try:
        index = int(value)
    except (TypeError, ValueError):
        raise InvalidJobError(f"Invalid printerIndex: {value!r}", field="printerIndex")
    if index < 0:
        raise InvalidJobError(f"Invalid printerIndex: {value!r}", field="printerIndex")
    return index


def _customer_info(raw: Any) -> Optional[CustomerInfo]:
    if not isinstance(raw, dict):
        return None
    return CustomerInfo.from_dict({
        "name": _sanitize_text(raw.get("name"), MAX_NAME_LENGTH),
        "email": _sanitize_text(raw.get("email"), MAX_NAME_LENGTH),
        "phone": _sanitize_text(raw.get("phone"), MAX_NAME_LENGTH),
    })


def _string_list(payload: Dict[str, Any], key: str) -> Optional[List[Any]]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise InvalidJobError(f"{key} must be an array", field=key)
    return value


def build_print_jobs(payload: Dict[str, Any]) -> List[PrintJob]:
    """
    Turn a submission into one PrintJob per file.

    Two shapes are accepted:
        legacy:     fileUrl, fileName, fileType
        multi-file: fileURLs, originalFileNames, fileTypes (parallel arrays)

    Both share printingOptions, orderId, customerInfo and orderSummary.
    For multi-file orders, a pageColors array with one entry per file is
    split so each file gets its own assignment.

    Raises:
        InvalidJobError: Missing files, mismatched arrays or bad options
    """
    if not isinstance(payload, dict):
        raise InvalidJobError("Request body must be a JSON object")

    raw_options = payload.get("printingOptions") or {}
    if not isinstance(raw_options, dict):
        raise InvalidJobError("printingOptions must be an object", field="printingOptions")
    options = PrintingOptions.from_dict(raw_options)

    order_id = _sanitize_text(payload.get("orderId"), MAX_NAME_LENGTH) or None
    customer_info = _customer_info(payload.get("customerInfo"))
    order_summary = payload.get("orderSummary")
    if order_summary is not None and not isinstance(order_summary, dict):
        raise InvalidJobError("orderSummary must be an object", field="orderSummary")

    def make_job(url: Any, name: Any, mime_type: Any, job_options: PrintingOptions) -> PrintJob:
        return PrintJob(
            file_source=str(url or "").strip(),
            display_name=_sanitize_text(name, MAX_NAME_LENGTH) or "document.pdf",
            mime_type=_sanitize_text(mime_type, MAX_NAME_LENGTH) or "application/pdf",
            printing_options=job_options,
            order_id=order_id,
            customer_info=customer_info,
            order_summary=order_summary or None,
        )

    file_urls = _string_list(payload, "fileURLs")
    if file_urls:
        names = _string_list(payload, "originalFileNames") or [
            f"File {index + 1}" for index in range(len(file_urls))
        ]
        types = _string_list(payload, "fileTypes") or []
        if len(names) != len(file_urls):
            raise InvalidJobError(
                "fileURLs and originalFileNames arrays must have the same length",
                field="originalFileNames",
            )

        page_colors = options.page_colors
        per_file_colors = isinstance(page_colors, list) and len(page_colors) == len(file_urls)

        jobs = []
        for index, url in enumerate(file_urls):
            job_options = options
            if per_file_colors:
                job_options = PrintingOptions.from_dict({**raw_options, "pageColors": page_colors[index]})
            mime_type = types[index] if index < len(types) else "application/octet-stream"
            jobs.append(make_job(url, names[index], mime_type, job_options))
        return jobs

    if payload.get("fileUrl"):
        return [make_job(payload["fileUrl"], payload.get("fileName"), payload.get("fileType"), options)]

    raise InvalidJobError(
        "Missing required fields: Either fileUrl/fileName or fileURLs/originalFileNames are required",
        field="fileUrl",
    )


# =============================================================================
# ROUTES
# =============================================================================

@print_api_bp.route("/print", methods=["POST"])
@api_key_required
def submit_print_job():
    """Queue the files of a submission, in order."""
    job_queue = current_app.config.get("JOB_QUEUE")
    if not job_queue:
        return jsonify({"success": False, "error": "Print queue unavailable"}), 503

    payload = request.get_json(silent=True)
    try:
        printer_index = _parse_printer_index((payload or {}).get("printerIndex"))
        jobs = build_print_jobs(payload)
        # Reject the whole submission before anything is queued
        for job in jobs:
            job.validate()
    except InvalidJobError as e:
        logger.warning(f"Rejected print submission: {e.message}")
        return jsonify({"success": False, "error": e.message}), 400

    try:
        # One write for the whole submission; a failure queues none of its files
        queued = job_queue.enqueue_many(jobs, printer_index)
    except OSError as e:
        logger.error(f"Could not queue print job: {e}", exc_info=True)
        return jsonify({"success": False, "error": "Failed to add print job"}), 500

    job_ids = [queued_job.id for queued_job in queued]
    delivery_numbers = [queued_job.job.delivery_number for queued_job in queued]

    response: Dict[str, Any] = {
        "success": True,
        "message": (
            "Print job added to queue" if len(queued) == 1
            else f"{len(queued)} print jobs added to queue"
        ),
        "jobId": job_ids[0],
        "jobIds": job_ids,
    }
    if any(delivery_numbers):
        response["deliveryNumber"] = delivery_numbers[0]
        response["deliveryNumbers"] = delivery_numbers

    logger.info(f"Queued {len(queued)} print job(s): {', '.join(job_ids)}")
    return jsonify(response)


@print_api_bp.route("/queue/status", methods=["GET"])
@api_key_required
def queue_status():
    job_queue = current_app.config.get("JOB_QUEUE")
    if not job_queue:
        return jsonify({"success": False, "error": "Print queue unavailable"}), 503

    return jsonify({"success": True, **job_queue.status()})


@print_api_bp.route("/queue/clear", methods=["POST"])
@api_key_required
def clear_queue():
    """Administrative escape hatch: drop every queued job."""
    job_queue = current_app.config.get("JOB_QUEUE")
    if not job_queue:
        return jsonify({"success": False, "error": "Print queue unavailable"}), 503

    removed = job_queue.clear()
    return jsonify({"success": True, "message": f"Removed {removed} jobs from queue", "removed": removed})


@print_api_bp.route("/health", methods=["GET"])
@api_key_required
def health():
    """Printer availability, queue totals and the delivery number position."""
    job_queue = current_app.config.get("JOB_QUEUE")
    dispatcher = current_app.config.get("PRINTER_DISPATCHER")
    issuer = current_app.config.get("DELIVERY_ISSUER")

    body: Dict[str, Any] = {
        "success": True,
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if dispatcher:
        body["printer"] = dispatcher.check_status().to_dict()
    else:
        body["printer"] = {"available": False, "message": "Printer dispatcher unavailable", "details": ""}

    if job_queue:
        snapshot = job_queue.status()
        body["queue"] = {
            "total": snapshot["total"],
            "pending": snapshot["pending"],
            "processing": job_queue.is_processing,
        }

    if issuer:
        body["deliveryNumber"] = issuer.snapshot().to_dict()

    return jsonify(body)

"""
Print job data models.

A PrintJob is one file to print, as submitted by the upstream ordering
service. Multi-file orders are split into one PrintJob per file at the HTTP
boundary before they reach the queue.

Persisted and wire form use the camelCase keys of the upstream payload:

    {
        "fileUrl": "https://storage.example.com/orders/123/thesis.pdf",
        "fileName": "thesis.pdf",
        "fileType": "application/pdf",
        "printingOptions": {
            "pageSize": "A4", "color": "mixed", "sided": "double", "copies": 2,
            "pageCount": 10,
            "pageColors": {"colorPages": [2, 3, 7], "bwPages": []}
        },
        "deliveryNumber": "A2025011511",
        "orderId": "ord_42",
        "customerInfo": {"name": "...", "email": "...", "phone": "..."}
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, Any, FrozenSet, Optional, Type, TypeVar
from urllib.parse import urlsplit

from core.exceptions import InvalidJobError, InvalidPageColorsError


class PageSize(Enum):
    A4 = "A4"
    A3 = "A3"


class ColorMode(Enum):
    COLOR = "color"
    BW = "bw"
    MIXED = "mixed"
    """Per-page assignment; split into monochrome and color runs before dispatch."""


class Sided(Enum):
    SINGLE = "single"
    DOUBLE = "double"


_E = TypeVar("_E", bound=Enum)


def _parse_enum(enum_cls: Type[_E], value: Any, default: _E, field_name: str) -> _E:
    if value is None or value == "":
        return default
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidJobError(
            f"Invalid {field_name}: {value!r} (expected one of: {allowed})",
            field=field_name,
        )


def _parse_int(value: Any, field_name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidJobError(f"Invalid {field_name}: {value!r}", field=field_name)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidJobError(f"Invalid {field_name}: {value!r}", field=field_name)


@dataclass(frozen=True)
class PageColorAssignment:
    """
    Which pages of a mixed-color document print in color.

    Page numbers are 1-based, as entered by the customer. Pages listed in
    neither set, or in both, print in black and white.
    """

    color_pages: FrozenSet[int]
    bw_pages: FrozenSet[int]

    @classmethod
    def parse(cls, raw: Any) -> Optional["PageColorAssignment"]:
        """
        Parse the submitted ``pageColors`` value.

        Accepts ``{"colorPages": [...], "bwPages": [...]}`` or a list of such
        mappings (one per file of a multi-file order, in which case the first
        one is used).

        Returns:
            The assignment, or None when nothing was submitted

        Raises:
            InvalidPageColorsError: The value is present but malformed
        """
        if raw is None:
            return None

        if isinstance(raw, list):
            if not raw:
                return None
            raw = raw[0]

        if not isinstance(raw, dict):
            raise InvalidPageColorsError(
                f"pageColors must be an object, got {type(raw).__name__}"
            )

        color_pages = raw.get("colorPages")
        bw_pages = raw.get("bwPages")
        if not isinstance(color_pages, list) or not isinstance(bw_pages, list):
            raise InvalidPageColorsError(
                "pageColors must contain colorPages and bwPages arrays",
                {"received": raw},
            )

        return cls(
            color_pages=cls._page_numbers(color_pages, "colorPages"),
            bw_pages=cls._page_numbers(bw_pages, "bwPages"),
        )

    @staticmethod
    def _page_numbers(values: list, key: str) -> FrozenSet[int]:
        pages = set()
        for value in values:
            if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
                raise InvalidPageColorsError(f"{key} contains a non-integer page: {value!r}")
            pages.add(int(value))
        return frozenset(pages)


@dataclass(frozen=True)
class PrintingOptions:
    """Printing options chosen by the customer."""

    page_size: PageSize = PageSize.A4
    color_mode: ColorMode = ColorMode.BW
    sided: Sided = Sided.SINGLE
    copies: int = 1

    page_count: Optional[int] = None
    """Page count reported by the ordering service (informational)."""

    page_colors: Any = None
    """``pageColors`` exactly as submitted; parsed by the executor."""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "pageSize": self.page_size.value,
            "color": self.color_mode.value,
            "sided": self.sided.value,
            "copies": self.copies,
        }
        if self.page_count is not None:
            data["pageCount"] = self.page_count
        if self.page_colors is not None:
            data["pageColors"] = self.page_colors
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PrintingOptions":
        """
        Create from the ``printingOptions`` mapping.

        Missing values take the upstream defaults (A4, black and white,
        single sided, one copy).

        Raises:
            InvalidJobError: Unknown enum value or non-numeric count
        """
        data = data or {}
        if not isinstance(data, dict):
            raise InvalidJobError("printingOptions must be an object", field="printingOptions")

        copies = _parse_int(data.get("copies"), "copies")
        return cls(
            page_size=_parse_enum(PageSize, data.get("pageSize"), PageSize.A4, "pageSize"),
            color_mode=_parse_enum(ColorMode, data.get("color"), ColorMode.BW, "color"),
            sided=_parse_enum(Sided, data.get("sided"), Sided.SINGLE, "sided"),
            copies=1 if copies is None else copies,
            page_count=_parse_int(data.get("pageCount"), "pageCount"),
            page_colors=data.get("pageColors"),
        )


@dataclass(frozen=True)
class CustomerInfo:
    """Customer contact details, printed on the order summary page."""

    name: str = ""
    email: str = ""
    phone: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "email": self.email, "phone": self.phone}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["CustomerInfo"]:
        if not data or not isinstance(data, dict):
            return None
        return cls(
            name=str(data.get("name") or ""),
            email=str(data.get("email") or ""),
            phone=str(data.get("phone") or ""),
        )


@dataclass
class PrintJob:
    """
    A single file to print.

    Immutable after creation except for ``delivery_number``, which is
    assigned exactly once (at submission or on the first print attempt).
    """

    file_source: str
    """URL (or local path) of the document."""

    display_name: str = "document.pdf"
    """Original file name, shown on logs and the summary page."""

    mime_type: str = "application/pdf"

    printing_options: PrintingOptions = field(default_factory=PrintingOptions)

    delivery_number: Optional[str] = None
    """``{LETTER}{YYYYMMDD}{PRINTER_INDEX}{FILE_NUMBER}``, see modules.delivery_number."""

    order_id: Optional[str] = None
    customer_info: Optional[CustomerInfo] = None

    order_summary: Optional[Dict[str, Any]] = None
    """Free-form order details for the end-of-job summary page."""

    def assign_delivery_number(self, delivery_number: str) -> None:
        """
        Set the delivery number.

        Raises:
            ValueError: A different delivery number is already assigned
        """
        if self.delivery_number and self.delivery_number != delivery_number:
            raise ValueError(
                f"Delivery number already assigned ({self.delivery_number})"
            )
        self.delivery_number = delivery_number

    def validate(self) -> None:
        """
        Check the fields the queue relies on.

        Raises:
            InvalidJobError: On the first problem found
        """
        if not isinstance(self.file_source, str) or not self.file_source.strip():
            raise InvalidJobError("Missing required field: fileUrl", field="fileUrl")
        if self.printing_options.copies < 1:
            raise InvalidJobError(
                f"copies must be a positive integer, got {self.printing_options.copies}",
                field="copies",
            )
        if self.printing_options.page_count is not None and self.printing_options.page_count < 1:
            raise InvalidJobError(
                f"pageCount must be positive, got {self.printing_options.page_count}",
                field="pageCount",
            )

    @property
    def file_extension(self) -> str:
        """Lower-case extension from the display name or the source URL, default ``.pdf``."""
        for candidate in (self.display_name, urlsplit(self.file_source).path):
            suffix = PurePosixPath(candidate or "").suffix.lower()
            if suffix:
                return suffix
        return ".pdf"

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == "application/pdf" or self.file_extension == ".pdf"

    @property
    def has_order_metadata(self) -> bool:
        return self.customer_info is not None or bool(self.order_summary)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted/wire form."""
        data: Dict[str, Any] = {
            "fileUrl": self.file_source,
            "fileName": self.display_name,
            "fileType": self.mime_type,
            "printingOptions": self.printing_options.to_dict(),
            "deliveryNumber": self.delivery_number,
        }
        if self.order_id is not None:
            data["orderId"] = self.order_id
        if self.customer_info is not None:
            data["customerInfo"] = self.customer_info.to_dict()
        if self.order_summary:
            data["orderSummary"] = self.order_summary
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PrintJob":
        """
        Create from the persisted/wire form.

        Raises:
            InvalidJobError: Malformed printing options
        """
        return cls(
            file_source=data.get("fileUrl") or "",
            display_name=data.get("fileName") or "document.pdf",
            mime_type=data.get("fileType") or "application/pdf",
            printing_options=PrintingOptions.from_dict(data.get("printingOptions")),
            delivery_number=data.get("deliveryNumber") or None,
            order_id=data.get("orderId"),
            customer_info=CustomerInfo.from_dict(data.get("customerInfo")),
            order_summary=data.get("orderSummary") or None,
        )

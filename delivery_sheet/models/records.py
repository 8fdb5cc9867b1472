"""
Record types for the delivery sheet.

Deliveries and costs are immutable values; the store replaces them
instead of mutating in place. Monetary totals keep the string the user
(or the AI) entered, and expose the numeric value through ``amount``.
"""

import math
import mimetypes
import time
from dataclasses import asdict, dataclass, fields
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Optional, Union

from delivery_sheet.formatting import NOT_AVAILABLE, parse_amount


@dataclass(frozen=True)
class DeliveryRecord:
    """One tracked shipment leg (pickup -> destination, amount charged)."""
    id: int
    date: str
    collection: str
    destination: str
    total: str = "0"
    observation: str = ""

    @property
    def amount(self) -> Decimal:
        """Numeric value of ``total``; unparseable totals count as zero."""
        return parse_amount(self.total) or Decimal("0")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "DeliveryRecord":
        """Build a record from its stored JSON shape.

        Raises:
            TypeError, ValueError, KeyError: if the data has the wrong shape
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected an object, got {type(data).__name__}")
        return cls(
            id=_coerce_id(data["id"]),
            date=_text(data.get("date")),
            collection=_text(data.get("collection")),
            destination=_text(data.get("destination")),
            total=_text(data.get("total")) or "0",
            observation=_text(data.get("observation")),
        )


@dataclass(frozen=True)
class CostRecord:
    """One tracked expense line item."""
    id: int
    date: str
    description: str
    total: str = "0"
    observation: str = ""

    @property
    def amount(self) -> Decimal:
        """Numeric value of ``total``; unparseable totals count as zero."""
        return parse_amount(self.total) or Decimal("0")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "CostRecord":
        """Build a record from its stored JSON shape."""
        if not isinstance(data, dict):
            raise TypeError(f"Expected an object, got {type(data).__name__}")
        return cls(
            id=_coerce_id(data["id"]),
            date=_text(data.get("date")),
            description=_text(data.get("description")),
            total=_text(data.get("total")) or "0",
            observation=_text(data.get("observation")),
        )


@dataclass(frozen=True)
class ExtractedDelivery:
    """A candidate delivery row returned by the extraction service."""
    date: str
    collection: str = NOT_AVAILABLE
    destination: str = NOT_AVAILABLE
    total: str = "0"
    observation: str = ""

    @classmethod
    def from_response_item(cls, item: dict) -> "ExtractedDelivery":
        """Map one response object to a candidate, applying field fallbacks."""
        return cls(
            date=_text(item.get("date")),
            collection=_text(item.get("collection")) or NOT_AVAILABLE,
            destination=_text(item.get("destination")) or NOT_AVAILABLE,
            total=_text(item.get("total")) or "0",
            observation=_text(item.get("observation")),
        )


@dataclass(frozen=True)
class ImagePayload:
    """Image content plus its declared media type."""
    data: bytes
    mime_type: str
    name: str = ""

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "ImagePayload":
        """Load an image file, guessing the media type from its extension."""
        path = Path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        if not mime_type or not mime_type.startswith("image/"):
            raise ValueError(f"Failed to parse file data: unknown image type for {path.name}")
        return cls(data=path.read_bytes(), mime_type=mime_type, name=path.name)


class IdGenerator:
    """
    Time-derived record ids.

    Ids are the current time in milliseconds; a batch takes consecutive
    values from there. The first id of every call is strictly greater than
    the last id handed out, so two calls within the same millisecond never
    collide.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None, last_id: int = 0):
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._last_id = last_id

    def seed(self, last_id: int) -> None:
        """Make sure future ids are greater than ``last_id``."""
        self._last_id = max(self._last_id, last_id)

    def next_id(self) -> int:
        return self.next_ids(1)[0]

    def next_ids(self, count: int) -> list[int]:
        """Return ``count`` unique ids, the index within the batch breaking ties."""
        if count <= 0:
            return []
        base = max(self._clock(), self._last_id + 1)
        ids = [base + index for index in range(count)]
        self._last_id = ids[-1]
        return ids


def record_field_names(record_type: type) -> frozenset[str]:
    """Editable field names of a record type (everything except ``id``)."""
    return frozenset(f.name for f in fields(record_type) if f.name != "id")


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _coerce_id(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("Record id must be a number")
    if isinstance(value, float) and not math.isfinite(value):
        raise TypeError(f"Invalid record id: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdecimal():
        return int(value)
    raise TypeError(f"Invalid record id: {value!r}")

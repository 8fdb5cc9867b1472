"""Typed records for the delivery and cost sheets."""

from .records import (
    CostRecord,
    DeliveryRecord,
    ExtractedDelivery,
    IdGenerator,
    ImagePayload,
)

__all__ = [
    "CostRecord",
    "DeliveryRecord",
    "ExtractedDelivery",
    "IdGenerator",
    "ImagePayload",
]

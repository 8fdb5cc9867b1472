"""LLM module for delivery receipt extraction using cloud or local vision models."""

from .client import BaseExtractionClient, GeminiClient, LMStudioClient, create_client
from .errors import (
    ExtractionError,
    ExtractionInProgressError,
    MissingCredentialError,
    NoDataExtractedError,
)
from .parser import DeliveryResponseParser

__all__ = [
    "BaseExtractionClient",
    "DeliveryResponseParser",
    "ExtractionError",
    "ExtractionInProgressError",
    "GeminiClient",
    "LMStudioClient",
    "MissingCredentialError",
    "NoDataExtractedError",
    "create_client",
]

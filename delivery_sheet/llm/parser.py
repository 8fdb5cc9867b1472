"""
Response parser for receipt extraction.

Handles:
- JSON extraction from model responses (raw or inside markdown fences)
- Unwrapping the array from object-wrapped responses
- Field-level fallbacks for missing or placeholder values
"""

import json
import logging
import re
from typing import Any, Optional

from delivery_sheet.llm.errors import ExtractionError
from delivery_sheet.models.records import ExtractedDelivery

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_MESSAGE = "A resposta da IA está vazia ou em formato inválido."

CODE_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*([\[{][\s\S]*?[\]}])\s*```")


class DeliveryResponseParser:
    """Turns the model's text output into candidate delivery rows."""

    def parse_response(self, response: Optional[str]) -> list[ExtractedDelivery]:
        """
        Parse a model response.

        Args:
            response: Raw response text

        Returns:
            Candidate rows, possibly empty when the model found nothing

        Raises:
            ExtractionError: If the response is empty or not valid JSON
        """
        if not response or not response.strip():
            raise ExtractionError(EMPTY_RESPONSE_MESSAGE)

        json_str = self._extract_json(response.strip())
        if json_str is None:
            logger.warning(f"No JSON found in response: {response[:200]!r}")
            raise ExtractionError(EMPTY_RESPONSE_MESSAGE)

        data = json.loads(json_str)
        items = self._unwrap_items(data)

        rows = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                logger.warning(f"Skipping response item {index}: not an object ({item!r})")
                continue
            rows.append(ExtractedDelivery.from_response_item(item))
        return rows

    def _extract_json(self, response: str) -> Optional[str]:
        """Extract a JSON array or object from the response string."""
        # The whole response is JSON (structured output)
        try:
            json.loads(response)
            return response
        except json.JSONDecodeError:
            pass

        # JSON inside a markdown code block
        match = CODE_BLOCK_PATTERN.search(response)
        if match and self._is_json(match.group(1)):
            return match.group(1)

        # First bracketed span in surrounding prose
        for pattern in (r"(\[[\s\S]*\])", r"(\{[\s\S]*\})"):
            match = re.search(pattern, response)
            if match and self._is_json(match.group(1)):
                return match.group(1)

        return None

    @staticmethod
    def _is_json(text: str) -> bool:
        try:
            json.loads(text)
            return True
        except json.JSONDecodeError:
            return False

    @staticmethod
    def _unwrap_items(data: Any) -> list:
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            for key in ("deliveries", "items", "data"):
                if isinstance(data.get(key), list):
                    return data[key]
            return [data]
        raise ExtractionError(EMPTY_RESPONSE_MESSAGE)


def parse_extraction_response(response: Optional[str]) -> list[ExtractedDelivery]:
    """
    Convenience function to parse a model response.

    Args:
        response: Raw response text

    Returns:
        Candidate delivery rows
    """
    parser = DeliveryResponseParser()
    return parser.parse_response(response)

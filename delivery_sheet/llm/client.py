"""
Receipt extraction clients.

Supports:
- Google Gemini (cloud, default)
- LM Studio or any OpenAI-compatible server (local)

Every client exposes the same ``extract(image)`` capability, so the
provider can be swapped without touching the record handling.
"""

import base64
import logging
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Optional

import requests
from PIL import Image, ImageOps, UnidentifiedImageError

from delivery_sheet.config import (
    AppConfig,
    ExtractionProvider,
    GeminiConfig,
    LMStudioConfig,
    get_config,
)
from delivery_sheet.llm.errors import ExtractionError, MissingCredentialError
from delivery_sheet.llm.parser import DeliveryResponseParser
from delivery_sheet.llm.prompts import (
    get_gemini_response_schema,
    get_json_schema,
    get_vision_prompt,
)
from delivery_sheet.models.records import ExtractedDelivery, ImagePayload

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "A chave da API do Google Gemini não está configurada."
FAILURE_MESSAGE = "Falha ao processar a imagem com a IA. Verifique o log para mais detalhes."


class BaseExtractionClient(ABC):
    """Abstract base class for receipt extraction clients."""

    def __init__(self, max_image_side: int = 1536):
        self.max_image_side = max_image_side
        self.parser = DeliveryResponseParser()

    @abstractmethod
    def get_provider_name(self) -> str:
        """Get the provider name."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the extraction service can be used."""
        pass

    @abstractmethod
    def _generate(self, image_base64: str, mime_type: str) -> str:
        """Send one image to the service and return the raw response text."""
        pass

    def _check_credentials(self) -> None:
        """Raise MissingCredentialError if the service needs a key that is not set."""
        pass

    def extract(self, image: ImagePayload) -> list[ExtractedDelivery]:
        """
        Extract candidate delivery rows from one image.

        Args:
            image: Image bytes and declared media type

        Returns:
            Candidate rows (possibly empty)

        Raises:
            MissingCredentialError: Before any request, if the key is missing
            ExtractionError: If the call or the response parsing fails
        """
        self._check_credentials()

        try:
            image_base64, mime_type = self._prepare_image(image)
            logger.info(
                f"Sending {image.name or 'image'} to {self.get_provider_name()} ({mime_type})"
            )
            response_text = self._generate(image_base64, mime_type)
            rows = self.parser.parse_response(response_text)
        except (
            requests.exceptions.RequestException,
            Image.DecompressionBombError,
            ExtractionError,
            ValueError,
            KeyError,
            IndexError,
            TypeError,
            AttributeError,
        ) as e:
            logger.exception(f"Error calling {self.get_provider_name()}: {e}")
            raise ExtractionError(FAILURE_MESSAGE) from e

        logger.info(f"{self.get_provider_name()} returned {len(rows)} row(s) for {image.name or 'image'}")
        return rows

    def _prepare_image(self, image: ImagePayload) -> tuple[str, str]:
        """
        Prepare image for the vision API: orient, convert, resize, encode.

        Bytes Pillow cannot decode are sent unchanged with their declared
        media type.

        Returns:
            Tuple of (base64_string, mime_type) e.g. ("abc...", "image/png")
        """
        try:
            pil_img = Image.open(BytesIO(image.data))
            pil_img.load()
        except (UnidentifiedImageError, OSError):
            logger.info(f"Sending {image.name or 'image'} without preprocessing ({image.mime_type})")
            return base64.b64encode(image.data).decode("utf-8"), image.mime_type

        # Apply EXIF orientation (phone photos)
        pil_img = ImageOps.exif_transpose(pil_img)

        # Convert to RGB (handles CMYK, RGBA, palette modes)
        if pil_img.mode != "RGB":
            pil_img = pil_img.convert("RGB")

        # Resize if too large (preserve aspect ratio)
        w, h = pil_img.size
        if max(w, h) > self.max_image_side:
            scale = self.max_image_side / max(w, h)
            new_w, new_h = int(w * scale), int(h * scale)
            pil_img = pil_img.resize((new_w, new_h), Image.LANCZOS)
            logger.info(f"Resized image from {w}x{h} to {new_w}x{new_h}")

        buffer = BytesIO()
        pil_img.save(buffer, format="PNG", optimize=True)
        b64 = base64.b64encode(buffer.getvalue()).decode("utf-8")

        logger.debug(f"Prepared image: {pil_img.size[0]}x{pil_img.size[1]}, PNG, {len(buffer.getvalue()):,} bytes")
        return b64, "image/png"


class GeminiClient(BaseExtractionClient):
    """Client for the Google Gemini generateContent API."""

    def __init__(self, config: Optional[GeminiConfig] = None, max_image_side: int = 1536):
        super().__init__(max_image_side=max_image_side)
        self.config = config or get_config().gemini
        self.base_url = self.config.base_url.rstrip("/")

    def get_provider_name(self) -> str:
        return "Gemini"

    def is_available(self) -> bool:
        """Check if the Gemini API key is configured."""
        return bool(self.config.api_key)

    def _check_credentials(self) -> None:
        if not self.config.api_key:
            raise MissingCredentialError(MISSING_KEY_MESSAGE)

    def _get_headers(self) -> dict:
        """Get request headers with authentication."""
        return {
            "x-goog-api-key": self.config.api_key,
            "Content-Type": "application/json",
        }

    def _generate(self, image_base64: str, mime_type: str) -> str:
        response = requests.post(
            f"{self.base_url}/models/{self.config.model}:generateContent",
            headers=self._get_headers(),
            json={
                "contents": [
                    {
                        "parts": [
                            {"text": get_vision_prompt()},
                            {
                                "inline_data": {
                                    "mime_type": mime_type,
                                    "data": image_base64,
                                }
                            },
                        ]
                    }
                ],
                "generationConfig": {
                    "temperature": self.config.temperature,
                    "responseMimeType": "application/json",
                    "responseSchema": get_gemini_response_schema(),
                },
            },
            timeout=self.config.timeout,
        )

        if response.status_code != 200:
            raise ExtractionError(f"Gemini returned status {response.status_code}: {response.text}")

        result = response.json()
        if not isinstance(result, dict):
            raise ExtractionError(f"Gemini returned an unexpected body: {str(result)[:200]}")
        candidates = result.get("candidates") or []
        if not candidates:
            logger.warning(f"Gemini returned no candidates: {result.get('promptFeedback')}")
            return ""
        parts = candidates[0].get("content", {}).get("parts", [])
        return "".join(part.get("text", "") for part in parts)


class LMStudioClient(BaseExtractionClient):
    """Client for LM Studio or another OpenAI-compatible local server."""

    def __init__(self, config: Optional[LMStudioConfig] = None, max_image_side: int = 1536):
        super().__init__(max_image_side=max_image_side)
        self.config = config or get_config().lm_studio
        self.base_url = self.config.base_url.rstrip("/")

    def get_provider_name(self) -> str:
        return "LM Studio"

    def is_available(self) -> bool:
        """Check if LM Studio server is running."""
        try:
            response = requests.get(f"{self.base_url}/models", timeout=5)
            return response.status_code == 200
        except requests.exceptions.RequestException as e:
            logger.debug(f"LM Studio not available: {e}")
            return False

    def _generate(self, image_base64: str, mime_type: str) -> str:
        response = requests.post(
            f"{self.base_url}/chat/completions",
            json={
                "model": self.config.model,
                "messages": [
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": get_vision_prompt()},
                            {
                                "type": "image_url",
                                "image_url": {
                                    "url": f"data:{mime_type};base64,{image_base64}"
                                }
                            }
                        ]
                    }
                ],
                "response_format": {
                    "type": "json_schema",
                    "json_schema": {
                        "name": "deliveries",
                        "strict": True,
                        "schema": get_json_schema(),
                    },
                },
                "temperature": self.config.temperature,
                "max_tokens": self.config.max_tokens,
            },
            timeout=self.config.timeout,
        )

        if response.status_code != 200:
            raise ExtractionError(f"LM Studio returned status {response.status_code}: {response.text}")

        result = response.json()
        if not isinstance(result, dict):
            raise ExtractionError(f"LM Studio returned an unexpected body: {str(result)[:200]}")
        return result["choices"][0]["message"]["content"] or ""


def create_client(
    config: Optional[AppConfig] = None,
    provider: Optional[ExtractionProvider] = None,
) -> BaseExtractionClient:
    """
    Create an extraction client.

    Args:
        config: Application configuration
        provider: Provider to use instead of the configured one

    Returns:
        Configured client instance
    """
    config = config or get_config()
    provider = provider or config.extraction_provider

    if provider == ExtractionProvider.GEMINI:
        return GeminiClient(config.gemini, max_image_side=config.max_image_side)
    elif provider == ExtractionProvider.LM_STUDIO:
        return LMStudioClient(config.lm_studio, max_image_side=config.max_image_side)
    raise ValueError(f"Unknown extraction provider: {provider}")

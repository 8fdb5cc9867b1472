"""
Configuration module for Delivery Sheet.

Handles settings for extraction providers, API keys, local storage,
export defaults and application-wide settings with validation.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

import requests
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_float(name: str) -> Optional[float]:
    """Read an optional float from the environment."""
    value = os.getenv(name, "").strip()
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class ExtractionProvider(Enum):
    """Supported AI providers for receipt extraction."""
    GEMINI = "gemini"
    LM_STUDIO = "lm_studio"  # Any OpenAI-compatible local server


@dataclass
class GeminiConfig:
    """Configuration for the Google Gemini API."""
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    model: str = field(default_factory=lambda: os.getenv("GEMINI_MODEL", "gemini-2.5-flash"))
    api_key: str = field(
        default_factory=lambda: os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY", "")
    )
    temperature: float = 0.1
    timeout: Optional[float] = field(default_factory=lambda: _env_float("EXTRACTION_TIMEOUT"))

    def validate_api_key(self) -> tuple[bool, str]:
        """Check that a Gemini key is available."""
        if self.api_key:
            return True, "Chave da API do Gemini configurada"
        return False, (
            "A chave da API do Google Gemini não está configurada. "
            "Defina GEMINI_API_KEY no .env ou informe-a nas configurações."
        )


@dataclass
class LMStudioConfig:
    """Configuration for LM Studio (OpenAI-compatible API)."""
    base_url: str = field(default_factory=lambda: os.getenv("LM_STUDIO_URL", "http://localhost:1234/v1"))
    model: str = field(default_factory=lambda: os.getenv("LM_STUDIO_MODEL", "qwen3-vl-4b-instruct"))
    temperature: float = 0.1
    max_tokens: int = 4096
    timeout: Optional[float] = field(default_factory=lambda: _env_float("EXTRACTION_TIMEOUT"))

    @staticmethod
    def validate_connection(base_url: str = "http://localhost:1234/v1") -> tuple[bool, str, list]:
        """Probe the server's model listing.

        Returns:
            Tuple of (reachable, message, model_ids)
        """
        try:
            response = requests.get(f"{base_url.rstrip('/')}/models", timeout=5)
        except requests.exceptions.ConnectionError:
            return False, f"Não foi possível conectar ao LM Studio em {base_url}. Inicie o servidor local.", []
        except requests.exceptions.RequestException as e:
            return False, f"Erro ao consultar o LM Studio: {e}", []

        if response.status_code != 200:
            return False, f"O LM Studio respondeu com status {response.status_code}", []

        model_ids = [entry.get("id", "?") for entry in response.json().get("data", [])]
        if not model_ids:
            return True, "LM Studio em execução, sem modelos carregados", model_ids
        return True, f"LM Studio em execução. Modelos: {', '.join(model_ids)}", model_ids


@dataclass
class StorageConfig:
    """Configuration for the local key-value storage file."""
    path: Path = field(
        default_factory=lambda: Path(
            os.getenv("DELIVERY_SHEET_STORAGE", "~/.delivery_sheet/storage.json")
        ).expanduser()
    )


@dataclass
class AppConfig:
    """Main application configuration."""
    # Extraction settings
    extraction_provider: ExtractionProvider = field(
        default_factory=lambda: ExtractionProvider(os.getenv("EXTRACTION_PROVIDER", "gemini"))
    )

    # Provider-specific configs
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    lm_studio: LMStudioConfig = field(default_factory=LMStudioConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    # Processing settings
    max_image_side: int = 1536

    # Sheet and export settings
    default_title: str = "Planilha de Entregas"
    export_dir: Path = field(default_factory=lambda: Path.home() / "Downloads")
    excel_currency_format: str = 'R$ #,##0.00'

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    def get_active_provider_config(self) -> dict:
        """Get configuration for the currently selected extraction provider."""
        if self.extraction_provider == ExtractionProvider.GEMINI:
            return {
                "provider": "gemini",
                "base_url": self.gemini.base_url,
                "model": self.gemini.model,
                "temperature": self.gemini.temperature,
                "timeout": self.gemini.timeout,
            }
        elif self.extraction_provider == ExtractionProvider.LM_STUDIO:
            return {
                "provider": "lm_studio",
                "base_url": self.lm_studio.base_url,
                "model": self.lm_studio.model,
                "temperature": self.lm_studio.temperature,
                "timeout": self.lm_studio.timeout,
            }
        else:
            raise ValueError(f"Unknown extraction provider: {self.extraction_provider}")


def validate_system_requirements(config: Optional[AppConfig] = None) -> dict:
    """
    Validate extraction providers and storage on startup.

    Returns:
        Dictionary with validation results for each requirement.
    """
    config = config or get_config()
    results = {}

    gemini_valid, gemini_msg = config.gemini.validate_api_key()
    results["gemini"] = {
        "configured": gemini_valid,
        "message": gemini_msg,
        "model": config.gemini.model,
    }

    # Only probe the local server when it is the selected provider
    if config.extraction_provider == ExtractionProvider.LM_STUDIO:
        available, message, models = LMStudioConfig.validate_connection(config.lm_studio.base_url)
    else:
        available, message, models = False, "LM Studio não selecionado", []
    results["lm_studio"] = {
        "available": available,
        "message": message,
        "models": models,
    }

    storage_dir = config.storage.path.parent
    results["storage"] = {
        "path": str(config.storage.path),
        "writable": os.access(storage_dir, os.W_OK) if storage_dir.exists() else True,
    }

    return results


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig()
    return _config

"""Application configuration helpers.

Credentials only come from the environment (or a local `.env` file):
`GEMINI_API_KEY` is billable and must never be hardcoded.
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"


class ConfigError(RuntimeError):
    """Raised when mandatory configuration is missing."""


@dataclass(frozen=True)
class Settings:
    gemini_api_key: str
    gemini_model: str = DEFAULT_MODEL
    max_output_tokens: int = 8192
    request_timeout: float = 120.0
    worker_port: int = 9000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    gemini_api_key = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY", "")
    gemini_model = os.getenv("GEMINI_MODEL") or DEFAULT_MODEL
    max_output_tokens = int(os.getenv("GEMINI_MAX_OUTPUT_TOKENS", "8192"))
    request_timeout = float(os.getenv("GEMINI_TIMEOUT_SECONDS", "120"))
    worker_port = int(os.getenv("WORKER_PORT", "9000"))

    if not gemini_api_key:
        logger.warning("GEMINI_API_KEY is not configured; extraction sessions cannot be opened.")

    return Settings(
        gemini_api_key=gemini_api_key,
        gemini_model=gemini_model,
        max_output_tokens=max_output_tokens,
        request_timeout=request_timeout,
        worker_port=worker_port,
    )


def require_api_key(settings: Settings) -> str:
    if not settings.gemini_api_key:
        raise ConfigError("GEMINI_API_KEY must be set in the environment to start a search.")
    return settings.gemini_api_key

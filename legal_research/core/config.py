import os
import logging
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, ValidationError

from legal_research.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

CourtChoice = Literal["supremecourt", "delhi", "bombay", "madras", "calcutta", "all"]
CitationStyle = Literal["AIR", "SCC", "Neutral", "SCC OnLine"]

KANOON_BASE_URL = "https://api.indiankanoon.org"

_TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Validated runtime configuration. Build it with `load_settings()`."""

    indian_kanoon_api_key: SecretStr = Field(..., description="API key from IndianKanoon")
    default_court: CourtChoice = "supremecourt"
    max_search_results: int = Field(20, ge=10, le=100)
    citation_style: CitationStyle = "SCC OnLine"
    enable_caching: bool = True
    cache_timeout: int = Field(60, ge=10, le=1440, description="Cache lifetime in minutes")
    debug: bool = False

    base_url: str = KANOON_BASE_URL
    request_delay_ms: int = Field(100, ge=0, le=5000)
    max_retries: int = Field(3, ge=1, le=10)
    http_timeout: float = Field(30.0, ge=1, le=120)

    def safe_summary(self) -> dict:
        """Settings as a dict without the secret, suitable for logs and /health."""
        data = self.model_dump(exclude={"indian_kanoon_api_key"})
        data["api_key_present"] = bool(self.indian_kanoon_api_key.get_secret_value())
        return data


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUTHY


def _env_raw(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return raw.strip()


def load_settings(env_file: Optional[str] = None, **overrides) -> Settings:
    """Read settings from the environment (and `.env`), validate them.

    Keyword overrides win over the environment, which is how tests build
    settings without touching `os.environ`.
    """
    load_dotenv(env_file)

    values = {
        "indian_kanoon_api_key": os.getenv("INDIAN_KANOON_API_KEY", ""),
        "default_court": _env_raw("DEFAULT_COURT"),
        "max_search_results": _env_raw("MAX_SEARCH_RESULTS"),
        "citation_style": _env_raw("CITATION_STYLE"),
        "enable_caching": _env_bool("ENABLE_CACHING", True),
        "cache_timeout": _env_raw("CACHE_TIMEOUT"),
        "debug": _env_bool("DEBUG", False),
        "base_url": _env_raw("KANOON_BASE_URL"),
        "request_delay_ms": _env_raw("KANOON_REQUEST_DELAY_MS"),
        "max_retries": _env_raw("KANOON_MAX_RETRIES"),
        "http_timeout": _env_raw("KANOON_HTTP_TIMEOUT"),
    }
    values = {k: v for k, v in values.items() if v is not None}
    values.update(overrides)

    key = values.get("indian_kanoon_api_key")
    if isinstance(key, SecretStr):
        key = key.get_secret_value()
    if not key or not str(key).strip():
        raise ConfigurationError("indian_kanoon_api_key", "INDIAN_KANOON_API_KEY is not set")

    try:
        return Settings(**values)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or "settings"
        raise ConfigurationError(field, first.get("msg", str(e))) from e


# Populated on app startup; exactly one of the two is set afterwards.
SETTINGS: Optional[Settings] = None
SETTINGS_ERROR: Optional[ConfigurationError] = None


def init_settings(env_file: Optional[str] = None) -> Optional[Settings]:
    global SETTINGS, SETTINGS_ERROR
    try:
        SETTINGS = load_settings(env_file)
        SETTINGS_ERROR = None
        logger.info(f"[CONFIG] Settings loaded: {SETTINGS.safe_summary()}")
    except ConfigurationError as e:
        SETTINGS = None
        SETTINGS_ERROR = e
        logger.error(f"[CONFIG] {e}")
    return SETTINGS

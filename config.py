import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

DEFAULT_GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1"
DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"


def _env_bool(value):
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    gemini_api_key: Optional[str] = None
    gemini_api_base: str = DEFAULT_GEMINI_API_BASE
    gemini_model: str = DEFAULT_GEMINI_MODEL
    gemini_timeout: float = 20.0
    gemini_retry_delay: float = 1.5
    internal_key: Optional[str] = None
    daily_image_limit: int = 30
    fetch_timeout: float = 10.0
    image_delay: float = 1.2
    vision_enabled: bool = True
    cors_origins: Tuple[str, ...] = ("*",)
    log_level: str = "INFO"
    port: int = 3000

    @classmethod
    def from_env(cls):
        """Read settings from the process environment (.env already loaded)."""
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_api_base=os.getenv("GEMINI_API_BASE", DEFAULT_GEMINI_API_BASE).rstrip("/"),
            gemini_model=os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
            gemini_timeout=float(os.getenv("GEMINI_TIMEOUT", "20")),
            gemini_retry_delay=float(os.getenv("GEMINI_RETRY_DELAY", "1.5")),
            internal_key=os.getenv("INTERNAL_KEY") or None,
            daily_image_limit=int(os.getenv("DAILY_IMAGE_LIMIT", "30")),
            fetch_timeout=float(os.getenv("FETCH_TIMEOUT", "10")),
            image_delay=float(os.getenv("IMAGE_DELAY", "1.2")),
            vision_enabled=_env_bool(os.getenv("VISION_ENABLED", "true")),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            port=int(os.getenv("PORT", "3000")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()

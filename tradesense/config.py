"""
Runtime configuration, read once from the environment (and .env) at startup.
"""

import logging
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"


class Settings(BaseModel):
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_MODEL
    gemini_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_image_bytes: int = Field(default=20 * 1024 * 1024, gt=0)
    preview_max_size: int = Field(default=480, gt=0)
    analysis_timezone: Optional[str] = None
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"
    port: int = 8002

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables (after loading .env)"""
        load_dotenv()

        values = {
            "gemini_api_key": os.getenv("GEMINI_API_KEY") or None,
            "gemini_model": os.getenv("GEMINI_MODEL", DEFAULT_MODEL),
            "analysis_timezone": os.getenv("ANALYSIS_TIMEZONE") or None,
            "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        }
        for key, env_name in (
            ("gemini_temperature", "GEMINI_TEMPERATURE"),
            ("max_image_bytes", "MAX_IMAGE_BYTES"),
            ("preview_max_size", "PREVIEW_MAX_SIZE"),
            ("port", "PORT"),
        ):
            raw = os.getenv(env_name)
            if raw:
                values[key] = raw

        origins = os.getenv("CORS_ORIGINS")
        if origins:
            values["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]

        settings = cls(**values)
        if not settings.gemini_api_key:
            logger.warning("GEMINI_API_KEY not set. AI analysis will fail.")
        return settings

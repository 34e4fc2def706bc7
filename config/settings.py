from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv


load_dotenv()


class Settings:
    """Application settings loaded from environment variables.

    Keep all endpoints, timeouts and storage locations centralized here.
    """

    app_env: str = os.getenv("APP_ENV", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Empty disables the remote source; lookups then use bundled data only.
    countries_api_url: str = os.getenv("COUNTRIES_API_URL", "https://restcountries.com/v3.1").strip()
    api_timeout_seconds: float = float(os.getenv("API_TIMEOUT_SECONDS", "10"))
    api_retry_attempts: int = int(os.getenv("API_RETRY_ATTEMPTS", "3"))
    api_retry_delay_seconds: float = float(os.getenv("API_RETRY_DELAY_SECONDS", "1.0"))
    api_retry_multiplier: float = float(os.getenv("API_RETRY_MULTIPLIER", "2.0"))

    country_cache_ttl_seconds: float = float(os.getenv("COUNTRY_CACHE_TTL_SECONDS", str(12 * 60 * 60)))
    country_list_cache_ttl_seconds: float = float(
        os.getenv("COUNTRY_LIST_CACHE_TTL_SECONDS", str(24 * 60 * 60))
    )
    local_country_data_path: Optional[str] = os.getenv("LOCAL_COUNTRY_DATA_PATH") or None

    session_timeout_seconds: float = float(os.getenv("SESSION_TIMEOUT_SECONDS", "1800"))
    # Empty keeps transcripts in memory.
    transcript_db_path: Optional[str] = os.getenv("TRANSCRIPT_DB_PATH") or None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

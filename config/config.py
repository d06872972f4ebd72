"""
config/config.py

Purpose
-------
Centralized client settings for the travel-guard toolkit.
- Normalizes environment variable names across legacy and canonical variants
  (``NEXT_PUBLIC_API_URL`` from the web frontend is still honoured).
- Provides strong typing and safe defaults for the HTTP retry policy and the
  attempt limiter guarding the login/register flows.

Notes for Maintainers
---------------------
- ``.env`` files are loaded via python-dotenv unless ``SETTINGS_SKIP_DOTENV=1``.
- Limiter values are expressed in milliseconds to stay compatible with the
  state persisted by the browser client.

Examples
--------
# Bash:
export API_BASE_URL='https://travel.example.com/api'
export RATE_LIMIT_MAX_ATTEMPTS=3
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_LOCALES = ("es", "en")

if os.getenv("SETTINGS_SKIP_DOTENV") != "1":
    load_dotenv()


# -----------------------------
# Helper functions
# -----------------------------
def _coalesce_env(*names: str, default: Optional[str] = None) -> Optional[str]:
    """Return the first non-empty environment variable from *names*."""
    for name in names:
        val = os.getenv(name)
        if val is not None and str(val).strip() != "":
            return val
    return default


def _parse_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    v = str(value).strip().lower()
    return v in {"1", "true", "yes", "y", "on"}


def _parse_int(value: Optional[str], *, default: int) -> int:
    if value is None or str(value).strip() == "":
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def _parse_float(value: Optional[str], *, default: float) -> float:
    if value is None or str(value).strip() == "":
        return default
    try:
        return float(str(value).strip())
    except ValueError:
        return default


# -----------------------------
# Main Settings
# -----------------------------
class Settings(BaseSettings):
    # --- Backend API ---
    api_base_url: str = Field(
        default_factory=lambda: (
            _coalesce_env("API_BASE_URL", "NEXT_PUBLIC_API_URL")
            or "http://localhost:3001/api"
        ).rstrip("/")
    )
    request_timeout_seconds: float = Field(
        default_factory=lambda: _parse_float(
            _coalesce_env("REQUEST_TIMEOUT_SECONDS", "HTTP_TIMEOUT_SECONDS"),
            default=10.0,
        )
    )

    # --- Retry policy ---
    retry_max_retries: int = Field(
        default_factory=lambda: _parse_int(
            _coalesce_env("RETRY_MAX_RETRIES"), default=3
        )
    )
    retry_base_delay_ms: int = Field(
        default_factory=lambda: _parse_int(
            _coalesce_env("RETRY_BASE_DELAY_MS"), default=1000
        )
    )

    # --- Attempt limiter ---
    rate_limit_max_attempts: int = Field(
        default_factory=lambda: _parse_int(
            _coalesce_env("RATE_LIMIT_MAX_ATTEMPTS"), default=5
        )
    )
    rate_limit_window_ms: int = Field(
        default_factory=lambda: _parse_int(
            _coalesce_env("RATE_LIMIT_WINDOW_MS"), default=60000
        )
    )
    rate_limit_lockout_ms: int = Field(
        default_factory=lambda: _parse_int(
            _coalesce_env("RATE_LIMIT_LOCKOUT_MS"), default=30000
        )
    )
    rate_limit_persist: bool = Field(
        default_factory=lambda: _parse_bool(
            _coalesce_env("RATE_LIMIT_PERSIST"), default=True
        )
    )

    # --- Storage ---
    state_store_path: Path = Field(
        default_factory=lambda: Path(
            _coalesce_env("CLIENT_STATE_PATH")
            or str(Path("log_storage") / "client_state.json")
        )
    )

    # --- Presentation / logging ---
    locale: str = Field(
        default_factory=lambda: (_coalesce_env("APP_LOCALE", "LANG_CODE") or "es")
    )
    log_level: str = Field(
        default_factory=lambda: (_coalesce_env("LOG_LEVEL") or "INFO").upper()
    )

    model_config = SettingsConfigDict(case_sensitive=False)

    @field_validator("request_timeout_seconds")
    def _validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout_seconds must be greater than zero")
        return v

    @field_validator("retry_max_retries", "retry_base_delay_ms")
    def _validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("retry settings must not be negative")
        return v

    @field_validator(
        "rate_limit_max_attempts", "rate_limit_window_ms", "rate_limit_lockout_ms"
    )
    def _validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("attempt limiter settings must be positive integers")
        return v

    @field_validator("api_base_url")
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    def _upper_log_level(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("locale", mode="before")
    def _normalise_locale(cls, v: str) -> str:
        # "en_US.UTF-8" style values are reduced to their language code.
        code = str(v or "es").strip().lower().split(".")[0].split("_")[0]
        if code not in SUPPORTED_LOCALES:
            raise ValueError(
                f"Unsupported locale {v!r}; expected one of {', '.join(SUPPORTED_LOCALES)}"
            )
        return code


# Singleton settings instance
settings = Settings()

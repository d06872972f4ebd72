"""Shared retry/backoff configuration defaults."""

DEFAULT_MAX_RETRIES: int = 3
DEFAULT_BASE_DELAY_MS: int = 1000
DEFAULT_REQUEST_TIMEOUT_SECONDS: float = 10.0

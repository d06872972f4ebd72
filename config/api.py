"""Backend endpoint catalogue and default request headers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from config.config import settings


@dataclass(frozen=True)
class ApiEndpoints:
    """Absolute URLs of the backend routes used by the client."""

    base_url: str
    auth_register: str
    auth_login: str
    auth_logout: str
    auth_verify: str
    health: str

    @classmethod
    def from_base_url(cls, base_url: Optional[str] = None) -> "ApiEndpoints":
        base = (base_url or settings.api_base_url).rstrip("/")
        return cls(
            base_url=base,
            auth_register=f"{base}/auth/register",
            auth_login=f"{base}/auth/login",
            auth_logout=f"{base}/auth/logout",
            auth_verify=f"{base}/auth/verify",
            health=f"{base}/health",
        )


def default_headers(token: Optional[str] = None) -> Dict[str, str]:
    """Return JSON headers, adding a bearer token when one is available."""

    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


__all__ = ["ApiEndpoints", "default_headers"]

"""Exception types raised by the HTTP layer."""

from __future__ import annotations

from typing import Optional

import httpx


class NetworkError(Exception):
    """Raised when a request kept failing after every retry was spent."""

    is_network_error = True

    def __init__(self, message: str, original_error: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ServerResponseError(Exception):
    """A 5xx response, raised internally so the retry policy can act on it."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"Server responded with status {response.status_code}")
        self.response = response

    @property
    def status_code(self) -> int:
        return self.response.status_code


__all__ = ["NetworkError", "ServerResponseError"]

"""Map failed requests to user-facing error categories."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx

from utils.errors import NetworkError, ServerResponseError
from utils.messages import translate


class ErrorType(str, Enum):
    NETWORK = "network"
    SERVER = "server"
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ErrorClassification:
    """Category, display message and retry hint for a failure."""

    type: ErrorType
    message: str
    can_retry: bool

    @property
    def counts_as_attempt(self) -> bool:
        """Whether the failure says something about the user's input.

        Connectivity and server trouble are not evidence of bad credentials,
        so they must not consume the attempt budget.
        """

        return self.type in {ErrorType.AUTHENTICATION, ErrorType.VALIDATION}


def _is_timeout(error: BaseException) -> bool:
    return isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError))


def describe_error(error: Optional[BaseException], *, locale: Optional[str] = None) -> str:
    """Return a readable description of a raw exception."""

    if error is None:
        return translate("error.unknown", locale)
    if _is_timeout(error):
        return translate("error.timeout", locale)
    if isinstance(error, httpx.RequestError):
        return translate("error.connection", locale)
    if isinstance(error, ServerResponseError):
        return translate("error.server_status", locale, status=error.status_code)
    if isinstance(error, NetworkError):
        return error.message
    return str(error) or translate("error.unknown", locale)


def classify_error(
    error: Optional[BaseException] = None,
    response: Any = None,
    *,
    locale: Optional[str] = None,
) -> ErrorClassification:
    """Classify an exception and/or a non-ok response.

    ``response`` only needs a ``status_code`` attribute, so both
    :class:`httpx.Response` and lightweight test doubles are accepted.
    """

    if error is not None:
        if _is_timeout(error):
            return ErrorClassification(
                ErrorType.NETWORK, translate("classify.timeout", locale), True
            )
        if getattr(error, "is_network_error", False) or isinstance(
            error, httpx.RequestError
        ):
            return ErrorClassification(
                ErrorType.NETWORK, translate("classify.network", locale), True
            )
        if response is None and isinstance(error, ServerResponseError):
            response = error.response

    status = getattr(response, "status_code", None)
    if status is not None:
        if status in (401, 403):
            return ErrorClassification(
                ErrorType.AUTHENTICATION,
                translate("classify.authentication", locale),
                False,
            )
        if status >= 500:
            return ErrorClassification(
                ErrorType.SERVER, translate("classify.server", locale), True
            )
        if status >= 400:
            return ErrorClassification(
                ErrorType.VALIDATION, translate("classify.validation", locale), False
            )

    return ErrorClassification(
        ErrorType.UNKNOWN, translate("classify.unknown", locale), True
    )


__all__ = ["ErrorClassification", "ErrorType", "classify_error", "describe_error"]

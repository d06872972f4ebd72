"""Shared asynchronous HTTP client with bounded retries."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from utils import observability
from utils.error_classification import describe_error
from utils.errors import NetworkError, ServerResponseError
from utils.messages import translate
from utils.retry import (
    DEFAULT_BASE_DELAY_MS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

# Every httpx failure (transport, timeout, redirect loop, body decoding) is
# retried. Task cancellation is not an ``httpx.HTTPError``.
RETRYABLE_EXCEPTIONS = (httpx.HTTPError, ServerResponseError)

TimeoutLike = Union[float, httpx.Timeout]


def _attempt_deadline(timeout: TimeoutLike) -> Optional[float]:
    """Wall-clock seconds allowed for one attempt, if any."""

    if isinstance(timeout, httpx.Timeout):
        parts = [
            value
            for value in (timeout.connect, timeout.read, timeout.write, timeout.pool)
            if value is not None
        ]
        return max(parts) if parts else None
    return float(timeout) if timeout else None


@dataclass(frozen=True)
class RetryEvent:
    """Progress notification passed to ``RetryConfig.on_retry``."""

    attempt: int
    max_retries: int
    delay_ms: int
    error: Optional[BaseException]
    message: str


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS
    on_retry: Optional[Callable[[RetryEvent], None]] = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must be >= 0")

    @classmethod
    def from_settings(
        cls,
        *,
        on_retry: Optional[Callable[[RetryEvent], None]] = None,
        source: Any = None,
    ) -> "RetryConfig":
        if source is None:
            from config.config import settings as source

        return cls(
            max_retries=int(source.retry_max_retries),
            base_delay_ms=int(source.retry_base_delay_ms),
            on_retry=on_retry,
        )

    def delay_for(self, attempt: int) -> int:
        """Backoff in milliseconds after the zero-based *attempt* failed."""

        return self.base_delay_ms * 2**attempt


@dataclass(frozen=True)
class RequestDescriptor:
    """A single logical request.

    ``timeout`` bounds each attempt separately. When left as ``None`` the
    client default applies; a caller-supplied value is used as is.
    """

    url: str
    method: str = "GET"
    headers: Optional[Mapping[str, str]] = None
    params: Optional[Mapping[str, Any]] = None
    json: Optional[Any] = None
    content: Optional[Union[str, bytes]] = None
    timeout: Optional[TimeoutLike] = None


class AsyncHTTP:
    """Wrapper around :class:`httpx.AsyncClient` with the shared retry policy.

    5xx responses and any httpx failure are retried with exponential
    backoff; 2xx-4xx responses are returned to the caller untouched. Each
    attempt is bounded in wall-clock time by its timeout. Task cancellation
    is never retried and never wrapped.
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        follow_redirects: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.default_timeout = timeout or DEFAULT_REQUEST_TIMEOUT_SECONDS
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=base_url or "",
            headers=dict(headers or {}),
            timeout=httpx.Timeout(self.default_timeout),
            follow_redirects=follow_redirects,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, *, source: Any = None, **kwargs: Any) -> "AsyncHTTP":
        if source is None:
            from config.config import settings as source

        kwargs.setdefault("timeout", float(source.request_timeout_seconds))
        return cls(**kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncHTTP":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def fetch_with_retry(
        self,
        descriptor: RequestDescriptor,
        retry_config: Optional[RetryConfig] = None,
    ) -> httpx.Response:
        """Send *descriptor*, retrying transient failures.

        Raises :class:`NetworkError` once ``max_retries`` retries have failed.
        """

        config = retry_config or RetryConfig()
        with observability.request_context():
            retrying = AsyncRetrying(
                sleep=self._sleep,
                stop=stop_after_attempt(config.max_retries + 1),
                wait=wait_exponential(
                    multiplier=config.base_delay_ms / 1000.0, exp_base=2
                ),
                retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
                before_sleep=self._retry_notifier(config),
                reraise=False,
            )
            try:
                async for attempt in retrying:
                    with attempt:
                        response = await self._send(descriptor)
            except RetryError as exc:
                last_error = exc.last_attempt.exception()
                logger.error(
                    "HTTP request failed after retries",
                    extra={
                        "method": descriptor.method,
                        "url": descriptor.url,
                        "attempts": config.max_retries + 1,
                        "error": describe_error(last_error),
                    },
                )
                raise NetworkError(
                    translate("network.exhausted"), original_error=last_error
                ) from last_error
            return response

    async def request(
        self,
        method: str,
        url: str,
        *,
        retry_config: Optional[RetryConfig] = None,
        **fields: Any,
    ) -> httpx.Response:
        descriptor = RequestDescriptor(url=url, method=method, **fields)
        return await self.fetch_with_retry(descriptor, retry_config)

    async def get(self, url: str, **kw: Any) -> httpx.Response:
        return await self.request("GET", url, **kw)

    async def post(self, url: str, **kw: Any) -> httpx.Response:
        return await self.request("POST", url, **kw)

    async def put(self, url: str, **kw: Any) -> httpx.Response:
        return await self.request("PUT", url, **kw)

    async def patch(self, url: str, **kw: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kw)

    async def delete(self, url: str, **kw: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kw)

    async def _send(self, descriptor: RequestDescriptor) -> httpx.Response:
        timeout = (
            descriptor.timeout if descriptor.timeout is not None else self.default_timeout
        )
        logger.debug(
            "AsyncHTTP request",
            extra={"method": descriptor.method, "url": descriptor.url},
        )
        call = self._client.request(
            descriptor.method,
            descriptor.url,
            params=descriptor.params,
            json=descriptor.json,
            content=descriptor.content,
            headers=descriptor.headers,
            timeout=timeout,
        )
        deadline = _attempt_deadline(timeout)
        if deadline is None:
            response = await call
        else:
            # httpx bounds each connect/read separately; this bounds the whole attempt.
            try:
                response = await asyncio.wait_for(call, deadline)
            except asyncio.TimeoutError as exc:
                raise httpx.TimeoutException(
                    f"Request exceeded {deadline:g}s",
                    request=self._client.build_request(descriptor.method, descriptor.url),
                ) from exc
        if response.status_code >= 500:
            raise ServerResponseError(response)
        return response

    @staticmethod
    def _retry_notifier(config: RetryConfig) -> Callable[[RetryCallState], None]:
        def _notify(retry_state: RetryCallState) -> None:
            outcome = retry_state.outcome
            error = outcome.exception() if outcome is not None else None
            attempt = retry_state.attempt_number
            delay_ms = config.delay_for(attempt - 1)
            message = describe_error(error)
            logger.warning(
                "Retrying HTTP request after failure",
                extra={
                    "attempt": attempt,
                    "max_retries": config.max_retries,
                    "delay_ms": delay_ms,
                    "error": message,
                },
            )
            if config.on_retry is not None:
                config.on_retry(
                    RetryEvent(
                        attempt=attempt,
                        max_retries=config.max_retries,
                        delay_ms=delay_ms,
                        error=error,
                        message=message,
                    )
                )

        return _notify


__all__ = [
    "AsyncHTTP",
    "NetworkError",
    "RequestDescriptor",
    "RetryConfig",
    "RetryEvent",
]

"""Login/registration flow guarded by attempt limiters and HTTP retries."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from config.api import ApiEndpoints, default_headers
from utils import observability
from utils.async_http import AsyncHTTP, RequestDescriptor, RetryConfig
from utils.attempt_limiter import AttemptLimiter, LimitCheck, LimiterConfig, LimiterStatus
from utils.error_classification import ErrorClassification, classify_error
from utils.errors import NetworkError
from utils.key_value_store import KeyValueStore
from utils.messages import translate

logger = logging.getLogger(__name__)

LOGIN_STORAGE_KEY = "rateLimiter:login"
REGISTER_STORAGE_KEY = "rateLimiter:register"


class Credentials(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)
    name: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("password")
    def _password_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("password must not be blank")
        return v

    def login_body(self) -> Dict[str, str]:
        return {"email": str(self.email), "password": self.password}

    def register_body(self) -> Dict[str, str]:
        body = self.login_body()
        if self.name:
            body["name"] = self.name
        return body


@dataclass
class AuthOutcome:
    """Result of a guarded login or registration."""

    success: bool
    message: Optional[str] = None
    response: Optional[httpx.Response] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    classification: Optional[ErrorClassification] = None
    limit: Optional[LimitCheck] = None
    status: Optional[LimiterStatus] = None

    @property
    def token(self) -> Optional[str]:
        token = self.payload.get("token")
        return str(token) if token else None

    @property
    def blocked(self) -> bool:
        return self.limit is not None and not self.limit.allowed


def _json_payload(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


class GuardedAuthClient:
    """Compose limiter checks, retried requests and failure accounting.

    Only failures that reflect the submitted data (401/403/4xx) are recorded
    against the limiter. Exhausted network retries are reported but leave the
    attempt budget untouched, and task cancellation propagates unchanged.
    """

    def __init__(
        self,
        http: AsyncHTTP,
        *,
        endpoints: Optional[ApiEndpoints] = None,
        login_limiter: Optional[AttemptLimiter] = None,
        register_limiter: Optional[AttemptLimiter] = None,
        retry_config: Optional[RetryConfig] = None,
        locale: Optional[str] = None,
    ) -> None:
        self.http = http
        self.endpoints = endpoints or ApiEndpoints.from_base_url()
        self.login_limiter = login_limiter or AttemptLimiter(
            LimiterConfig(storage_key=LOGIN_STORAGE_KEY), locale=locale
        )
        self.register_limiter = register_limiter or AttemptLimiter(
            LimiterConfig(storage_key=REGISTER_STORAGE_KEY), locale=locale
        )
        self.retry_config = retry_config
        self.locale = locale

    @classmethod
    def from_settings(
        cls,
        http: AsyncHTTP,
        *,
        store: KeyValueStore,
        retry_config: Optional[RetryConfig] = None,
        source: Any = None,
    ) -> "GuardedAuthClient":
        if source is None:
            from config.config import settings as source

        locale = source.locale
        return cls(
            http,
            endpoints=ApiEndpoints.from_base_url(source.api_base_url),
            login_limiter=AttemptLimiter(
                LimiterConfig.from_settings(LOGIN_STORAGE_KEY, source=source),
                store=store,
                locale=locale,
            ),
            register_limiter=AttemptLimiter(
                LimiterConfig.from_settings(REGISTER_STORAGE_KEY, source=source),
                store=store,
                locale=locale,
            ),
            retry_config=retry_config or RetryConfig.from_settings(source=source),
            locale=locale,
        )

    async def login(self, credentials: Credentials) -> AuthOutcome:
        return await self._submit(
            self.login_limiter,
            self.endpoints.auth_login,
            credentials.login_body(),
            success_key="auth.login_success",
        )

    async def register(self, credentials: Credentials) -> AuthOutcome:
        return await self._submit(
            self.register_limiter,
            self.endpoints.auth_register,
            credentials.register_body(),
            success_key="auth.register_success",
        )

    def dispose(self) -> None:
        self.login_limiter.dispose()
        self.register_limiter.dispose()

    async def _submit(
        self,
        limiter: AttemptLimiter,
        url: str,
        body: Dict[str, Any],
        *,
        success_key: str,
    ) -> AuthOutcome:
        with observability.request_context():
            limit = limiter.check_limit()
            if not limit.allowed:
                logger.info(
                    "Auth attempt blocked by limiter",
                    extra={"storage_key": limiter.storage_key, "url": url},
                )
                return AuthOutcome(success=False, message=limit.message, limit=limit)

            descriptor = RequestDescriptor(
                url=url, method="POST", headers=default_headers(), json=body
            )
            try:
                response = await self.http.fetch_with_retry(descriptor, self.retry_config)
            except NetworkError as exc:
                classification = classify_error(exc, locale=self.locale)
                logger.warning(
                    "Auth request could not reach the server",
                    extra={"storage_key": limiter.storage_key, "url": url},
                )
                return AuthOutcome(
                    success=False,
                    message=classification.message,
                    classification=classification,
                    limit=limit,
                    status=limiter.get_status(),
                )

            payload = _json_payload(response)
            if response.is_success:
                limiter.record_success()
                return AuthOutcome(
                    success=True,
                    message=translate(success_key, self.locale),
                    response=response,
                    payload=payload,
                    limit=limit,
                    status=limiter.get_status(),
                )

            classification = classify_error(response=response, locale=self.locale)
            if classification.counts_as_attempt:
                limiter.record_attempt()
            status = limiter.get_status()

            message = str(
                payload.get("error") or payload.get("message") or classification.message
            )
            if classification.counts_as_attempt and status.remaining_attempts <= 2:
                message = " ".join(
                    (
                        message,
                        translate(
                            "limiter.low_attempts",
                            self.locale,
                            remaining=status.remaining_attempts,
                        ),
                    )
                )
            logger.info(
                "Auth request rejected",
                extra={
                    "storage_key": limiter.storage_key,
                    "status_code": response.status_code,
                    "error_type": classification.type.value,
                },
            )
            return AuthOutcome(
                success=False,
                message=message,
                response=response,
                payload=payload,
                classification=classification,
                limit=limit,
                status=status,
            )


__all__ = ["AuthOutcome", "Credentials", "GuardedAuthClient"]

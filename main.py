"""Command line entrypoint: run one guarded login or registration."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from pydantic import ValidationError

from config.config import settings
from utils import observability
from utils.async_http import AsyncHTTP, RetryConfig, RetryEvent
from utils.auth_flow import AuthOutcome, Credentials, GuardedAuthClient
from utils.key_value_store import InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore
from utils.messages import translate

_LOG_FORMAT = "%(asctime)s %(levelname)s [request_id=%(request_id)s] %(name)s %(message)s"

_request_id_filter_attached = False
_request_id_filter = observability.RequestIdFilter()


def _init_logging(level: Optional[str] = None) -> None:
    """Configure structured logging once per process."""

    global _request_id_filter_attached

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        root_logger.addHandler(handler)
    else:
        for handler in root_logger.handlers:
            formatter = handler.formatter
            if formatter is None or "%(request_id)" not in getattr(formatter, "_fmt", ""):
                handler.setFormatter(logging.Formatter(_LOG_FORMAT))

    if not _request_id_filter_attached:
        root_logger.addFilter(_request_id_filter)
        for handler in root_logger.handlers:
            handler.addFilter(_request_id_filter)
        _request_id_filter_attached = True

    root_logger.setLevel(level or settings.log_level)


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Submit credentials through the rate-limited auth client"
    )
    parser.add_argument("action", choices=("login", "register"))
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--name", default=None, help="Display name (register only)")
    parser.add_argument(
        "--no-persist",
        action="store_true",
        help="Keep limiter state in memory instead of the state file",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


def _build_store(no_persist: bool) -> KeyValueStore:
    if no_persist or not settings.rate_limit_persist:
        return InMemoryKeyValueStore()
    return JsonFileKeyValueStore(settings.state_store_path)


def _print_retry(event: RetryEvent) -> None:
    print(
        translate(
            "auth.retrying",
            attempt=event.attempt,
            max_retries=event.max_retries,
            seconds=event.delay_ms / 1000.0,
            error=event.message,
        ),
        file=sys.stderr,
    )


async def _run(args: argparse.Namespace) -> AuthOutcome:
    credentials = Credentials(email=args.email, password=args.password, name=args.name)
    async with AsyncHTTP.from_settings() as http:
        client = GuardedAuthClient.from_settings(
            http,
            store=_build_store(args.no_persist),
            retry_config=RetryConfig.from_settings(on_retry=_print_retry),
        )
        try:
            if args.action == "register":
                return await client.register(credentials)
            return await client.login(credentials)
        finally:
            client.dispose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    _init_logging()
    args = _parse_args(argv)
    try:
        outcome = asyncio.run(_run(args))
    except ValidationError as exc:
        logging.getLogger(__name__).error("Invalid credentials input: %s", exc)
        return 2

    print(outcome.message or "")
    return 0 if outcome.success else 1


if __name__ == "__main__":
    sys.exit(main())

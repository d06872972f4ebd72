"""Test configuration helpers and shared fixtures."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable, List

import httpx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("SETTINGS_SKIP_DOTENV", "1")


class FakeClock:
    """Millisecond clock advanced explicitly by tests."""

    def __init__(self, start: float = 1_700_000_000_000.0) -> None:
        self.current = start

    def now(self) -> float:
        return self.current

    def advance(self, milliseconds: float) -> None:
        self.current += milliseconds


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def mock_transport() -> Callable[..., httpx.MockTransport]:
    """Build an ``httpx.MockTransport`` that also counts the requests it saw."""

    def _factory(handler) -> httpx.MockTransport:
        seen: List[httpx.Request] = []

        def _handler(request: httpx.Request):
            seen.append(request)
            return handler(request)

        transport = httpx.MockTransport(_handler)
        transport.requests = seen  # type: ignore[attr-defined]
        return transport

    return _factory

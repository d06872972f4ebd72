"""Regression tests for the main module logging bootstrap and CLI."""

from __future__ import annotations

import logging

import httpx
import pytest

import main
from utils import observability
from utils.async_http import AsyncHTTP
from utils.messages import translate


def _reset_logging_state() -> None:
    """Return the logging module to a clean slate for deterministic tests."""

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        try:
            handler.close()
        except Exception:  # pragma: no cover - defensive cleanup
            pass
    for existing_filter in list(root_logger.filters):
        root_logger.removeFilter(existing_filter)
    logging.setLogRecordFactory(logging.LogRecord)
    main._request_id_filter_attached = False


@pytest.fixture
def clean_logging():
    yield
    _reset_logging_state()


@pytest.fixture
def fake_backend(monkeypatch, recording_sleep):
    """Route the CLI's HTTP client to an in-process handler."""

    state = {"handler": lambda request: httpx.Response(200, json={"token": "t"})}
    seen = []

    def _dispatch(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return state["handler"](request)

    def _from_settings(**kwargs):
        return AsyncHTTP(transport=httpx.MockTransport(_dispatch), sleep=recording_sleep)

    monkeypatch.setattr(main.AsyncHTTP, "from_settings", _from_settings)
    state["requests"] = seen
    return state


def test_init_logging_injects_default_request_id(clean_logging, capsys):
    _reset_logging_state()

    main._init_logging()

    logging.getLogger(__name__).info("log message emitted outside any request")
    captured = capsys.readouterr()
    assert "request_id=n/a" in captured.err


def test_logging_filter_respects_request_context(clean_logging, capsys):
    _reset_logging_state()

    main._init_logging()

    with observability.request_context("req-from-test"):
        logging.getLogger(__name__).info("log message with request context")
    captured = capsys.readouterr()
    assert "request_id=req-from-test" in captured.err


def test_init_logging_is_idempotent(clean_logging):
    _reset_logging_state()

    main._init_logging()
    main._init_logging()

    root_logger = logging.getLogger()
    assert len(root_logger.handlers) == 1
    assert root_logger.filters.count(main._request_id_filter) == 1


def test_main_login_success(clean_logging, fake_backend, capsys):
    _reset_logging_state()
    exit_code = main.main(
        ["login", "--email", "eve.holt@reqres.in", "--password", "cityslicka", "--no-persist"]
    )

    captured = capsys.readouterr()
    assert exit_code == 0
    assert translate("auth.login_success") in captured.out
    assert len(fake_backend["requests"]) == 1
    assert fake_backend["requests"][0].url.path.endswith("/auth/login")


def test_main_register_failure_returns_one(clean_logging, fake_backend, capsys):
    _reset_logging_state()
    fake_backend["handler"] = lambda request: httpx.Response(
        400, json={"error": "Email already registered"}
    )

    exit_code = main.main(
        [
            "register",
            "--email",
            "eve.holt@reqres.in",
            "--password",
            "pistol",
            "--name",
            "Eve",
            "--no-persist",
        ]
    )

    captured = capsys.readouterr()
    assert exit_code == 1
    assert "Email already registered" in captured.out
    assert fake_backend["requests"][0].url.path.endswith("/auth/register")


def test_main_rejects_invalid_email(clean_logging, fake_backend):
    _reset_logging_state()
    exit_code = main.main(["login", "--email", "nope", "--password", "x", "--no-persist"])

    assert exit_code == 2
    assert fake_backend["requests"] == []

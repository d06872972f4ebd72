from __future__ import annotations

import asyncio
from types import SimpleNamespace

import httpx
import pytest

from utils.error_classification import ErrorType, classify_error, describe_error
from utils.errors import NetworkError, ServerResponseError
from utils.messages import translate


def _response(status: int) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("POST", "https://api.test/x"))


@pytest.mark.parametrize(
    "status, expected_type, can_retry",
    [
        (401, ErrorType.AUTHENTICATION, False),
        (403, ErrorType.AUTHENTICATION, False),
        (400, ErrorType.VALIDATION, False),
        (404, ErrorType.VALIDATION, False),
        (422, ErrorType.VALIDATION, False),
        (429, ErrorType.VALIDATION, False),
        (500, ErrorType.SERVER, True),
        (503, ErrorType.SERVER, True),
        (302, ErrorType.UNKNOWN, True),
    ],
)
def test_classify_by_status(status, expected_type, can_retry):
    result = classify_error(response=_response(status))

    assert result.type is expected_type
    assert result.can_retry is can_retry
    assert result.message


def test_response_double_only_needs_status_code():
    result = classify_error(response=SimpleNamespace(status_code=401), locale="en")

    assert result.type is ErrorType.AUTHENTICATION
    assert result.message == translate("classify.authentication", "en")


def test_network_error_is_retryable_network_failure():
    error = NetworkError("down", original_error=httpx.ConnectError("refused"))

    result = classify_error(error)

    assert result.type is ErrorType.NETWORK
    assert result.can_retry is True
    assert result.message == translate("classify.network")


def test_any_object_flagged_as_network_error_is_network():
    class FlaggedError(Exception):
        is_network_error = True

    assert classify_error(FlaggedError("x")).type is ErrorType.NETWORK


@pytest.mark.parametrize(
    "error",
    [httpx.ReadTimeout("slow"), httpx.ConnectTimeout("slow"), asyncio.TimeoutError()],
)
def test_timeouts_get_timeout_message(error):
    result = classify_error(error, locale="en")

    assert result.type is ErrorType.NETWORK
    assert result.can_retry is True
    assert result.message == translate("classify.timeout", "en")


@pytest.mark.parametrize(
    "error",
    [httpx.TooManyRedirects("loop"), httpx.DecodingError("bad gzip")],
)
def test_non_transport_request_errors_are_network(error):
    result = classify_error(error, locale="en")

    assert result.type is ErrorType.NETWORK
    assert result.can_retry is True
    assert describe_error(error, locale="en") == "Internet connection error"


def test_server_response_error_uses_wrapped_status():
    error = ServerResponseError(_response(502))

    assert classify_error(error).type is ErrorType.SERVER


def test_explicit_response_wins_over_error_response():
    error = ServerResponseError(_response(502))

    assert classify_error(error, _response(401)).type is ErrorType.AUTHENTICATION


def test_unrelated_error_is_unknown():
    result = classify_error(ValueError("boom"))

    assert result.type is ErrorType.UNKNOWN
    assert result.can_retry is True
    assert classify_error().type is ErrorType.UNKNOWN


def test_only_input_failures_count_as_attempts():
    assert classify_error(response=_response(401)).counts_as_attempt
    assert classify_error(response=_response(422)).counts_as_attempt
    assert not classify_error(response=_response(500)).counts_as_attempt
    assert not classify_error(NetworkError("down")).counts_as_attempt
    assert not classify_error(ValueError("boom")).counts_as_attempt


def test_describe_error_messages():
    assert describe_error(None, locale="en") == "Unknown error"
    assert describe_error(httpx.ReadTimeout("slow"), locale="en") == "The request took too long"
    assert describe_error(httpx.ConnectError("refused"), locale="en") == "Internet connection error"
    assert (
        describe_error(ServerResponseError(_response(503)), locale="en")
        == "Server error: 503"
    )
    assert describe_error(NetworkError("gave up"), locale="en") == "gave up"
    assert describe_error(RuntimeError("odd"), locale="en") == "odd"
    assert describe_error(RuntimeError(), locale="en") == "Unknown error"


def test_error_type_values_are_strings():
    assert ErrorType.NETWORK == "network"
    assert ErrorType("authentication") is ErrorType.AUTHENTICATION

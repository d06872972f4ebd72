from __future__ import annotations

import json

import pytest

from utils.persistence import (
    KeyValueDocument,
    LimiterStateModel,
    atomic_write_json,
    load_json_or_default,
    parse_limiter_state,
)


def test_atomic_write_json_creates_parents(tmp_path):
    target = tmp_path / "a" / "b" / "doc.json"

    atomic_write_json(target, {"entries": {"k": "v"}}, model=KeyValueDocument)

    assert json.loads(target.read_text(encoding="utf-8")) == {"entries": {"k": "v"}}
    assert [p.name for p in target.parent.iterdir()] == ["doc.json"]


def test_load_json_or_default_reports_missing(tmp_path):
    payload, reason = load_json_or_default(
        tmp_path / "none.json", default=lambda: {"entries": {}}
    )

    assert payload == {"entries": {}}
    assert reason == "missing"


def test_load_json_or_default_returns_valid_payload(tmp_path):
    target = tmp_path / "doc.json"
    target.write_text('{"entries": {"a": "1"}}', encoding="utf-8")

    payload, reason = load_json_or_default(
        target, default={"entries": {}}, model=KeyValueDocument
    )

    assert reason is None
    assert payload == {"entries": {"a": "1"}}


def test_default_payload_is_not_shared(tmp_path):
    default = {"entries": {}}
    first, _ = load_json_or_default(tmp_path / "x.json", default=default)
    first["entries"]["k"] = "v"

    assert default == {"entries": {}}


def test_limiter_state_uses_camel_case_alias():
    state = LimiterStateModel(attempts=[1.0, 2.0], lockout_end_time=5.0)

    assert json.loads(state.to_json()) == {"attempts": [1.0, 2.0], "lockoutEndTime": 5.0}


def test_limiter_state_accepts_browser_documents():
    state = parse_limiter_state('{"attempts": [1700000000000], "lockoutEndTime": null, "v": 2}')

    assert state.attempts == [1700000000000.0]
    assert state.lockout_end_time is None


def test_parse_limiter_state_none_is_empty():
    state = parse_limiter_state(None)

    assert state.attempts == []
    assert state.lockout_end_time is None


@pytest.mark.parametrize("text", ["not json", '{"attempts": "many"}', "[]"])
def test_parse_limiter_state_rejects_malformed_text(text):
    with pytest.raises(ValueError):
        parse_limiter_state(text)

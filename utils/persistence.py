"""Atomic JSON documents and the persisted limiter snapshot."""

from __future__ import annotations

import json
import os
import tempfile
from copy import deepcopy
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class LimiterStateModel(BaseModel):
    """Persisted attempt limiter snapshot.

    The camelCase alias keeps documents written by the browser client
    readable (``{"attempts": [...], "lockoutEndTime": ...}``).
    """

    attempts: List[float] = Field(default_factory=list)
    lockout_end_time: Optional[float] = Field(default=None, alias="lockoutEndTime")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json", by_alias=True))


class KeyValueDocument(BaseModel):
    entries: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow")


def _validate_document(model: Type[BaseModel], data: Any) -> Dict[str, Any]:
    validated = data if isinstance(data, model) else model.model_validate(data)
    return validated.model_dump(mode="json", by_alias=True)


def atomic_write_json(
    path: str | os.PathLike[str],
    data: Any,
    *,
    model: Type[BaseModel] | None = None,
) -> None:
    """Write *data* next to *path* and rename it into place.

    Readers never observe a half-written document. With *model* the
    payload is validated and normalised before anything touches disk.
    """

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = _validate_document(model, data) if model is not None else data

    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=target.parent, suffix=".tmp", delete=False
    ) as handle:
        json.dump(payload, handle, ensure_ascii=False, indent=2)
        handle.flush()
        os.fsync(handle.fileno())
        temp_name = handle.name

    os.replace(temp_name, target)


def load_json_or_default(
    path: str | os.PathLike[str],
    *,
    default: Dict[str, Any] | Callable[[], Dict[str, Any]],
    model: Type[BaseModel] | None = None,
) -> Tuple[Dict[str, Any], str | None]:
    """Load a JSON object document, resetting it when unusable.

    Parameters
    ----------
    path:
        Location of the document.
    default:
        The empty document, or a callable producing it. A fresh copy is
        returned every time.
    model:
        Optional :class:`pydantic.BaseModel` the document must satisfy.

    Returns
    -------
    tuple
        ``(payload, reason)``. ``reason`` is ``None`` on success and
        ``"missing"`` when no file exists. ``"invalid_json"``,
        ``"type_mismatch"`` and ``"validation_error"`` mean the stored
        document was replaced on disk by the default.
    """

    target = Path(path)
    fallback = deepcopy(default() if callable(default) else default)

    if not target.exists():
        return fallback, "missing"

    try:
        raw = json.loads(target.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        reason = "invalid_json"
    else:
        if not isinstance(raw, dict):
            reason = "type_mismatch"
        elif model is None:
            return raw, None
        else:
            try:
                return _validate_document(model, raw), None
            except ValidationError:
                reason = "validation_error"

    atomic_write_json(target, fallback, model=model)
    return fallback, reason


def parse_limiter_state(text: Optional[str]) -> LimiterStateModel:
    """Decode a stored limiter snapshot; ``None`` yields the empty state.

    Malformed text raises :class:`pydantic.ValidationError`.
    """

    if text is None:
        return LimiterStateModel()
    return LimiterStateModel.model_validate_json(text)

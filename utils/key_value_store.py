"""String key-value stores used to persist client-side state."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from utils.persistence import KeyValueDocument, atomic_write_json, load_json_or_default

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Contract for durable string stores (the ``localStorage`` equivalent)."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored text for *key* or ``None`` when absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete *key*; removing an absent key is not an error."""


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store; state does not survive a restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._entries: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        self._entries[key] = value

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class JsonFileKeyValueStore(KeyValueStore):
    """Store backed by a single JSON document written atomically.

    The document is re-read on every access so that a second store instance
    (or a second process) pointed at the same file observes prior writes.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        entries = self._load()
        entries[key] = value
        self._write(entries)

    def remove(self, key: str) -> None:
        entries = self._load()
        if key not in entries:
            return
        del entries[key]
        self._write(entries)

    def keys(self) -> list[str]:
        return sorted(self._load())

    def _load(self) -> Dict[str, str]:
        raw, reason = load_json_or_default(
            self.path,
            default=lambda: {"entries": {}},
            model=KeyValueDocument,
        )
        if reason and reason != "missing":
            logger.warning(
                "Key-value store at %s was reset due to %s; using default schema.",
                self.path,
                reason,
            )
        entries = raw.get("entries")
        return dict(entries) if isinstance(entries, dict) else {}

    def _write(self, entries: Dict[str, str]) -> None:
        atomic_write_json(self.path, {"entries": entries}, model=KeyValueDocument)


__all__ = ["InMemoryKeyValueStore", "JsonFileKeyValueStore", "KeyValueStore"]

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class StorageLimitError(ValueError):
    """Raised by size-limited stores when a value does not fit."""


class KeyValueStore(Protocol):
    """
    Minimal string key-value surface shared by the durable store (localStorage-like)
    and the backup store (cookie-like).

    get() returns None for missing or expired keys. It never raises on content.
    """

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, *, expires_at: datetime | None = None) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from urllib.parse import quote

from utmtrack.core.clock import Clock, ensure_utc

from .types import StorageLimitError


@dataclass(frozen=True)
class _Entry:
    value: str
    expires_at: datetime | None


class MemoryStore:
    """
    In-memory durable store. Expiry is honored when a clock is supplied.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock
        self._data: dict[str, _Entry] = {}

    def get(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            del self._data[key]
            return None
        return entry.value

    def set(self, key: str, value: str, *, expires_at: datetime | None = None) -> None:
        if not isinstance(value, str):
            raise TypeError(f"value for {key!r} must be str, got {type(value).__name__}")
        self._data[key] = _Entry(
            value=value, expires_at=ensure_utc(expires_at) if expires_at else None
        )

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[str]:
        return [k for k in list(self._data) if self.get(k) is not None]

    def _expired(self, entry: _Entry) -> bool:
        if entry.expires_at is None or self._clock is None:
            return False
        return ensure_utc(self._clock.now()) >= entry.expires_at


class CookieJarStore(MemoryStore):
    """
    Size-limited backup store modeled on browser cookies.

    - Values are measured URL-encoded (as written to document.cookie), name included.
    - Values over max_bytes are rejected with StorageLimitError; the previous value survives.
    - Expiry requires a clock.
    """

    def __init__(self, clock: Clock, *, max_bytes: int = 4096) -> None:
        if max_bytes <= 0:
            raise ValueError("max_bytes must be > 0")
        super().__init__(clock)
        self.max_bytes = int(max_bytes)

    def encoded_size(self, key: str, value: str) -> int:
        return len(f"{key}={quote(value, safe='')}".encode())

    def set(self, key: str, value: str, *, expires_at: datetime | None = None) -> None:
        size = self.encoded_size(key, value)
        if size > self.max_bytes:
            raise StorageLimitError(
                f"cookie {key!r} is {size} bytes encoded, limit is {self.max_bytes}"
            )
        super().set(key, value, expires_at=expires_at)

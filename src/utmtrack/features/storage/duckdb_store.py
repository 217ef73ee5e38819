from __future__ import annotations

from datetime import datetime

from utmtrack.core.clock import Clock, ensure_utc
from utmtrack.features.persistence.duckdb_adapter import DuckDBAdapter


class DuckDBKeyValueStore:
    """
    Durable KeyValueStore on the kv_store table. One namespace per browser profile.
    """

    def __init__(self, adapter: DuckDBAdapter, *, namespace: str, clock: Clock | None = None):
        self.adapter = adapter
        self.namespace = namespace
        self._clock = clock

    def get(self, key: str) -> str | None:
        row = self.adapter.kv_get(self.namespace, key)
        if row is None:
            return None
        value, expires_at = row
        if expires_at is not None and self._clock is not None:
            if ensure_utc(self._clock.now()) >= ensure_utc(expires_at):
                self.adapter.kv_delete(self.namespace, key)
                return None
        return value

    def set(self, key: str, value: str, *, expires_at: datetime | None = None) -> None:
        if not isinstance(value, str):
            raise TypeError(f"value for {key!r} must be str, got {type(value).__name__}")
        self.adapter.kv_set(
            self.namespace, key, value, ensure_utc(expires_at) if expires_at else None
        )

    def delete(self, key: str) -> None:
        self.adapter.kv_delete(self.namespace, key)

    def clear(self) -> None:
        self.adapter.kv_clear(self.namespace)

from __future__ import annotations

from datetime import datetime, timedelta

from utmtrack.core.clock import Clock
from utmtrack.core.logging import get_logger
from utmtrack.features.attribution.types import (
    AttributionRecord,
    parse_record,
    serialize_record,
)
from utmtrack.features.storage.types import KeyValueStore, StorageLimitError


class PersistenceSynchronizer:
    """
    Keeps the durable store (authoritative) and the backup store (recovery only)
    consistent for the attribution record.

    - Reads never raise; corrupt values read as None.
    - A record in the durable store is never overwritten.
    - backup -> durable happens only in heal().
    - Last write wins across tabs; there is no locking.
    """

    def __init__(
        self,
        *,
        durable: KeyValueStore,
        backup: KeyValueStore,
        clock: Clock,
        storage_key: str = "utm_tracking_data",
        expiration_days: float = 90.0,
    ) -> None:
        self.durable = durable
        self.backup = backup
        self.clock = clock
        self.storage_key = storage_key
        self.expiration_days = float(expiration_days)
        self._logger = get_logger(__name__)

    def current_durable(self) -> AttributionRecord | None:
        return self._read(self.durable, "durable")

    def current_backup(self) -> AttributionRecord | None:
        return self._read(self.backup, "backup")

    def expires_at(self) -> datetime:
        return self.clock.now() + timedelta(days=self.expiration_days)

    def heal(self) -> bool:
        """
        Repair whichever store is missing the record. Returns True if anything was written.
        """
        durable = self.current_durable()
        if durable is None:
            raw = self.backup.get(self.storage_key)
            if raw is None or parse_record(raw) is None:
                return False
            self.durable.set(self.storage_key, raw, expires_at=self.expires_at())
            self._logger.info(
                "attribution restored from backup",
                extra={"feature": "sync", "key": self.storage_key, "reason": "durable_missing"},
            )
            return True

        if self.current_backup() is None:
            return self._write_backup(serialize_record(durable), reason="backup_missing")
        return False

    def reconcile(self, resolved: AttributionRecord | None) -> None:
        if resolved is None or resolved.is_empty():
            self.heal()
            return

        if self.current_durable() is not None:
            # first touch: keep what is stored, only repair the backup
            self.heal()
            return

        raw = serialize_record(resolved)
        self.durable.set(self.storage_key, raw, expires_at=self.expires_at())
        self._write_backup(raw, reason="stored")
        self._logger.info(
            "attribution stored",
            extra={"feature": "sync", "source": resolved.source, "key": self.storage_key},
        )

    def _write_backup(self, raw: str, *, reason: str) -> bool:
        try:
            self.backup.set(self.storage_key, raw, expires_at=self.expires_at())
        except StorageLimitError as e:
            self._logger.warning(
                f"backup write rejected: {e}",
                extra={"feature": "sync", "key": self.storage_key, "reason": reason},
            )
            return False
        return True

    def _read(self, store: KeyValueStore, which: str) -> AttributionRecord | None:
        raw = store.get(self.storage_key)
        if raw is None:
            return None
        record = parse_record(raw)
        if record is None:
            self._logger.warning(
                f"ignoring unparseable {which} attribution value",
                extra={"feature": "sync", "key": self.storage_key, "reason": "corrupt"},
            )
        return record

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from utmtrack.core.clock import Clock
from utmtrack.core.ids import random_visitor_id
from utmtrack.core.logging import get_logger
from utmtrack.features.storage.types import KeyValueStore, StorageLimitError


class IdentityService:
    """
    Opaque per-visitor id. Created on first need, kept in the durable store and mirrored
    to the backup store; restored from the backup if the durable copy was cleared.
    """

    def __init__(
        self,
        *,
        durable: KeyValueStore,
        backup: KeyValueStore,
        clock: Clock,
        key: str = "utm_user_id",
        expiration_days: float = 90.0,
        new_id: Callable[[], str] = random_visitor_id,
    ) -> None:
        self.durable = durable
        self.backup = backup
        self.clock = clock
        self.key = key
        self.expiration_days = float(expiration_days)
        self._new_id = new_id
        self._logger = get_logger(__name__)

    def current(self) -> str | None:
        """
        Stored identity, without creating one.
        """
        value = self.durable.get(self.key)
        if value and value.strip():
            return value
        value = self.backup.get(self.key)
        if value and value.strip():
            return value
        return None

    def get_or_create(self) -> str:
        expires_at = self.clock.now() + timedelta(days=self.expiration_days)

        durable = self.durable.get(self.key)
        if durable and durable.strip():
            backup = self.backup.get(self.key)
            if not (backup and backup.strip()):
                self._write_backup(durable, expires_at)
            return durable

        restored = self.backup.get(self.key)
        if restored and restored.strip():
            self.durable.set(self.key, restored, expires_at=expires_at)
            self._logger.info(
                "visitor id restored from backup",
                extra={"feature": "identity", "visitor_id": restored},
            )
            return restored

        visitor_id = self._new_id()
        self.durable.set(self.key, visitor_id, expires_at=expires_at)
        self._write_backup(visitor_id, expires_at)
        self._logger.info(
            "visitor id created", extra={"feature": "identity", "visitor_id": visitor_id}
        )
        return visitor_id

    def _write_backup(self, visitor_id: str, expires_at: datetime) -> None:
        try:
            self.backup.set(self.key, visitor_id, expires_at=expires_at)
        except StorageLimitError as e:
            self._logger.warning(
                f"backup write rejected: {e}",
                extra={"feature": "identity", "key": self.key},
            )

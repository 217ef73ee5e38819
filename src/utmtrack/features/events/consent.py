from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta

from utmtrack.core.clock import Clock
from utmtrack.features.storage.types import KeyValueStore

ConsentSignal = Callable[[], bool]

CONSENT_DAYS = 365


class StoredConsent:
    """
    Consent flag kept in a store (the consent cookie). Anything but "true"/"false"
    reads as the default.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        clock: Clock,
        key: str = "tracking_consent",
        default: bool = False,
    ) -> None:
        self.store = store
        self.clock = clock
        self.key = key
        self.default = default

    def __call__(self) -> bool:
        value = (self.store.get(self.key) or "").strip().lower()
        if value == "true":
            return True
        if value == "false":
            return False
        return self.default

    def grant(self) -> None:
        self._write("true")

    def revoke(self) -> None:
        self._write("false")

    def _write(self, value: str) -> None:
        self.store.set(
            self.key, value, expires_at=self.clock.now() + timedelta(days=CONSENT_DAYS)
        )

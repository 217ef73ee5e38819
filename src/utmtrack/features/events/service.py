from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from utmtrack.core.clock import Clock, ensure_utc
from utmtrack.core.logging import get_logger
from utmtrack.features.identity.service import IdentityService
from utmtrack.features.page_context.service import PageEnvironment
from utmtrack.features.sync.service import PersistenceSynchronizer

from .consent import ConsentSignal
from .schema import (
    DEFAULT_EVENT_TYPES,
    InteractionEvent,
    validate_details,
    validate_event_type,
)


class EventSink(Protocol):
    """
    Downstream consumer of recorded events (cold storage, delivery).
    """

    def append(self, event: InteractionEvent) -> None: ...


class EventRecorder:
    """
    Stamps and appends interaction events.

    Contracts enforced:
    - event_type must be allowed; details must be a str->str mapping with recognized keys
    - without consent the event is built and returned but not appended or forwarded,
      and no visitor id is created
    - timestamps never go backwards within one log
    """

    def __init__(
        self,
        *,
        clock: Clock,
        synchronizer: PersistenceSynchronizer,
        identity: IdentityService,
        page: PageEnvironment,
        consent: ConsentSignal,
        allowed_types: frozenset[str] | set[str] = DEFAULT_EVENT_TYPES,
        sink: EventSink | None = None,
    ) -> None:
        self._clock = clock
        self._sync = synchronizer
        self._identity = identity
        self._page = page
        self._consent = consent
        self._allowed = frozenset(allowed_types)
        self._sink = sink
        self._log: list[InteractionEvent] = []
        self._logger = get_logger(__name__)

    @property
    def log(self) -> tuple[InteractionEvent, ...]:
        return tuple(self._log)

    @property
    def allowed_types(self) -> frozenset[str]:
        return self._allowed

    def __len__(self) -> int:
        return len(self._log)

    def record(
        self, event_type: str, details: Mapping[str, Any] | None = None
    ) -> InteractionEvent:
        validate_event_type(event_type, self._allowed)
        clean = validate_details(event_type, details)

        consented = bool(self._consent())
        identity = self._identity.get_or_create() if consented else self._identity.current()

        ts = ensure_utc(self._clock.now())
        if self._log and ts < self._log[-1].timestamp:
            ts = self._log[-1].timestamp

        event = InteractionEvent(
            event_type=event_type,
            timestamp=ts,
            attribution=self._sync.current_durable(),
            identity=identity,
            page_url=self._page.current_url() or None,
            details=clean,
        )

        if not consented:
            self._logger.debug(
                "event suppressed",
                extra={"feature": "events", "event_type": event_type, "reason": "no_consent"},
            )
            return event

        self._log.append(event)
        if self._sink is not None:
            self._sink.append(event)

        self._logger.debug(
            "event recorded",
            extra={
                "feature": "events",
                "event_type": event_type,
                "visitor_id": identity,
                "source": event.attribution.source if event.attribution else None,
            },
        )
        return event

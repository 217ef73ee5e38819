from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from utmtrack.core.clock import Clock
from utmtrack.core.config import TrackerConfig
from utmtrack.core.ids import random_visitor_id
from utmtrack.core.logging import get_logger
from utmtrack.features.attribution.service import resolve
from utmtrack.features.attribution.types import AttributionRecord
from utmtrack.features.events.consent import ConsentSignal
from utmtrack.features.events.schema import DEFAULT_EVENT_TYPES, InteractionEvent
from utmtrack.features.events.service import EventRecorder, EventSink
from utmtrack.features.identity.service import IdentityService
from utmtrack.features.page_context.service import PageEnvironment
from utmtrack.features.report.service import aggregate
from utmtrack.features.report.types import Report
from utmtrack.features.storage.types import KeyValueStore
from utmtrack.features.sync.service import PersistenceSynchronizer


class Tracker:
    """
    One tab: the profile's two stores and consent signal, plus this tab's page and event log.

    Inbound:  page_ready(), interaction(event_type, details)
    Outbound: get_attribution(), record_event(event_type, details), generate_report()
    """

    def __init__(
        self,
        *,
        clock: Clock,
        durable: KeyValueStore,
        backup: KeyValueStore,
        page: PageEnvironment,
        consent: ConsentSignal,
        cfg: TrackerConfig | None = None,
        sink: EventSink | None = None,
        new_id: Callable[[], str] = random_visitor_id,
    ) -> None:
        self.cfg = cfg or TrackerConfig()
        self.clock = clock
        self.page = page
        self.synchronizer = PersistenceSynchronizer(
            durable=durable,
            backup=backup,
            clock=clock,
            storage_key=self.cfg.storage_key,
            expiration_days=self.cfg.expiration_days,
        )
        self.identity = IdentityService(
            durable=durable,
            backup=backup,
            clock=clock,
            key=self.cfg.identity_key,
            expiration_days=self.cfg.expiration_days,
            new_id=new_id,
        )
        self.recorder = EventRecorder(
            clock=clock,
            synchronizer=self.synchronizer,
            identity=self.identity,
            page=page,
            consent=consent,
            allowed_types=DEFAULT_EVENT_TYPES | frozenset(self.cfg.extra_event_types),
            sink=sink,
        )
        self._logger = get_logger(__name__)

    def _site_host(self) -> str | None:
        if self.cfg.site_host:
            return self.cfg.site_host
        site_host = getattr(self.page, "site_host", None)
        return site_host() if callable(site_host) else None

    def resolve_attribution(self) -> AttributionRecord | None:
        """
        Resolve and durably write attribution for the current page.
        """
        existing = self.synchronizer.current_durable()
        resolved = resolve(
            self.page.url_query_params(),
            existing,
            self.synchronizer.current_backup(),
            self.page.referrer_host(),
            now=self.clock.now(),
            current_url=self.page.current_url() or None,
            site_host=self._site_host(),
            referrer_sources=self.cfg.referrer_sources,
        )
        self.synchronizer.reconcile(resolved)
        return self.synchronizer.current_durable()

    def page_ready(self) -> InteractionEvent:
        # attribution must be durable before the page_view snapshot is taken
        record = self.resolve_attribution()
        if record is None:
            self._logger.debug("no attribution", extra={"feature": "tracking"})
        event = self.recorder.record("page_view")

        if self.cfg.report_mode == "auto":
            self._logger.info(
                "report",
                extra={
                    "feature": "tracking",
                    "num_events": len(self.recorder),
                    "report": self.generate_report().as_dict(),
                },
            )
        return event

    def interaction(
        self, event_type: str, details: Mapping[str, Any] | None = None
    ) -> InteractionEvent:
        return self.recorder.record(event_type, details)

    def get_attribution(self) -> AttributionRecord | None:
        return self.synchronizer.current_durable()

    def record_event(
        self, event_type: str, details: Mapping[str, Any] | None = None
    ) -> InteractionEvent:
        return self.recorder.record(event_type, details)

    def generate_report(self) -> Report:
        return aggregate(self.recorder.log)

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

import simpy

from utmtrack.core.clock import Clock
from utmtrack.core.config import TrackerConfig
from utmtrack.core.logging import get_logger
from utmtrack.features.events.consent import StoredConsent
from utmtrack.features.events.service import EventSink
from utmtrack.features.page_context.service import PageContext
from utmtrack.features.storage.types import KeyValueStore
from utmtrack.features.tracking.service import Tracker

from .types import Visit

StoreFactory = Callable[[str], KeyValueStore]


@dataclass
class BrowserProfile:
    """
    Storage shared by every tab of one browser profile.
    """

    name: str
    durable: KeyValueStore
    backup: KeyValueStore
    consent: StoredConsent


class ProfileRegistry:
    def __init__(
        self,
        *,
        clock: Clock,
        cfg: TrackerConfig,
        durable_factory: StoreFactory,
        backup_factory: StoreFactory,
    ) -> None:
        self.clock = clock
        self.cfg = cfg
        self._durable_factory = durable_factory
        self._backup_factory = backup_factory
        self.profiles: dict[str, BrowserProfile] = {}

    def get_or_create(self, name: str) -> BrowserProfile:
        p = self.profiles.get(name)
        if p is not None:
            return p
        backup = self._backup_factory(name)
        p = BrowserProfile(
            name=name,
            durable=self._durable_factory(name),
            backup=backup,
            consent=StoredConsent(
                backup,
                clock=self.clock,
                key=self.cfg.consent_key,
                default=self.cfg.consent_default,
            ),
        )
        self.profiles[name] = p
        return p


class VisitsService:
    """
    Replays visits as SimPy processes. Each visit is one tab: a fresh page and tracker
    over its profile's shared stores.

    The only suspension points are the waits before a page load and between
    interactions; tracker calls themselves never yield.
    """

    def __init__(
        self,
        *,
        env: simpy.Environment,
        clock: Clock,
        cfg: TrackerConfig,
        profiles: ProfileRegistry,
        sink: EventSink | None = None,
        new_id: Callable[[], str] | None = None,
    ) -> None:
        self.env = env
        self.clock = clock
        self.cfg = cfg
        self.profiles = profiles
        self.sink = sink
        self.new_id = new_id
        self.trackers: list[Tracker] = []
        self._logger = get_logger(__name__)

    def start(self, visits: Iterable[Visit]) -> list[simpy.events.Process]:
        return [self.env.process(self._run_visit(v)) for v in visits]

    def _make_tracker(self, profile: BrowserProfile, page: PageContext) -> Tracker:
        kwargs = {"new_id": self.new_id} if self.new_id is not None else {}
        tracker = Tracker(
            clock=self.clock,
            durable=profile.durable,
            backup=profile.backup,
            page=page,
            consent=profile.consent,
            cfg=self.cfg,
            sink=self.sink,
            **kwargs,
        )
        self.trackers.append(tracker)
        return tracker

    def _run_visit(self, visit: Visit):
        delay = float(visit.at_s) - float(self.env.now)
        if delay > 0:
            yield self.env.timeout(delay)

        profile = self.profiles.get_or_create(visit.profile)
        if visit.clear_durable:
            profile.durable.clear()
        if visit.clear_backup:
            profile.backup.clear()
        if visit.consent is True:
            profile.consent.grant()
        elif visit.consent is False:
            profile.consent.revoke()

        page = PageContext(visit.url, visit.referrer)
        tracker = self._make_tracker(profile, page)

        tracker.page_ready()
        self._logger.debug(
            "page ready",
            extra={"feature": "visits", "visitor_id": tracker.identity.current()},
        )

        for step in visit.interactions:
            if step.after_s > 0:
                yield self.env.timeout(step.after_s)
            tracker.interaction(step.event_type, step.details)

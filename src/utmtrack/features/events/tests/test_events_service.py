from __future__ import annotations

from datetime import UTC, datetime

import pytest

from utmtrack.core.clock import ManualClock
from utmtrack.features.attribution.types import AttributionRecord
from utmtrack.features.events.consent import StoredConsent
from utmtrack.features.events.schema import InteractionEvent
from utmtrack.features.events.service import EventRecorder
from utmtrack.features.identity.service import IdentityService
from utmtrack.features.page_context.service import PageContext
from utmtrack.features.storage.service import CookieJarStore, MemoryStore
from utmtrack.features.sync.service import PersistenceSynchronizer

T0 = datetime(2026, 1, 1, tzinfo=UTC)


class DummySink:
    def __init__(self) -> None:
        self.events: list[InteractionEvent] = []

    def append(self, event: InteractionEvent) -> None:
        self.events.append(event)


def make_recorder(*, consent: bool = True, allowed=None):
    clock = ManualClock(T0)
    durable = MemoryStore(clock)
    backup = CookieJarStore(clock)
    sync = PersistenceSynchronizer(durable=durable, backup=backup, clock=clock)
    identity = IdentityService(durable=durable, backup=backup, clock=clock, new_id=lambda: "V1")
    sink = DummySink()
    kwargs = {"allowed_types": allowed} if allowed is not None else {}
    recorder = EventRecorder(
        clock=clock,
        synchronizer=sync,
        identity=identity,
        page=PageContext("https://example.com/pricing"),
        consent=lambda: consent,
        sink=sink,
        **kwargs,
    )
    return recorder, sink, sync, clock, durable


def test_record_stamps_and_appends():
    recorder, sink, sync, clock, _ = make_recorder()
    sync.reconcile(AttributionRecord(source="google", medium="cpc"))
    clock.advance(seconds=12)

    evt = recorder.record("button_click", {"element_text": "Buy", "element_id": "cta"})

    assert evt.event_type == "button_click"
    assert evt.timestamp == datetime(2026, 1, 1, 0, 0, 12, tzinfo=UTC)
    assert evt.identity == "V1"
    assert evt.page_url == "https://example.com/pricing"
    assert evt.attribution is not None and evt.attribution.source == "google"
    assert dict(evt.details) == {"element_text": "Buy", "element_id": "cta"}
    assert recorder.log == (evt,)
    assert sink.events == [evt]


def test_without_consent_event_is_built_but_not_kept():
    recorder, sink, _, _, durable = make_recorder(consent=False)

    evt = recorder.record("page_view")

    assert evt.event_type == "page_view"
    assert evt.identity is None
    assert len(recorder) == 0
    assert sink.events == []
    # no visitor id is created without consent
    assert durable.get("utm_user_id") is None


def test_consent_read_from_store():
    clock = ManualClock(T0)
    jar = CookieJarStore(clock)
    consent = StoredConsent(jar, clock=clock, default=False)
    assert consent() is False

    consent.grant()
    assert jar.get("tracking_consent") == "true"
    assert consent() is True

    consent.revoke()
    assert consent() is False

    jar.set("tracking_consent", "maybe")
    assert StoredConsent(jar, clock=clock, default=True)() is True


def test_unknown_event_type_raises():
    recorder, *_ = make_recorder()
    with pytest.raises(ValueError):
        recorder.record("purchase")
    with pytest.raises(ValueError):
        recorder.record("")


def test_extension_event_types_accept_any_string_details():
    recorder, *_ = make_recorder(allowed={"page_view", "purchase"})
    evt = recorder.record("purchase", {"sku": "basic", "amount": "19.00"})
    assert evt.details["sku"] == "basic"


def test_details_are_constrained_per_event_type():
    recorder, *_ = make_recorder()

    with pytest.raises(ValueError):
        recorder.record("button_click", {"colour": "red"})
    with pytest.raises(TypeError):
        recorder.record("button_click", {"element_id": 7})

    evt = recorder.record("form_submission", {"form_id": "lead", "field.email": "a@b.c"})
    assert evt.details["field.email"] == "a@b.c"


def test_details_are_read_only_copies():
    recorder, *_ = make_recorder()
    src = {"element_text": "Buy"}
    evt = recorder.record("button_click", src)
    src["element_text"] = "changed"

    assert evt.details["element_text"] == "Buy"
    with pytest.raises(TypeError):
        evt.details["element_text"] = "x"  # type: ignore[index]


def test_timestamps_never_go_backwards():
    recorder, _, _, clock, _ = make_recorder()
    clock.advance(seconds=10)
    first = recorder.record("page_view")
    clock.advance(seconds=-5)
    second = recorder.record("page_view")

    assert second.timestamp == first.timestamp


def test_as_dict_shape():
    recorder, *_ = make_recorder()
    d = recorder.record("page_view", {"title": "Pricing"}).as_dict()
    assert d == {
        "eventType": "page_view",
        "timestamp": "2026-01-01T00:00:00+00:00",
        "utm": None,
        "userId": "V1",
        "pageURL": "https://example.com/pricing",
        "details": {"title": "Pricing"},
    }

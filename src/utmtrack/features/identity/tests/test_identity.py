from __future__ import annotations

from datetime import UTC, datetime

from utmtrack.core.clock import ManualClock
from utmtrack.core.ids import random_visitor_id
from utmtrack.features.identity.service import IdentityService
from utmtrack.features.storage.service import CookieJarStore, MemoryStore

T0 = datetime(2026, 1, 1, tzinfo=UTC)


def make_identity():
    clock = ManualClock(T0)
    durable = MemoryStore(clock)
    backup = CookieJarStore(clock)
    n = iter(range(1, 100))
    svc = IdentityService(
        durable=durable, backup=backup, clock=clock, new_id=lambda: f"v{next(n)}"
    )
    return svc, durable, backup


def test_created_once_and_persisted():
    svc, durable, backup = make_identity()
    assert svc.current() is None

    assert svc.get_or_create() == "v1"
    assert svc.get_or_create() == "v1"
    assert durable.get("utm_user_id") == "v1"
    assert backup.get("utm_user_id") == "v1"


def test_restored_from_backup_not_regenerated():
    svc, durable, backup = make_identity()
    svc.get_or_create()
    durable.clear()

    assert svc.current() == "v1"
    assert svc.get_or_create() == "v1"
    assert durable.get("utm_user_id") == "v1"


def test_cleared_backup_is_mirrored_again():
    svc, durable, backup = make_identity()
    assert svc.get_or_create() == "v1"
    backup.clear()

    assert svc.get_or_create() == "v1"
    assert backup.get("utm_user_id") == "v1"

    durable.clear()
    assert svc.get_or_create() == "v1"


def test_regenerated_only_after_both_stores_cleared():
    svc, durable, backup = make_identity()
    svc.get_or_create()
    durable.clear()
    backup.clear()

    assert svc.get_or_create() == "v2"


def test_default_ids_are_unique():
    assert random_visitor_id() != random_visitor_id()

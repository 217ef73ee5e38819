from __future__ import annotations

from datetime import UTC, datetime, timedelta

from utmtrack.core.clock import ManualClock
from utmtrack.features.persistence.duckdb_adapter import DuckDBAdapter
from utmtrack.features.storage.duckdb_store import DuckDBKeyValueStore

T0 = datetime(2026, 1, 1, tzinfo=UTC)


def test_duckdb_store_namespaces_and_expiry(tmp_path):
    adapter = DuckDBAdapter(path=str(tmp_path / "kv.duckdb"), clean_slate=True)
    adapter.open()
    clock = ManualClock(T0)

    a = DuckDBKeyValueStore(adapter, namespace="alice", clock=clock)
    b = DuckDBKeyValueStore(adapter, namespace="bob", clock=clock)

    a.set("utm", "A", expires_at=T0 + timedelta(days=90))
    b.set("utm", "B")
    assert a.get("utm") == "A"
    assert b.get("utm") == "B"

    a.set("utm", "A2", expires_at=T0 + timedelta(days=90))
    assert a.get("utm") == "A2"

    clock.advance(seconds=90 * 86400)
    assert a.get("utm") is None
    assert b.get("utm") == "B"

    b.clear()
    assert b.get("utm") is None
    adapter.close()


def test_duckdb_store_survives_reopen(tmp_path):
    path = str(tmp_path / "kv.duckdb")

    a1 = DuckDBAdapter(path=path, clean_slate=True)
    a1.open()
    DuckDBKeyValueStore(a1, namespace="p").set("utm_user_id", "v-1")
    a1.close()

    a2 = DuckDBAdapter(path=path, clean_slate=False)
    a2.open()
    assert DuckDBKeyValueStore(a2, namespace="p").get("utm_user_id") == "v-1"
    a2.close()

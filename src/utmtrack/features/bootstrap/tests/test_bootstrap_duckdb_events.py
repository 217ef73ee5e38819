import json

import duckdb
import pytest

from utmtrack.core.config import parse_config
from utmtrack.features.bootstrap.service import bootstrap_run, report_from_duckdb


def _cfg_dict(db_path, visits):
    return {
        "run": {"run_id": "run_t", "start_date": "2026-01-01"},
        "storage": {"duckdb_path": str(db_path), "clean_slate": True},
        "logging": {"level": "INFO"},
        "tracker": {"site_host": "example.com", "extra_event_types": ["purchase"]},
        "visits": visits,
    }


VISITS = [
    {
        "at_s": 0,
        "profile": "alice",
        "url": "https://example.com/?utm_source=google&utm_medium=cpc",
        "consent": True,
        "interactions": [
            {"after_s": 1, "event_type": "button_click", "details": {"element_id": "cta"}},
            {"after_s": 1.5, "event_type": "purchase", "details": {"sku": "basic"}},
        ],
    },
    {
        "at_s": 30,
        "profile": "bob",
        "url": "https://example.com/blog",
        "referrer": "https://www.bing.com/",
        "consent": True,
    },
    {"at_s": 40, "profile": "carol", "url": "https://example.com/?utm_source=x"},
]


def test_bootstrap_persists_events_and_reports(tmp_path):
    db_path = tmp_path / "track.duckdb"
    res = bootstrap_run(parse_config(_cfg_dict(db_path, VISITS)))

    assert db_path.exists()
    assert res.duckdb_path == str(db_path)
    assert res.report.total_events == 4
    assert res.report.source_counts == {"google": 3, "bing": 1}
    assert res.report.funnel_counts == {"page_view": 2, "button_click": 1, "purchase": 1}

    con = duckdb.connect(str(db_path), read_only=True)
    rows = con.execute(
        "SELECT event_type, visitor_id, utm_source FROM events ORDER BY seq"
    ).fetchall()
    con.close()

    assert rows == [
        ("page_view", "visitor_run_t_00000001", "google"),
        ("button_click", "visitor_run_t_00000001", "google"),
        ("purchase", "visitor_run_t_00000001", "google"),
        ("page_view", "visitor_run_t_00000002", "bing"),
    ]


def test_report_from_duckdb_matches_run_report(tmp_path):
    db_path = tmp_path / "track.duckdb"
    res = bootstrap_run(parse_config(_cfg_dict(db_path, VISITS)))

    stored = report_from_duckdb(str(db_path), res.ctx.run_id)
    assert stored.as_dict() == res.report.as_dict()


def test_durable_store_lives_in_duckdb(tmp_path):
    db_path = tmp_path / "track.duckdb"
    bootstrap_run(parse_config(_cfg_dict(db_path, VISITS)))

    con = duckdb.connect(str(db_path), read_only=True)
    keys = con.execute(
        "SELECT namespace, key FROM kv_store ORDER BY namespace, key"
    ).fetchall()
    con.close()

    assert ("run_t:alice", "utm_tracking_data") in keys
    assert ("run_t:alice", "utm_user_id") in keys
    # carol never consented: attribution kept, no visitor id
    assert ("run_t:carol", "utm_tracking_data") in keys
    assert ("run_t:carol", "utm_user_id") not in keys


def test_run_without_visits(tmp_path):
    res = bootstrap_run(parse_config(_cfg_dict(tmp_path / "empty.duckdb", None)))
    assert res.report.total_events == 0


def test_report_from_missing_duckdb_raises(tmp_path):
    missing = tmp_path / "nope.duckdb"
    with pytest.raises(FileNotFoundError):
        report_from_duckdb(str(missing), "run_t")
    assert not missing.exists()


def test_run_start_log_carries_config_path(tmp_path, capsys):
    bootstrap_run(parse_config(_cfg_dict(tmp_path / "t.duckdb", VISITS)), config_path="cfg.yaml")

    lines = [json.loads(s) for s in capsys.readouterr().out.splitlines() if s.startswith("{")]
    start = [x for x in lines if x["msg"].startswith("starting replay")]
    assert len(start) == 1
    assert start[0]["config_path"] == "cfg.yaml"

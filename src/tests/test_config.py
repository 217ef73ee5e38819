import pytest

from utmtrack.core.config import DEFAULT_REFERRER_SOURCES, load_config, parse_config

BASE = {
    "run": {"start_date": "2026-01-01"},
    "storage": {"duckdb_path": "out/x.duckdb"},
    "logging": {},
}


def test_defaults():
    cfg = parse_config(dict(BASE))
    assert cfg.run.run_id == "auto"
    assert cfg.storage.clean_slate is True
    assert cfg.storage.flush.every_n_events == 500
    assert cfg.logging.level == "INFO"
    assert cfg.tracker.expiration_days == 90.0
    assert cfg.tracker.storage_key == "utm_tracking_data"
    assert cfg.tracker.referrer_sources == DEFAULT_REFERRER_SOURCES


def test_missing_section_raises():
    with pytest.raises(ValueError):
        parse_config({"run": {"start_date": "2026-01-01"}, "logging": {}})


@pytest.mark.parametrize(
    "tracker",
    [
        {"report_mode": "live"},
        {"expiration_days": 0},
        {"backup_max_bytes": -1},
    ],
)
def test_bad_tracker_values(tracker):
    with pytest.raises(ValueError):
        parse_config({**BASE, "tracker": tracker})


def test_load_yaml(tmp_path):
    p = tmp_path / "c.yaml"
    p.write_text(
        "run: {start_date: '2026-01-01'}\n"
        "storage: {duckdb_path: x.duckdb}\n"
        "logging: {level: debug}\n"
        "tracker:\n"
        "  site_host: Example.COM\n"
        "  referrer_sources: {DuckDuckGo: ddg}\n"
    )
    cfg = load_config(p)
    assert cfg.logging.level == "DEBUG"
    assert cfg.tracker.site_host == "example.com"
    assert cfg.tracker.referrer_sources == {"duckduckgo": "ddg"}


def test_top_level_must_be_mapping(tmp_path):
    p = tmp_path / "c.yaml"
    p.write_text("- a\n- b\n")
    with pytest.raises(ValueError):
        load_config(p)

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_REFERRER_SOURCES: dict[str, str] = {
    "google": "google",
    "bing": "bing",
    "facebook": "facebook",
    "instagram": "instagram",
    "linkedin": "linkedin",
    "twitter": "twitter",
    "t.co": "twitter",
}


@dataclass(frozen=True)
class RunConfig:
    run_id: str
    start_date: str


@dataclass(frozen=True)
class FlushConfig:
    every_n_events: int = 500


@dataclass(frozen=True)
class StorageConfig:
    duckdb_path: str
    clean_slate: bool = True
    flush: FlushConfig = FlushConfig()


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class TrackerConfig:
    site_host: str | None = None
    expiration_days: float = 90.0
    backup_max_bytes: int = 4096
    storage_key: str = "utm_tracking_data"
    identity_key: str = "utm_user_id"
    consent_key: str = "tracking_consent"
    consent_default: bool = False
    report_mode: str = "manual"  # "manual" | "auto"
    extra_event_types: tuple[str, ...] = ()
    referrer_sources: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_REFERRER_SOURCES)
    )


@dataclass(frozen=True)
class AppConfig:
    run: RunConfig
    storage: StorageConfig
    logging: LoggingConfig
    tracker: TrackerConfig
    raw: dict[str, Any]  # original parsed YAML (for hashing / debugging)


def load_yaml(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    data = yaml.safe_load(p.read_text())
    if not isinstance(data, dict):
        raise ValueError("Config YAML must parse to a dict at the top level.")
    return data


def parse_tracker_config(data: dict[str, Any] | None) -> TrackerConfig:
    t = data or {}
    if not isinstance(t, dict):
        raise TypeError("tracker must be a mapping/dict")

    report_mode = str(t.get("report_mode", "manual")).strip().lower()
    if report_mode not in ("manual", "auto"):
        raise ValueError(f"Unsupported tracker.report_mode: {report_mode!r}")

    expiration_days = float(t.get("expiration_days", 90.0))
    if expiration_days <= 0:
        raise ValueError("tracker.expiration_days must be > 0")

    backup_max_bytes = int(t.get("backup_max_bytes", 4096))
    if backup_max_bytes <= 0:
        raise ValueError("tracker.backup_max_bytes must be > 0")

    extra = t.get("extra_event_types") or []
    if not isinstance(extra, list):
        raise TypeError("tracker.extra_event_types must be a list")

    sources_raw = t.get("referrer_sources")
    if sources_raw is None:
        sources = dict(DEFAULT_REFERRER_SOURCES)
    elif isinstance(sources_raw, dict):
        sources = {str(k).lower(): str(v) for k, v in sources_raw.items()}
    else:
        raise TypeError("tracker.referrer_sources must be a mapping/dict")

    site_host = t.get("site_host")
    return TrackerConfig(
        site_host=str(site_host).lower() if site_host else None,
        expiration_days=expiration_days,
        backup_max_bytes=backup_max_bytes,
        storage_key=str(t.get("storage_key", "utm_tracking_data")),
        identity_key=str(t.get("identity_key", "utm_user_id")),
        consent_key=str(t.get("consent_key", "tracking_consent")),
        consent_default=bool(t.get("consent_default", False)),
        report_mode=report_mode,
        extra_event_types=tuple(str(x) for x in extra),
        referrer_sources=sources,
    )


def parse_config(data: dict[str, Any]) -> AppConfig:
    for key in ["run", "storage", "logging"]:
        if key not in data:
            raise ValueError(f"Missing required top-level config section: '{key}'")

    run = data.get("run") or {}
    storage = data.get("storage") or {}
    logging_cfg = data.get("logging") or {}
    flush = storage.get("flush") or {}

    run_cfg = RunConfig(
        run_id=str(run.get("run_id", "auto")),
        start_date=str(run["start_date"]),
    )

    storage_cfg = StorageConfig(
        duckdb_path=str(storage["duckdb_path"]),
        clean_slate=bool(storage.get("clean_slate", True)),
        flush=FlushConfig(every_n_events=int(flush.get("every_n_events", 500))),
    )

    log_cfg = LoggingConfig(level=str(logging_cfg.get("level", "INFO")).upper())

    return AppConfig(
        run=run_cfg,
        storage=storage_cfg,
        logging=log_cfg,
        tracker=parse_tracker_config(data.get("tracker")),
        raw=data,
    )


def load_config(path: str | Path) -> AppConfig:
    data = load_yaml(path)
    return parse_config(data)

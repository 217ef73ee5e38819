from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import simpy

from utmtrack.core.clock import SimClock
from utmtrack.core.config import AppConfig
from utmtrack.core.ids import RunIds, run_id_from_config
from utmtrack.core.logging import get_logger
from utmtrack.features.events.schema import InteractionEvent
from utmtrack.features.persistence.duckdb_adapter import DuckDBAdapter
from utmtrack.features.persistence.service import PersistenceService, load_events
from utmtrack.features.report.service import aggregate
from utmtrack.features.report.types import Report
from utmtrack.features.storage.duckdb_store import DuckDBKeyValueStore
from utmtrack.features.storage.service import CookieJarStore
from utmtrack.features.visits.service import ProfileRegistry, VisitsService
from utmtrack.features.visits.types import parse_visits


@dataclass(frozen=True)
class RunContext:
    run_id: str
    start_dt_utc: datetime


@dataclass(frozen=True)
class BootstrapResult:
    ctx: RunContext
    duckdb_path: str
    report: Report


class RunEventLog:
    """
    Run-wide event sink: keeps every recorded event in order and forwards it to
    cold storage.
    """

    def __init__(self, persistence: PersistenceService) -> None:
        self.events: list[InteractionEvent] = []
        self._persistence = persistence

    def append(self, event: InteractionEvent) -> None:
        self.events.append(event)
        self._persistence.append(event)


def bootstrap_run(cfg: AppConfig, config_path: str | None = None) -> BootstrapResult:
    raw: dict[str, Any] = cfg.raw if isinstance(cfg.raw, dict) else {}

    # ----- run identity -----
    run_id = run_id_from_config(raw) if cfg.run.run_id == "auto" else cfg.run.run_id
    logger = get_logger("utmtrack", cfg.logging.level)

    ids = RunIds(run_id=run_id)

    start_dt_utc = datetime.fromisoformat(cfg.run.start_date).replace(tzinfo=UTC)
    ctx = RunContext(run_id=run_id, start_dt_utc=start_dt_utc)

    env = simpy.Environment()
    clock = SimClock(env, start_dt_utc)

    # ----- cold storage + durable stores -----
    adapter = DuckDBAdapter(path=cfg.storage.duckdb_path, clean_slate=cfg.storage.clean_slate)
    persistence = PersistenceService(
        adapter=adapter,
        run_id=run_id,
        every_n_events=cfg.storage.flush.every_n_events,
    )
    persistence.open()
    run_log = RunEventLog(persistence)

    tracker_cfg = cfg.tracker
    profiles = ProfileRegistry(
        clock=clock,
        cfg=tracker_cfg,
        durable_factory=lambda name: DuckDBKeyValueStore(
            adapter, namespace=f"{run_id}:{name}", clock=clock
        ),
        backup_factory=lambda name: CookieJarStore(clock, max_bytes=tracker_cfg.backup_max_bytes),
    )

    visits = parse_visits(raw.get("visits"))
    visits_svc = VisitsService(
        env=env,
        clock=clock,
        cfg=tracker_cfg,
        profiles=profiles,
        sink=run_log,
        new_id=ids.factory("visitor"),
    )

    # ----- run lifecycle -----
    try:
        visits_svc.start(visits)
        logger.info(
            f"starting replay of {len(visits)} visits",
            extra={"run_id": ctx.run_id, "feature": "bootstrap", "config_path": config_path},
        )
        env.run()
        persistence.flush(reason="bootstrap_finish")
    finally:
        persistence.close()

    report = aggregate(run_log.events)
    logger.info(
        "replay finished",
        extra={"run_id": ctx.run_id, "feature": "bootstrap", "num_events": report.total_events},
    )
    return BootstrapResult(ctx=ctx, duckdb_path=cfg.storage.duckdb_path, report=report)


def report_from_duckdb(duckdb_path: str, run_id: str) -> Report:
    if not os.path.exists(duckdb_path):
        raise FileNotFoundError(f"DuckDB file not found: {duckdb_path}")
    adapter = DuckDBAdapter(path=duckdb_path, clean_slate=False)
    adapter.open()
    try:
        return aggregate(load_events(adapter, run_id))
    finally:
        adapter.close()

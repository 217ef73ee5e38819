from __future__ import annotations

import json
from types import MappingProxyType

from utmtrack.core.ids import RunIds
from utmtrack.core.logging import get_logger
from utmtrack.features.attribution.types import parse_record, serialize_record
from utmtrack.features.events.schema import InteractionEvent, json_dumps

from .duckdb_adapter import DuckDBAdapter, to_naive_utc


class PersistenceService:
    """
    Buffered event sink + flush policy.
    - Hot: buffer in memory
    - Cold: DuckDB
    """

    def __init__(
        self,
        *,
        adapter: DuckDBAdapter,
        run_id: str,
        every_n_events: int,
    ) -> None:
        self.adapter = adapter
        self.run_id = run_id
        self.every_n_events = int(every_n_events)

        self._ids = RunIds(run_id=run_id)
        self._seq = 0
        self._buf: list[tuple] = []
        self._logger = get_logger(__name__)

        self._is_open = False

    def open(self) -> None:
        if self._is_open:
            return
        self.adapter.open()
        self._is_open = True

    def append(self, e: InteractionEvent) -> None:
        if not self._is_open:
            raise RuntimeError("PersistenceService not open. Call open() during bootstrap.")

        self._seq += 1
        self._buf.append(self._event_to_row(e))

        if self.every_n_events > 0 and len(self._buf) >= self.every_n_events:
            self.flush(reason="count")

    def flush(self, *, reason: str) -> None:
        if not self._buf:
            return

        rows = list(self._buf)
        self._buf.clear()

        result = self.adapter.write_events(rows)

        self._logger.info(
            "flush",
            extra={
                "feature": "persistence",
                "run_id": self.run_id,
                "reason": reason,
                "num_events": result.num_events,
                "duration_ms": result.duration_ms,
            },
        )

    def close(self) -> None:
        if not self._is_open:
            return
        # final flush
        self.flush(reason="shutdown")
        self.adapter.close()
        self._is_open = False

    def _event_to_row(self, e: InteractionEvent) -> tuple:
        return (
            self.run_id,
            self._ids.next_id("evt"),
            self._seq,
            to_naive_utc(e.timestamp),
            e.event_type,
            e.identity,
            e.page_url,
            e.attribution.source if e.attribution is not None else None,
            serialize_record(e.attribution) if e.attribution is not None else None,
            json_dumps(e.details) if e.details else None,
        )


def load_events(adapter: DuckDBAdapter, run_id: str) -> list[InteractionEvent]:
    """
    Rebuild a run's event log from cold storage, in append order.
    A stored attribution snapshot that no longer parses comes back as None.
    """
    out: list[InteractionEvent] = []
    for row in adapter.fetch_event_rows(run_id):
        details: dict[str, str] = {}
        if row["details_json"]:
            try:
                raw = json.loads(row["details_json"])
            except ValueError:
                raw = {}
            if isinstance(raw, dict):
                details = {str(k): str(v) for k, v in raw.items()}
        out.append(
            InteractionEvent(
                event_type=row["event_type"],
                timestamp=row["ts_utc"],
                attribution=parse_record(row["attribution_json"]),
                identity=row["visitor_id"],
                page_url=row["page_url"],
                details=MappingProxyType(details),
            )
        )
    return out

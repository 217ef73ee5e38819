from __future__ import annotations

import os
import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

import duckdb

from .schema import EVENTS_TABLE_NAME, KV_TABLE_NAME, create_schema

EVENT_COLUMNS = (
    "run_id",
    "event_id",
    "seq",
    "ts_utc",
    "event_type",
    "visitor_id",
    "page_url",
    "utm_source",
    "attribution_json",
    "details_json",
)


@dataclass(frozen=True)
class DuckDBWriteResult:
    num_events: int
    duration_ms: float


def to_naive_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC)
    return dt.replace(tzinfo=None)


def from_naive_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)


class DuckDBAdapter:
    """
    DuckDB persistence adapter. Owns the connection and schema.
    Holds both the cold event log and the durable key-value table.
    """

    def __init__(self, path: str, *, clean_slate: bool) -> None:
        self.path = path
        self.clean_slate = clean_slate
        self._conn: duckdb.DuckDBPyConnection | None = None

    def open(self) -> None:
        if self.clean_slate and os.path.exists(self.path):
            os.remove(self.path)

        # Ensure parent dir exists
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)

        self._conn = duckdb.connect(self.path)
        create_schema(self._conn)

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise RuntimeError("DuckDBAdapter not opened. Call open() first.")
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ----- events -----
    def write_events(self, rows: Sequence[tuple]) -> DuckDBWriteResult:
        """
        Writes a batch of rows matching EVENT_COLUMNS.
        Returns count and duration.
        """
        if not rows:
            return DuckDBWriteResult(num_events=0, duration_ms=0.0)

        t0 = time.perf_counter()

        placeholders = ", ".join("?" for _ in EVENT_COLUMNS)
        self.conn.executemany(
            f"INSERT INTO {EVENTS_TABLE_NAME} ({', '.join(EVENT_COLUMNS)}) "
            f"VALUES ({placeholders})",
            rows,
        )

        dt_ms = (time.perf_counter() - t0) * 1000.0
        return DuckDBWriteResult(num_events=len(rows), duration_ms=dt_ms)

    def count_events(self, run_id: str) -> int:
        res = self.conn.execute(
            f"SELECT COUNT(*) FROM {EVENTS_TABLE_NAME} WHERE run_id = ?",
            [run_id],
        ).fetchone()
        return int(res[0]) if res else 0

    def fetch_event_rows(self, run_id: str) -> list[dict]:
        """
        Rows for a run in append order.
        """
        cur = self.conn.execute(
            f"SELECT {', '.join(EVENT_COLUMNS)} FROM {EVENTS_TABLE_NAME} "
            "WHERE run_id = ? ORDER BY seq",
            [run_id],
        )
        out: list[dict] = []
        for row in cur.fetchall():
            d = dict(zip(EVENT_COLUMNS, row, strict=True))
            d["ts_utc"] = from_naive_utc(d["ts_utc"])
            out.append(d)
        return out

    # ----- key-value -----
    def kv_get(self, namespace: str, key: str) -> tuple[str, datetime | None] | None:
        row = self.conn.execute(
            f"SELECT value, expires_at_utc FROM {KV_TABLE_NAME} WHERE namespace = ? AND key = ?",
            [namespace, key],
        ).fetchone()
        if row is None:
            return None
        return str(row[0]), from_naive_utc(row[1])

    def kv_set(self, namespace: str, key: str, value: str, expires_at: datetime | None) -> None:
        self.conn.execute(
            f"INSERT OR REPLACE INTO {KV_TABLE_NAME} (namespace, key, value, expires_at_utc) "
            "VALUES (?, ?, ?, ?)",
            [namespace, key, value, to_naive_utc(expires_at)],
        )

    def kv_delete(self, namespace: str, key: str) -> None:
        self.conn.execute(
            f"DELETE FROM {KV_TABLE_NAME} WHERE namespace = ? AND key = ?",
            [namespace, key],
        )

    def kv_clear(self, namespace: str) -> None:
        self.conn.execute(f"DELETE FROM {KV_TABLE_NAME} WHERE namespace = ?", [namespace])

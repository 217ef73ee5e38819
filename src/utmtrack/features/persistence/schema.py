from __future__ import annotations

EVENTS_TABLE_NAME = "events"
KV_TABLE_NAME = "kv_store"

# Timestamps are stored as naive UTC.
EVENTS_DDL = f"""
CREATE TABLE IF NOT EXISTS {EVENTS_TABLE_NAME} (
    run_id TEXT NOT NULL,
    event_id TEXT NOT NULL,
    seq BIGINT NOT NULL,

    ts_utc TIMESTAMP NOT NULL,
    event_type TEXT NOT NULL,

    visitor_id TEXT,
    page_url TEXT,

    utm_source TEXT,
    attribution_json TEXT,
    details_json TEXT
);
"""

KV_DDL = f"""
CREATE TABLE IF NOT EXISTS {KV_TABLE_NAME} (
    namespace TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    expires_at_utc TIMESTAMP,
    PRIMARY KEY (namespace, key)
);
"""

# Optional but helpful for query speed
EVENTS_INDEXES = [
    f"CREATE INDEX IF NOT EXISTS idx_events_run_id ON {EVENTS_TABLE_NAME}(run_id);",
    f"CREATE INDEX IF NOT EXISTS idx_events_event_type ON {EVENTS_TABLE_NAME}(event_type);",
    f"CREATE INDEX IF NOT EXISTS idx_events_ts_utc ON {EVENTS_TABLE_NAME}(ts_utc);",
]


def create_schema(conn) -> None:
    """
    Create tables/indexes. No migrations. Safe to call per run.
    """
    conn.execute(EVENTS_DDL)
    conn.execute(KV_DDL)
    for ddl in EVENTS_INDEXES:
        conn.execute(ddl)

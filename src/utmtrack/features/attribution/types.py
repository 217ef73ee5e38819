from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from utmtrack.core.clock import ensure_utc
from utmtrack.core.ids import canonical_json

CAMPAIGN_FIELDS: tuple[str, ...] = ("source", "medium", "campaign", "term", "content")

# URL / storage key per campaign field
CAMPAIGN_KEYS: dict[str, str] = {f: f"utm_{f}" for f in CAMPAIGN_FIELDS}


@dataclass(frozen=True, slots=True)
class AttributionRecord:
    """
    Marketing-source tag set for a visitor's first qualifying visit.

    fallback is True when the record was inferred from the referrer
    rather than an explicit campaign tag.
    """

    source: str | None = None
    medium: str | None = None
    campaign: str | None = None
    term: str | None = None
    content: str | None = None
    fallback: bool = False
    first_visit_at: datetime | None = None
    first_landing_page: str | None = None

    def is_empty(self) -> bool:
        return not any(getattr(self, f) for f in CAMPAIGN_FIELDS)

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in CAMPAIGN_FIELDS:
            value = getattr(self, f)
            if value is not None:
                out[CAMPAIGN_KEYS[f]] = value
        out["fallback"] = bool(self.fallback)
        if self.first_visit_at is not None:
            out["first_visit_at"] = ensure_utc(self.first_visit_at).isoformat()
        if self.first_landing_page is not None:
            out["first_landing_page"] = self.first_landing_page
        return out


def serialize_record(record: AttributionRecord) -> str:
    return canonical_json(record.as_dict())


def record_from_dict(data: Any) -> AttributionRecord | None:
    """
    Lenient inverse of AttributionRecord.as_dict(). Returns None for anything that is
    not a usable, non-empty record.
    """
    if not isinstance(data, dict):
        return None

    fields: dict[str, str | None] = {}
    for f in CAMPAIGN_FIELDS:
        value = data.get(CAMPAIGN_KEYS[f])
        if value is not None and not isinstance(value, str):
            return None
        fields[f] = value or None

    fallback = data.get("fallback", False)
    if not isinstance(fallback, bool):
        return None

    # firstVisit / firstLandingPage: values written by the browser script
    ts_raw = data.get("first_visit_at", data.get("firstVisit"))
    first_visit_at: datetime | None = None
    if ts_raw is not None:
        if not isinstance(ts_raw, str):
            return None
        try:
            first_visit_at = ensure_utc(datetime.fromisoformat(ts_raw.replace("Z", "+00:00")))
        except (ValueError, OverflowError):
            return None

    landing = data.get("first_landing_page", data.get("firstLandingPage"))
    if landing is not None and not isinstance(landing, str):
        return None

    record = AttributionRecord(
        **fields,
        fallback=fallback,
        first_visit_at=first_visit_at,
        first_landing_page=landing,
    )
    return None if record.is_empty() else record


def parse_record(raw: str | None) -> AttributionRecord | None:
    if raw is None or not raw.strip():
        return None
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError):
        return None
    return record_from_dict(data)

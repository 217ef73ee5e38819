from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class JourneyStep:
    event_type: str
    timestamp: datetime
    page_url: str | None = None


@dataclass(frozen=True)
class Report:
    """
    Derived view over an event log. Recomputed on demand, never stored.
    """

    total_events: int = 0
    source_counts: dict[str, int] = field(default_factory=dict)
    funnel_counts: dict[str, int] = field(default_factory=dict)
    time_metrics: dict[str, list[int]] = field(default_factory=dict)
    user_journeys: dict[str, list[JourneyStep]] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "totalEvents": self.total_events,
            "sourceCounts": dict(self.source_counts),
            "funnelCounts": dict(self.funnel_counts),
            "timeMetrics": {k: list(v) for k, v in self.time_metrics.items()},
            "userJourneys": {
                k: [
                    {"event": s.event_type, "time": s.timestamp.isoformat(), "page": s.page_url}
                    for s in steps
                ]
                for k, steps in self.user_journeys.items()
            },
        }

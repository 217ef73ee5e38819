from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from utmtrack.core.clock import ensure_utc

from .types import UNKNOWN, JourneyStep, Report

_ONE_MS = timedelta(milliseconds=1)


def _source_of(event: Any) -> str:
    attribution = getattr(event, "attribution", None)
    source = getattr(attribution, "source", None)
    return source if isinstance(source, str) and source else UNKNOWN


def _key(value: Any) -> str:
    return value if isinstance(value, str) and value else UNKNOWN


def aggregate(log: Iterable[Any]) -> Report:
    """
    Single pass over the log in append order.

    - source_counts: attribution source, "unknown" when missing
    - funnel_counts: event type, "unknown" when missing
    - time_metrics / user_journeys: per identity, elapsed ms since that identity's
      first event and the ordered steps

    Malformed events are counted, never dropped: total_events == len(log) and the
    funnel counts always sum to it.
    """
    total = 0
    source_counts: dict[str, int] = {}
    funnel_counts: dict[str, int] = {}
    time_metrics: dict[str, list[int]] = {}
    user_journeys: dict[str, list[JourneyStep]] = {}
    epochs: dict[str, datetime] = {}

    for event in log:
        total += 1

        source = _source_of(event)
        source_counts[source] = source_counts.get(source, 0) + 1

        event_type = _key(getattr(event, "event_type", None))
        funnel_counts[event_type] = funnel_counts.get(event_type, 0) + 1

        ts = getattr(event, "timestamp", None)
        if not isinstance(ts, datetime):
            # no timeline position; counted above
            continue
        ts = ensure_utc(ts)

        identity = _key(getattr(event, "identity", None))
        epoch = epochs.setdefault(identity, ts)

        time_metrics.setdefault(identity, []).append(int((ts - epoch) / _ONE_MS))
        user_journeys.setdefault(identity, []).append(
            JourneyStep(
                event_type=event_type,
                timestamp=ts,
                page_url=getattr(event, "page_url", None),
            )
        )

    return Report(
        total_events=total,
        source_counts=source_counts,
        funnel_counts=funnel_counts,
        time_metrics=time_metrics,
        user_journeys=user_journeys,
    )

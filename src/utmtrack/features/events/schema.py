from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from utmtrack.features.attribution.types import AttributionRecord

DEFAULT_EVENT_TYPES: frozenset[str] = frozenset(
    {
        "page_view",
        "button_click",
        "form_submission",
    }
)

# Recognized detail keys per built-in event type:
#   page_view:        title
#   button_click:     element_text, element_id
#   form_submission:  form_id, field.<name> (one per submitted field)
# Extension types (tracker.extra_event_types) accept any string keys.
DETAIL_KEYS: dict[str, frozenset[str]] = {
    "page_view": frozenset({"title"}),
    "button_click": frozenset({"element_text", "element_id"}),
    "form_submission": frozenset({"form_id"}),
}
DETAIL_KEY_PREFIXES: dict[str, tuple[str, ...]] = {
    "form_submission": ("field.",),
}

_EVENT_TYPE_RE = re.compile(r"^[a-z][a-z0-9_]*$")

_EMPTY: Mapping[str, str] = MappingProxyType({})


@dataclass(frozen=True, slots=True)
class InteractionEvent:
    event_type: str
    timestamp: datetime
    attribution: AttributionRecord | None = None
    identity: str | None = None
    page_url: str | None = None
    details: Mapping[str, str] = field(default_factory=lambda: _EMPTY)

    def as_dict(self) -> dict[str, Any]:
        return {
            "eventType": self.event_type,
            "timestamp": self.timestamp.isoformat(),
            "utm": self.attribution.as_dict() if self.attribution is not None else None,
            "userId": self.identity,
            "pageURL": self.page_url,
            "details": dict(self.details),
        }


def validate_event_type(event_type: str, allowed: frozenset[str] | set[str]) -> str:
    if not isinstance(event_type, str) or not _EVENT_TYPE_RE.match(event_type):
        raise ValueError(f"Invalid event_type={event_type!r}")
    if event_type not in allowed:
        raise ValueError(f"Unsupported event_type={event_type!r}. Allowed={sorted(allowed)}")
    return event_type


def validate_details(event_type: str, details: Mapping[str, Any] | None) -> Mapping[str, str]:
    """
    Returns a read-only copy. Keys for built-in types must be recognized; all values
    must be strings.
    """
    if details is None:
        return _EMPTY
    if not isinstance(details, Mapping):
        raise TypeError(f"details must be a mapping, got {type(details).__name__}")

    known = DETAIL_KEYS.get(event_type)
    prefixes = DETAIL_KEY_PREFIXES.get(event_type, ())
    out: dict[str, str] = {}
    for k, v in details.items():
        if not isinstance(k, str) or not k:
            raise TypeError(f"{event_type} detail keys must be non-empty strings")
        if not isinstance(v, str):
            raise TypeError(f"{event_type} detail {k!r} must be a string")
        if known is not None and k not in known and not any(k.startswith(p) for p in prefixes):
            raise ValueError(
                f"Unrecognized {event_type} detail {k!r}. Allowed={sorted(known)}"
                + (f" or prefixes {list(prefixes)}" if prefixes else "")
            )
        out[k] = v
    return MappingProxyType(out)


def json_dumps(payload: Mapping[str, Any] | None) -> str | None:
    if payload is None:
        return None
    # Stable JSON for deterministic outputs/diffs
    return json.dumps(dict(payload), sort_keys=True, separators=(",", ":"), default=str)

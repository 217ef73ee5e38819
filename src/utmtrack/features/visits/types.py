from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class InteractionStep:
    after_s: float
    event_type: str
    details: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Visit:
    """
    One page load in one browser profile, plus the interactions that follow it.

    at_s is seconds since run start; InteractionStep.after_s is relative to the
    previous step.
    """

    at_s: float
    profile: str
    url: str
    referrer: str | None = None
    consent: bool | None = None  # None leaves the stored consent alone
    clear_durable: bool = False
    clear_backup: bool = False
    interactions: tuple[InteractionStep, ...] = ()


def _parse_interaction(visit_idx: int, idx: int, raw: Any) -> InteractionStep:
    where = f"visits[{visit_idx}].interactions[{idx}]"
    if not isinstance(raw, dict):
        raise TypeError(f"{where} must be a mapping/dict")
    if "event_type" not in raw:
        raise ValueError(f"{where}.event_type is required")

    after_s = float(raw.get("after_s", 0.0))
    if after_s < 0:
        raise ValueError(f"{where}.after_s must be >= 0")

    details_raw = raw.get("details") or {}
    if not isinstance(details_raw, dict):
        raise TypeError(f"{where}.details must be a mapping/dict")

    return InteractionStep(
        after_s=after_s,
        event_type=str(raw["event_type"]),
        details={str(k): str(v) for k, v in details_raw.items()},
    )


def parse_visits(raw: Any) -> list[Visit]:
    """
    Builds visits from the YAML config structure:

    visits:
      - at_s: 0
        profile: alice
        url: "https://example.com/?utm_source=google&utm_medium=cpc"
        consent: true
        interactions:
          - {after_s: 1.0, event_type: button_click, details: {element_text: "Buy"}}
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise TypeError("visits must be a list")

    out: list[Visit] = []
    for i, v in enumerate(raw):
        if not isinstance(v, dict):
            raise TypeError(f"visits[{i}] must be a mapping/dict")
        for key in ("profile", "url"):
            if not v.get(key):
                raise ValueError(f"visits[{i}].{key} is required")

        at_s = float(v.get("at_s", 0.0))
        if at_s < 0:
            raise ValueError(f"visits[{i}].at_s must be >= 0")

        consent = v.get("consent")
        steps = v.get("interactions") or []
        if not isinstance(steps, list):
            raise TypeError(f"visits[{i}].interactions must be a list")

        out.append(
            Visit(
                at_s=at_s,
                profile=str(v["profile"]),
                url=str(v["url"]),
                referrer=str(v["referrer"]) if v.get("referrer") else None,
                consent=None if consent is None else bool(consent),
                clear_durable=bool(v.get("clear_durable", False)),
                clear_backup=bool(v.get("clear_backup", False)),
                interactions=tuple(_parse_interaction(i, j, s) for j, s in enumerate(steps)),
            )
        )
    return out

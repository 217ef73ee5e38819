from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

from utmtrack.core.config import DEFAULT_REFERRER_SOURCES

from .types import CAMPAIGN_FIELDS, CAMPAIGN_KEYS, AttributionRecord, parse_record

REFERRAL_MEDIUM = "referral"


def campaign_params(url_params: Mapping[str, str] | None) -> dict[str, str]:
    """
    Recognized, non-empty campaign values keyed by field name.
    utm_<field> wins over the bare <field> when both are present.
    """
    if not url_params:
        return {}
    out: dict[str, str] = {}
    for f in CAMPAIGN_FIELDS:
        for key in (CAMPAIGN_KEYS[f], f):
            value = url_params.get(key)
            if isinstance(value, str) and value.strip():
                out[f] = value.strip()
                break
    return out


def _normalize_host(host: str | None) -> str:
    if not host:
        return ""
    h = host.strip().lower().rstrip(".")
    # drop a port if one slipped through
    if ":" in h:
        h = h.split(":", 1)[0]
    return h


def is_same_site(referrer_host: str, site_host: str | None) -> bool:
    site = _normalize_host(site_host).removeprefix("www.")
    if not site:
        return False
    ref = _normalize_host(referrer_host).removeprefix("www.")
    return ref == site or ref.endswith("." + site)


def referrer_source(
    referrer_host: str | None,
    *,
    site_host: str | None = None,
    referrer_sources: Mapping[str, str] = DEFAULT_REFERRER_SOURCES,
) -> str | None:
    """
    Map an inbound referrer host to a source name.

    Keys without a dot match any host label ("google" matches www.google.co.uk).
    Keys with a dot match that host or its subdomains ("t.co").
    Unmapped cross-origin hosts are returned raw.
    """
    host = _normalize_host(referrer_host)
    if not host or is_same_site(host, site_host):
        return None

    labels = host.split(".")
    for key, source in referrer_sources.items():
        k = key.lower()
        if "." in k:
            if host == k or host.endswith("." + k):
                return source
        elif k in labels:
            return source
    return host


def resolve(
    url_params: Mapping[str, str] | None,
    existing: AttributionRecord | None,
    backup_value: AttributionRecord | str | None,
    referrer_host: str | None,
    *,
    now: datetime,
    current_url: str | None,
    site_host: str | None = None,
    referrer_sources: Mapping[str, str] = DEFAULT_REFERRER_SOURCES,
) -> AttributionRecord | None:
    """
    Attribution for the current page load. First match wins:

    1. existing non-empty record (first touch)
    2. campaign tag in the URL
    3. backup store record
    4. cross-origin referrer (fallback=True, medium="referral")
    5. None (direct / anonymous)

    Pure: no storage access, no clock reads.
    """
    if existing is not None and not existing.is_empty():
        return existing

    params = campaign_params(url_params)
    if params:
        return AttributionRecord(
            **params,
            fallback=False,
            first_visit_at=now,
            first_landing_page=current_url,
        )

    backup = parse_record(backup_value) if isinstance(backup_value, str) else backup_value
    if backup is not None and not backup.is_empty():
        return backup

    source = referrer_source(
        referrer_host, site_host=site_host, referrer_sources=referrer_sources
    )
    if source:
        return AttributionRecord(
            source=source,
            medium=REFERRAL_MEDIUM,
            fallback=True,
            first_visit_at=now,
            first_landing_page=current_url,
        )

    return None

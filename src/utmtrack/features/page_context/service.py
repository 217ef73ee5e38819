from __future__ import annotations

from typing import Protocol
from urllib.parse import parse_qsl, urlsplit


class PageEnvironment(Protocol):
    def url_query_params(self) -> dict[str, str]: ...
    def referrer_host(self) -> str | None: ...
    def current_url(self) -> str: ...


def host_of(url: str | None) -> str | None:
    if not url:
        return None
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    return host or None


class PageContext:
    """
    The page currently loaded in one browser tab. navigate() replaces it.
    """

    def __init__(self, url: str = "", referrer: str | None = None) -> None:
        self._url = url
        self._referrer = referrer

    def navigate(self, url: str, referrer: str | None = None) -> None:
        self._url = url
        self._referrer = referrer

    def current_url(self) -> str:
        return self._url

    def url_query_params(self) -> dict[str, str]:
        # first value wins for repeated keys (URLSearchParams.get)
        try:
            query = urlsplit(self._url).query
        except ValueError:
            return {}
        out: dict[str, str] = {}
        for k, v in parse_qsl(query, keep_blank_values=True):
            out.setdefault(k, v)
        return out

    def referrer_host(self) -> str | None:
        return host_of(self._referrer)

    def site_host(self) -> str | None:
        return host_of(self._url)

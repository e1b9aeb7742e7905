"""Derive cache keys and upstream URLs from inbound requests."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable
from urllib.parse import quote, urlencode

_REPEATED_SLASHES = re.compile(r"/{2,}")

# RFC 3986 pchar delimiters left readable; "?", "#" and "%" are always escaped
_PATH_SAFE = "/:@!$&'()*+,;="


@dataclass(frozen=True)
class InboundRequest:
    """Path (already stripped of the route prefix) and raw query items."""

    path: str
    query: tuple[tuple[str, str], ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class NormalizedRequest:
    cache_key: str
    upstream_url: str


def normalize_path(path: str) -> str:
    """Collapse repeated slashes, drop the trailing one and percent-encode.

    The path arrives already decoded, so characters such as "?" or "#" are
    re-escaped and stay part of the path.

    Examples:
        >>> normalize_path("taxa//5/")
        '/taxa/5'
        >>> normalize_path("")
        '/'
        >>> normalize_path("taxa?id=5#x")
        '/taxa%3Fid=5%23x'
    """
    path = _REPEATED_SLASHES.sub("/", "/" + path.strip())
    if len(path) > 1:
        path = path.rstrip("/")
    return quote(path, safe=_PATH_SAFE)


def normalize_query(
    items: Iterable[tuple[str, str]],
    excluded: Iterable[str] = (),
) -> str:
    """Encode query items sorted by (name, value), minus excluded names.

    Repeated names are kept; blank names are dropped; empty values are kept.
    """
    excluded_names = set(excluded)
    kept = sorted(
        (name, value)
        for name, value in items
        if name.strip() and name not in excluded_names
    )
    return urlencode(kept)


class RequestNormalizer:
    """Pure mapping from an inbound request to (cache key, upstream URL).

    Two requests differing only in parameter order, repeated or trailing
    slashes, or excluded parameters map to the same key.
    """

    def __init__(self, base_url: str, excluded_params: Iterable[str] = ()) -> None:
        self.base_url = base_url.rstrip("/")
        self.excluded_params = frozenset(excluded_params)

    def __call__(self, request: InboundRequest) -> NormalizedRequest:
        path = normalize_path(request.path)
        query = normalize_query(request.query, self.excluded_params)
        cache_key = f"{path}?{query}" if query else path
        return NormalizedRequest(
            cache_key=cache_key,
            upstream_url=f"{self.base_url}{cache_key}",
        )

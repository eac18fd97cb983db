from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import List, Tuple
from urllib.parse import urlsplit

logger = logging.getLogger("swcache.core.classifier")


class RequestClass(enum.Enum):
    BYPASS = "bypass"
    """Resolved live, never read from or written to a store."""

    CACHE_FIRST = "cache_first"
    """Served from the store when present, fetched and stored otherwise."""

    NETWORK_FIRST = "network_first"
    """Fetched live when possible, the store is only a fallback."""


DEFAULT_ALWAYS_LIVE = [
    "*.firebaseio.com",
    "firestore.googleapis.com",
    "*.supabase.co",
]

DEFAULT_ROUTES = [
    ("cdn.tailwindcss.com", RequestClass.CACHE_FIRST),
    ("unpkg.com", RequestClass.CACHE_FIRST),
    ("cdnjs.cloudflare.com", RequestClass.CACHE_FIRST),
    ("cdn.jsdelivr.net", RequestClass.CACHE_FIRST),
    ("fonts.googleapis.com", RequestClass.CACHE_FIRST),
    ("fonts.gstatic.com", RequestClass.CACHE_FIRST),
]


@dataclass
class ClassificationRules:
    """
    Ordered rule table used to classify requests.

    Attributes:
    ----------
    always_live : list[str]
        Host patterns of real-time backends. Matching requests are never
        intercepted, no matter what the routes say.

    routes : list[tuple[str, RequestClass]]
        Ordered ``(host pattern, class)`` pairs. The first matching pattern wins.

        Examples:
        --------
        >>> rules = ClassificationRules(routes=[("static.example.com", RequestClass.CACHE_FIRST)])

    default : RequestClass
        Class for requests that match neither list.

    network_schemes : list[str]
        URL schemes that are intercepted at all. Anything else (``data:``,
        ``blob:``, ``chrome-extension:``, ...) is bypassed.

    Host patterns are case-insensitive. A pattern with ``*``, ``?`` or ``[`` is a
    shell-style glob, anything else matches the host itself and its subdomains.
    """

    always_live: List[str] = field(default_factory=lambda: list(DEFAULT_ALWAYS_LIVE))
    routes: List[Tuple[str, RequestClass]] = field(default_factory=lambda: list(DEFAULT_ROUTES))
    default: RequestClass = RequestClass.NETWORK_FIRST
    network_schemes: List[str] = field(default_factory=lambda: ["http", "https"])


def host_matches(host: str, pattern: str) -> bool:
    """
    Examples:
        >>> host_matches("cdn.example.com", "example.com")
        True
        >>> host_matches("badexample.com", "example.com")
        False
        >>> host_matches("project-1.firebaseio.com", "*.firebaseio.com")
        True
    """
    host = host.lower().rstrip(".")
    pattern = pattern.lower()
    if any(char in pattern for char in "*?["):
        return fnmatchcase(host, pattern)
    return host == pattern or host.endswith("." + pattern)


def classify(url: str, rules: ClassificationRules) -> RequestClass:
    parts = urlsplit(url)

    if parts.scheme.lower() not in rules.network_schemes:
        logger.debug(f"Bypassing non-network scheme {parts.scheme!r}")
        return RequestClass.BYPASS

    host = parts.hostname or ""

    if any(host_matches(host, pattern) for pattern in rules.always_live):
        logger.debug(f"Host {host!r} is always live")
        return RequestClass.BYPASS

    for pattern, request_class in rules.routes:
        if host_matches(host, pattern):
            logger.debug(f"Host {host!r} matched {pattern!r}")
            return request_class

    return rules.default

from __future__ import annotations

from email.utils import formatdate
from pathlib import Path
from typing import AsyncIterator, Iterable, Iterator
from urllib.parse import urljoin, urlsplit, urlunsplit

DEFAULT_PORTS = {"http": 80, "https": 443}


async def make_async_iterator(
    iterable: Iterable[bytes],
) -> AsyncIterator[bytes]:
    for item in iterable:
        yield item


def make_sync_iterator(iterable: Iterable[bytes]) -> Iterator[bytes]:
    for item in iterable:
        yield item


def normalize_url(url: str) -> str:
    """
    Bring a URL into the canonical form used for request identities.

    The scheme and host are lower-cased, default ports are dropped, an empty
    path becomes ``/`` and the fragment is removed. The query string is kept
    verbatim.

    Examples:
        >>> normalize_url("HTTPS://Example.COM:443#top")
        'https://example.com/'
        >>> normalize_url("http://example.com:8080/a?b=1")
        'http://example.com:8080/a?b=1'
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()

    netloc = host
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo += ":" + parts.password
        netloc = f"{userinfo}@{netloc}"
    if parts.port is not None and DEFAULT_PORTS.get(scheme) != parts.port:
        netloc = f"{netloc}:{parts.port}"

    path = parts.path or "/"
    return urlunsplit((scheme, netloc, path, parts.query, ""))


def resolve_locator(locator: str, origin: str | None) -> str:
    """
    Turn a manifest locator into an absolute URL.

    Absolute locators are returned untouched; relative ones need an origin.
    """
    if urlsplit(locator).scheme:
        return locator
    if origin is None:
        raise ValueError(f"Cannot resolve relative locator {locator!r} without an origin")
    return urljoin(origin, locator)


def ensure_cache_dict(base_path: Path | None = None) -> Path:
    _base_path = base_path if base_path is not None else Path(".cache/swcache")
    _gitignore_file = _base_path / ".gitignore"

    _base_path.mkdir(parents=True, exist_ok=True)

    if not _gitignore_file.is_file():
        with open(_gitignore_file, "w", encoding="utf-8") as f:
            f.write("# Automatically created by swcache\n*")
    return _base_path


def generate_http_date() -> str:
    """
    Generate a Date header value for HTTP responses.
    Returns date in RFC 1123 format (required by HTTP/1.1).

    Example output: 'Sun, 26 Oct 2025 12:34:56 GMT'
    """
    return formatdate(timeval=None, localtime=False, usegmt=True)

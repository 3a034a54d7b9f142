"""
URL resolution, canonicalisation and include/exclude filtering.
"""
from __future__ import annotations

import re
from typing import Iterable, Optional
from urllib.parse import urldefrag, urljoin, urlsplit, urlunsplit

from linkcrawler.errors import InvalidURL

HTTP_SCHEMES = ("http", "https")

# Characters outside the URI grammar (RFC 3986) that browsers tolerate but a URI parser rejects
ILLEGAL_CHARS: frozenset[str] = frozenset(' <>"{}|\\^`')
BAD_PERCENT_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def _check_reference(href: str) -> None:
    for char in href:
        if char in ILLEGAL_CHARS or ord(char) < 0x20 or ord(char) == 0x7F or char.isspace():
            raise InvalidURL(href, f"bad URI(is not URI?): {href!r}")
    if BAD_PERCENT_ESCAPE.search(href):
        raise InvalidURL(href, f"invalid percent-encoding: {href!r}")


def _netloc(parsed) -> str:
    """Lowercased host with the default port for the scheme removed."""
    hostname = (parsed.hostname or "").lower()
    if ":" in hostname:
        hostname = f"[{hostname}]"

    userinfo = ""
    if parsed.username is not None:
        userinfo = parsed.username
        if parsed.password is not None:
            userinfo += ":" + parsed.password
        userinfo += "@"

    port = parsed.port
    scheme = parsed.scheme.lower()
    if port is None or (scheme == "http" and port == 80) or (scheme == "https" and port == 443):
        return f"{userinfo}{hostname}"
    return f"{userinfo}{hostname}:{port}"


def canonicalize(url: str) -> str:
    """
    Canonical form of an absolute URL used for deduplication.

    - Drops fragments (#...)
    - Normalizes scheme/host case
    - Removes default ports (:80, :443)
    - Renders a bare site root without the trailing slash
    - Keeps querystrings (they matter for uniqueness)
    """
    joined, _ = urldefrag(url)
    try:
        parsed = urlsplit(joined)
        scheme = parsed.scheme.lower()
        if scheme not in HTTP_SCHEMES:
            return joined
        if not parsed.hostname:
            raise InvalidURL(url, f"missing host: {url!r}")
        netloc = _netloc(parsed)
    except ValueError as exc:
        raise InvalidURL(url, str(exc)) from exc

    path = parsed.path
    if path == "/" and not parsed.query:
        path = ""
    elif not path and parsed.query:
        path = "/"

    return urlunsplit((scheme, netloc, path, parsed.query, ""))


def resolve(base: str, href: str) -> str:
    """
    Resolve ``href`` against ``base`` and return the canonical absolute URL.

    Relative paths, protocol-relative references, absolute paths and absolute
    URLs are all supported. Raises InvalidURL when ``href`` is not a valid URI
    reference.
    """
    href = href.strip()
    _check_reference(href)
    try:
        joined = urljoin(base, href)
    except ValueError as exc:
        raise InvalidURL(href, str(exc)) from exc
    try:
        return canonicalize(joined)
    except InvalidURL as exc:
        raise InvalidURL(href, exc.reason) from exc


def is_http_url(url: str) -> bool:
    parsed = urlsplit(url)
    return parsed.scheme.lower() in HTTP_SCHEMES and bool(parsed.netloc)


def host_of(url: str) -> str:
    """Lowercased hostname of an absolute URL ('' when it has none)."""
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def is_internal(url: str, base_host: str) -> bool:
    """Check if URL has the same host as the crawl base."""
    host = host_of(url)
    return not host or host == base_host.lower()


def is_excluded(
    url: str,
    exclude_patterns: Iterable[re.Pattern[str]],
    include_patterns: Optional[Iterable[re.Pattern[str]]] = None,
) -> bool:
    """
    Decide whether ``url`` is kept out of the crawl.

    Exclude patterns win over include patterns. With no include patterns,
    nothing is excluded on inclusion grounds alone.
    """
    if any(pattern.search(url) for pattern in exclude_patterns):
        return True
    include = list(include_patterns or ())
    if not include:
        return False
    return not any(pattern.search(url) for pattern in include)

"""URL and hostname helpers."""

from __future__ import annotations

from urllib.parse import urlparse

from ..errors import InvalidURLError

CHECKABLE_SCHEMES = {"http", "https"}

# Browser-internal pages that are never sent to the classifier
INTERNAL_PREFIXES = (
    "about:",
    "chrome://",
    "chrome-extension://",
    "edge://",
    "moz-extension://",
    "view-source:",
    "devtools://",
    "data:",
    "javascript:",
    "blob:",
    "file://",
)


def normalize_hostname(value: str) -> str:
    """Lowercase a hostname and strip surrounding whitespace and the trailing dot."""
    return (value or "").strip().lower().strip(".")


def extract_hostname(value: str) -> str:
    """
    Return the hostname of a URL or bare host.

    - Lowercase
    - Port, path, query and fragment dropped
    - "www." is kept (allow-list matching is exact)
    """
    raw = (value or "").strip()
    if not raw:
        return ""
    candidate = raw if "://" in raw else f"https://{raw}"
    try:
        parsed = urlparse(candidate)
        hostname = parsed.hostname or ""
    except ValueError:
        return ""
    return normalize_hostname(hostname)


def is_internal_url(url: str) -> bool:
    """True for blank/internal browser pages that are never checked."""
    value = (url or "").strip().lower()
    if not value:
        return True
    return value.startswith(INTERNAL_PREFIXES)


def validate_url(url: str) -> str:
    """
    Ensure ``url`` can be sent to the classifier and return its hostname.

    Raises:
        InvalidURLError: not an absolute http(s) URL with a hostname
    """
    raw = (url or "").strip()
    if not raw:
        raise InvalidURLError(url, "empty URL")
    try:
        parsed = urlparse(raw)
        hostname = parsed.hostname
        # Accessing .port validates it (raises ValueError when out of range)
        parsed.port
    except ValueError as exc:
        raise InvalidURLError(url, str(exc)) from exc
    if parsed.scheme.lower() not in CHECKABLE_SCHEMES:
        raise InvalidURLError(url, f"unsupported scheme {parsed.scheme!r}")
    if not hostname:
        raise InvalidURLError(url, "missing hostname")
    return normalize_hostname(hostname)


def host_matches_suffix(hostname: str, domains: set[str]) -> bool:
    """True if ``hostname`` equals a domain in ``domains`` or is a subdomain of one."""
    host = normalize_hostname(hostname)
    if not host or not domains:
        return False
    if host in domains:
        return True
    # Walk parent labels: a.b.github.com -> b.github.com -> github.com -> com
    parts = host.split(".")
    for i in range(1, len(parts)):
        if ".".join(parts[i:]) in domains:
            return True
    return False

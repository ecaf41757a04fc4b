"""Exception types for LinkGuard."""

from __future__ import annotations

from typing import Optional


class LinkGuardError(Exception):
    """Base exception for LinkGuard errors."""

    pass


class TransportError(LinkGuardError):
    """Classifier could not be reached or returned an unusable response.

    Raised per attempt inside the classifier client and retried there; it
    never reaches coordinator callers.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        self.message = message
        if status_code is not None:
            super().__init__(f"HTTP {status_code}: {message}")
        else:
            super().__init__(message)


class InvalidURLError(LinkGuardError):
    """URL cannot be checked (not an absolute http(s) URL with a host)."""

    def __init__(self, url: str, reason: str = "not an absolute http(s) URL"):
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid URL {url!r}: {reason}")


class ConfigurationError(LinkGuardError):
    """LinkGuard not properly configured."""

    pass

"""Per-URL decision cache with TTL.

Entries are keyed by the exact URL string and expire a fixed number of
seconds after the decision's ``observed_at``. Expiry is checked lazily on
read; nothing sweeps the table in the background.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from .models import Decision

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 600


class DecisionCache:
    """
    In-memory decision cache.

    Usage:
        cache = DecisionCache(ttl_seconds=600)
        cache.put(url, decision)
        cached = cache.get(url)  # None once the TTL has elapsed
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Lifetime of an entry, measured from Decision.observed_at
            clock: Source of "now" in epoch seconds (swap for a fake in tests)
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Decision] = {}

    def _is_expired(self, decision: Decision) -> bool:
        return self._clock() - decision.observed_at >= self.ttl_seconds

    def get(self, url: str) -> Optional[Decision]:
        """
        Get the cached decision for a URL if present and not expired.

        Args:
            url: Exact URL string

        Returns:
            Cached Decision or None if not found/expired
        """
        decision = self._entries.get(url)
        if decision is None:
            return None
        if self._is_expired(decision):
            # Expired - remove so the next miss starts clean
            del self._entries[url]
            logger.debug(f"Cache entry expired for {url}")
            return None
        return decision

    def put(self, url: str, decision: Decision) -> None:
        """Store a decision, replacing whatever was there."""
        self._entries[url] = decision

    def delete(self, url: str) -> None:
        """Delete a cached decision."""
        self._entries.pop(url, None)

    def clear(self) -> None:
        """Clear all cached decisions."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics (stored entries, including not-yet-evicted expired ones)."""
        return {
            "ttl_seconds": self.ttl_seconds,
            "entries": len(self._entries),
        }

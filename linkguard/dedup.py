"""Collapse concurrent lookups for the same URL into one upstream call."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict

from .cache import DecisionCache
from .models import Decision

logger = logging.getLogger(__name__)

FetchFn = Callable[[str], Awaitable[Decision]]


@dataclass
class InFlightTicket:
    """One outstanding upstream call for a URL."""

    url: str
    task: "asyncio.Task[Decision]"
    started_at: float
    waiters: int = 0


class InFlightDeduplicator:
    """
    At most one outstanding fetch per URL.

    The first caller for a URL creates the ticket synchronously (before any
    await), so callers arriving while it is pending attach to the same task
    instead of calling ``fetch_fn`` again. The fetch runs in its own task:
    a waiter that gets cancelled does not cancel the shared call.
    """

    def __init__(self, cache: DecisionCache):
        self.cache = cache
        self._tickets: Dict[str, InFlightTicket] = {}

    @property
    def in_flight(self) -> int:
        return len(self._tickets)

    def is_pending(self, url: str) -> bool:
        return url in self._tickets

    async def resolve(self, url: str, fetch_fn: FetchFn) -> Decision:
        """Return the decision for ``url``, sharing any call already in flight."""
        ticket = self._tickets.get(url)
        if ticket is None:
            task = asyncio.ensure_future(self._run(url, fetch_fn))
            ticket = InFlightTicket(url=url, task=task, started_at=time.monotonic())
            self._tickets[url] = ticket
        else:
            logger.debug(f"Joining in-flight check for {url}")

        ticket.waiters += 1
        try:
            return await asyncio.shield(ticket.task)
        finally:
            ticket.waiters -= 1

    async def _run(self, url: str, fetch_fn: FetchFn) -> Decision:
        try:
            decision = await fetch_fn(url)
            self.cache.put(url, decision)
        finally:
            self._tickets.pop(url, None)
        return decision

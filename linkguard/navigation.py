"""
Per-tab navigation check state.

Each tab carries at most one session describing the page it is currently
showing:

    IDLE -> CHECKING -> RESOLVED_SAFE
                     -> RESOLVED_PHISHING_REDIRECT
                     -> RESOLVED_PHISHING_DEFERRED

A new navigation resets the tab's session to IDLE but keeps its skip deadline.
Checks that were started for an earlier URL keep running, but their results
no longer match the session and are dropped by ``resolve``.

While the user's skip window is open (``skip_until`` in the future), a
PHISHING verdict produces a passive notice instead of a redirect.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Optional

from .models import Decision, NavigationAction, NavigationState, Outcome

logger = logging.getLogger(__name__)

DEFAULT_SKIP_WINDOW_SECONDS = 15.0

TabId = Hashable

_RESOLVED_STATES = {
    NavigationState.RESOLVED_SAFE,
    NavigationState.RESOLVED_PHISHING_REDIRECT,
    NavigationState.RESOLVED_PHISHING_DEFERRED,
}

_ACTION_FOR_STATE = {
    NavigationState.RESOLVED_SAFE: NavigationAction.PASS,
    NavigationState.RESOLVED_PHISHING_REDIRECT: NavigationAction.REDIRECT,
    NavigationState.RESOLVED_PHISHING_DEFERRED: NavigationAction.DEFERRED_NOTICE,
}


@dataclass
class NavigationSession:
    """What a tab is showing and how far its check has got."""

    tab_id: TabId
    url: Optional[str] = None
    state: NavigationState = NavigationState.IDLE
    skip_until: float = 0.0
    started_at: float = 0.0
    decision: Optional[Decision] = None

    @property
    def is_checking(self) -> bool:
        return self.state == NavigationState.CHECKING

    @property
    def is_resolved(self) -> bool:
        return self.state in _RESOLVED_STATES

    def skip_active(self, now: float) -> bool:
        return now < self.skip_until


class NavigationSessionTracker:
    """Owns every tab's NavigationSession and applies the state transitions."""

    def __init__(
        self,
        skip_window_seconds: float = DEFAULT_SKIP_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.skip_window_seconds = skip_window_seconds
        self._clock = clock
        self._sessions: Dict[TabId, NavigationSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, tab_id: TabId) -> Optional[NavigationSession]:
        return self._sessions.get(tab_id)

    def begin(self, tab_id: TabId, url: str) -> NavigationSession:
        """A new navigation started in the tab: fresh IDLE session, same skip deadline."""
        previous = self._sessions.get(tab_id)
        if previous and previous.is_checking and previous.url != url:
            logger.debug(
                f"Tab {tab_id}: navigation to {url} supersedes pending check of {previous.url}"
            )
        session = NavigationSession(
            tab_id=tab_id,
            url=url,
            skip_until=previous.skip_until if previous else 0.0,
            started_at=self._clock(),
        )
        self._sessions[tab_id] = session
        return session

    def start_check(self, tab_id: TabId, url: str) -> NavigationSession:
        """IDLE -> CHECKING for the tab's current URL."""
        session = self._sessions.get(tab_id)
        if session is None or session.url != url:
            session = self.begin(tab_id, url)
        if session.state != NavigationState.IDLE:
            raise RuntimeError(
                f"Tab {tab_id}: cannot start a check from state {session.state.value}"
            )
        session.state = NavigationState.CHECKING
        return session

    def resolve(self, tab_id: TabId, url: str, decision: Decision) -> Optional[NavigationAction]:
        """
        Apply a finished check to the tab.

        Returns the action to take, or None when the result is stale (the tab
        has moved on to another URL, or this URL is no longer being checked).
        """
        session = self._sessions.get(tab_id)
        if session is None or session.url != url or not session.is_checking:
            logger.debug(f"Tab {tab_id}: discarding stale result for {url}")
            return None

        session.decision = decision
        if decision.outcome != Outcome.PHISHING:
            # SAFE, DISABLED and ERROR all let the page through
            session.state = NavigationState.RESOLVED_SAFE
        elif session.skip_active(self._clock()):
            session.state = NavigationState.RESOLVED_PHISHING_DEFERRED
            logger.info(f"Tab {tab_id}: {url} is phishing but user skipped; showing notice")
        else:
            session.state = NavigationState.RESOLVED_PHISHING_REDIRECT
            logger.info(f"Tab {tab_id}: {url} is phishing; redirecting to warning page")

        return _ACTION_FOR_STATE[session.state]

    def skip(self, tab_id: TabId) -> float:
        """User asked to skip the check: suppress redirects for the skip window."""
        session = self._sessions.get(tab_id)
        if session is None:
            session = NavigationSession(tab_id=tab_id, started_at=self._clock())
            self._sessions[tab_id] = session
        session.skip_until = self._clock() + self.skip_window_seconds
        logger.info(f"Tab {tab_id}: skip requested, redirects suppressed for {self.skip_window_seconds:.0f}s")
        return session.skip_until

    def is_skipping(self, tab_id: TabId) -> bool:
        session = self._sessions.get(tab_id)
        return bool(session and session.skip_active(self._clock()))

    def forget(self, tab_id: TabId) -> None:
        """Tab closed."""
        self._sessions.pop(tab_id, None)

    def count_by_state(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for session in self._sessions.values():
            counts[session.state.value] = counts.get(session.state.value, 0) + 1
        return counts

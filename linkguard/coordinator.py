"""
Decision coordinator: the single entry point for every check.

Link probes (hover/click), page checks and tab navigations all go through
``evaluate``, which short-circuits in this order:

    disabled -> invalid URL -> allow-list -> cache -> in-flight call -> classifier

Navigation checks additionally run through the per-tab session tracker so
that stale results are dropped and the user's skip window is honoured.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Hashable, Optional

from .allowlist import AllowListResolver
from .cache import DecisionCache
from .classifier.client import ClassifierClient
from .dedup import InFlightDeduplicator
from .errors import InvalidURLError
from .messages import (
    DEFAULT_WARNING_PAGE_URL,
    NullSink,
    RenderSink,
    build_warning_url,
    late_phishing_warning,
    page_check_result,
    page_check_start,
    redirect,
)
from .models import Decision, LinkVerdict, NavigationAction, Outcome, TriggerKind
from .navigation import NavigationSessionTracker
from .settings import GuardSettings, SettingsStore
from .utils.domains import extract_hostname, is_internal_url, validate_url

logger = logging.getLogger(__name__)

DEFAULT_HOVER_RISK_THRESHOLD = 0.9


class DecisionCoordinator:
    """Wires cache, deduplicator, classifier, allow-list and sessions together."""

    def __init__(
        self,
        *,
        settings: SettingsStore,
        client: ClassifierClient,
        resolver: Optional[AllowListResolver] = None,
        cache: Optional[DecisionCache] = None,
        deduplicator: Optional[InFlightDeduplicator] = None,
        sessions: Optional[NavigationSessionTracker] = None,
        sink: Optional[RenderSink] = None,
        hover_risk_threshold: float = DEFAULT_HOVER_RISK_THRESHOLD,
        warning_page_url: str = DEFAULT_WARNING_PAGE_URL,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.client = client
        self.resolver = resolver if resolver is not None else AllowListResolver()
        self.cache = cache if cache is not None else DecisionCache()
        self.deduplicator = (
            deduplicator if deduplicator is not None else InFlightDeduplicator(self.cache)
        )
        self.sessions = sessions if sessions is not None else NavigationSessionTracker()
        self.sink: RenderSink = sink if sink is not None else NullSink()
        self.hover_risk_threshold = hover_risk_threshold
        self.warning_page_url = warning_page_url
        self._clock = clock

        self.resolver.attach(settings)

    async def evaluate(
        self,
        url: str,
        trigger: TriggerKind = TriggerKind.PAGE,
        settings: Optional[GuardSettings] = None,
    ) -> Decision:
        """Return the decision for ``url``, doing network I/O only when nothing else answers."""
        settings = settings or self.settings.snapshot()
        if not settings.is_enabled:
            return Decision.create(url, Outcome.DISABLED, self._clock())

        try:
            hostname = validate_url(url)
        except InvalidURLError as e:
            logger.info(f"Not checking {url!r}: {e.reason}")
            return Decision.create(url, Outcome.ERROR, self._clock())

        if self.resolver.is_allowed(hostname) or hostname in settings.user_whitelist_hosts:
            return Decision.create(url, Outcome.SAFE, self._clock())

        cached = self.cache.get(url)
        if cached is not None:
            logger.debug(f"Cache hit for {url} ({trigger.value}): {cached.outcome.value}")
            return cached

        try:
            return await self.deduplicator.resolve(url, self.client.fetch_decision)
        except InvalidURLError as e:
            logger.info(f"Classifier rejected {url!r}: {e.reason}")
            return Decision.create(url, Outcome.ERROR, self._clock())

    async def check_link(
        self,
        url: str,
        page_url: Optional[str] = None,
        source: TriggerKind = TriggerKind.HOVER,
    ) -> LinkVerdict:
        """Link probe from the page. Only confident hover hits raise a bubble."""
        decision = await self.evaluate(url, source)
        show_bubble = (
            source == TriggerKind.HOVER
            and decision.is_phishing
            and decision.score >= self.hover_risk_threshold
        )
        if decision.is_phishing and not show_bubble:
            logger.debug(
                f"Link {url} on {page_url or '?'} flagged ({decision.score:.2f}) but not shown for {source.value}"
            )
        return LinkVerdict(decision=decision, trigger=source, show_bubble=show_bubble)

    async def check_page(self, url: str) -> Decision:
        return await self.evaluate(url, TriggerKind.PAGE)

    def is_checkable_navigation(self, url: str) -> bool:
        """True for pages a navigation check applies to (not blank/internal/the warning page)."""
        if is_internal_url(url):
            return False
        if self.warning_page_url and url.startswith(self.warning_page_url):
            return False
        return True

    async def handle_navigation(
        self,
        tab_id: Hashable,
        url: str,
        is_load_completed: bool = True,
    ) -> Optional[NavigationAction]:
        """
        Run the full-page check for a tab that finished loading ``url``.

        Returns the action taken, or None when nothing was checked or the
        result arrived after the tab moved on.
        """
        if not is_load_completed or not self.is_checkable_navigation(url):
            return None
        if not self.settings.is_enabled:
            return None

        self.sessions.begin(tab_id, url)

        if self.resolver.consume_proceed_url(url):
            logger.info(f"Tab {tab_id}: letting {url} through once after user proceeded")
            return NavigationAction.PASS
        hostname = extract_hostname(url)
        if hostname and self.resolver.is_allowed(hostname):
            return NavigationAction.PASS

        self.sessions.start_check(tab_id, url)
        await self.sink.send(tab_id, page_check_start(url))

        decision = await self.evaluate(url, TriggerKind.NAVIGATION)

        action = self.sessions.resolve(tab_id, url, decision)
        if action is None:
            return None

        await self.sink.send(
            tab_id, page_check_result(url, decision.outcome.value, decision.score)
        )
        if action == NavigationAction.REDIRECT:
            warning_url = build_warning_url(self.warning_page_url, url, decision.score)
            await self.sink.send(tab_id, redirect(warning_url))
        elif action == NavigationAction.DEFERRED_NOTICE:
            await self.sink.send(tab_id, late_phishing_warning(decision.score))
        return action

    def nav_overlay_init(self, tab_id: Hashable, url: str) -> bool:
        """Should the page show the "checking" overlay while the navigation check runs?"""
        if not self.settings.is_enabled or not self.is_checkable_navigation(url):
            return False
        try:
            hostname = validate_url(url)
        except InvalidURLError:
            return False
        if self.resolver.has_proceed_url(url) or self.resolver.is_allowed(hostname):
            return False
        cached = self.cache.get(url)
        if cached is not None and not cached.is_phishing:
            return False
        return not self.sessions.is_skipping(tab_id)

    async def proceed_to_url(self, url: str, tab_id: Optional[Hashable] = None) -> str:
        """User chose "continue anyway" on the warning page."""
        host = self.resolver.grant_proceed(url)
        if tab_id is not None:
            await self.sink.send(tab_id, redirect(url))
        return host

    def add_current_to_whitelist(self, url: str) -> str:
        """Add the URL's host to the persisted user whitelist."""
        host = extract_hostname(url)
        if not host:
            raise InvalidURLError(url, "missing hostname")
        if self.settings.add_whitelist_host(host):
            logger.info(f"Added {host} to user whitelist")
        return host

    def remove_from_whitelist(self, url: str) -> Optional[str]:
        """Remove a host (or a URL's host) from the user whitelist. Returns the host if it was listed."""
        host = extract_hostname(url)
        if not host:
            raise InvalidURLError(url, "missing hostname")
        if not self.settings.remove_whitelist_host(host):
            return None
        logger.info(f"Removed {host} from user whitelist")
        return host

    def nav_user_skip(self, tab_id: Hashable) -> float:
        return self.sessions.skip(tab_id)

    def tab_closed(self, tab_id: Hashable) -> None:
        self.sessions.forget(tab_id)

    def set_enabled(self, enabled: bool) -> None:
        self.settings.set_enabled(enabled)
        logger.info(f"Protection {'enabled' if enabled else 'disabled'}")

    def status(self) -> dict:
        """Counters for health/metrics endpoints."""
        cache_stats = self.cache.stats()
        status = {
            "enabled": self.settings.is_enabled,
            "cache_entries": cache_stats["entries"],
            "cache_ttl_seconds": cache_stats["ttl_seconds"],
            "in_flight": self.deduplicator.in_flight,
            "classifier_calls": self.client.calls,
            "tabs": len(self.sessions),
            "proceed_hosts": len(self.resolver.proceed_hosts),
            "user_whitelist_hosts": len(self.resolver.user_whitelist),
        }
        for state, count in self.sessions.count_by_state().items():
            status[f"tabs_{state}"] = count
        return status

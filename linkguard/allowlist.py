"""Decide whether a host or URL may skip the classifier entirely."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional

from .settings import USER_WHITELIST_HOSTS, SettingsStore
from .utils.domains import extract_hostname, host_matches_suffix, normalize_hostname

logger = logging.getLogger(__name__)

DEFAULT_SAFE_DOMAINS: set[str] = {
    "github.com",
    "google.com",
}


class AllowListResolver:
    """
    Combines every source of trust consulted before a remote check.

    - static safe domains: exact or subdomain match
    - user whitelist: exact host match, mirrored from the settings store
    - session proceed grants: exact hosts (whole session) and exact URLs
      (consumed the first time they let a navigation through)

    Session grants are process memory only.
    """

    def __init__(
        self,
        safe_domains: Optional[Iterable[str]] = None,
        user_whitelist: Optional[Iterable[str]] = None,
    ):
        domains = DEFAULT_SAFE_DOMAINS if safe_domains is None else safe_domains
        self.safe_domains: set[str] = {normalize_hostname(d) for d in domains if d}
        self.user_whitelist: set[str] = set()
        self.proceed_urls: set[str] = set()
        self.proceed_hosts: set[str] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None
        if user_whitelist:
            self.set_user_whitelist(user_whitelist)

    def is_allowed(self, hostname: str) -> bool:
        """True if the host is covered by any allow-list source."""
        host = normalize_hostname(hostname)
        if not host:
            return False
        if host_matches_suffix(host, self.safe_domains):
            logger.debug(f"Skip detection for safe domain: {host}")
            return True
        if host in self.user_whitelist:
            logger.debug(f"Skip detection for user-whitelisted host: {host}")
            return True
        if host in self.proceed_hosts:
            logger.debug(f"Skip detection for host proceeded this session: {host}")
            return True
        return False

    def consume_proceed_url(self, url: str) -> bool:
        """Use up the one-shot grant for exactly this URL, if there is one."""
        if url in self.proceed_urls:
            self.proceed_urls.discard(url)
            return True
        return False

    def has_proceed_url(self, url: str) -> bool:
        return url in self.proceed_urls

    def grant_proceed(self, url: str) -> str:
        """Record that the user chose to continue to ``url`` from the warning page."""
        self.proceed_urls.add(url)
        host = extract_hostname(url)
        if host:
            self.proceed_hosts.add(host)
        logger.info(f"User proceeded to {url}; trusting {host or '?'} for this session")
        return host

    def set_user_whitelist(self, hosts: Iterable[str]) -> None:
        self.user_whitelist = {normalize_hostname(h) for h in hosts if h}

    def attach(self, store: SettingsStore) -> None:
        """Mirror the store's user whitelist and follow its changes."""
        self.detach()
        self.set_user_whitelist(store.whitelist_hosts())
        self._unsubscribe = store.subscribe(self._on_setting_changed)

    def detach(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_setting_changed(self, key: str, old: Any, new: Any) -> None:
        if key == USER_WHITELIST_HOSTS:
            self.set_user_whitelist(new or [])
            logger.debug(f"User whitelist updated ({len(self.user_whitelist)} hosts)")

"""Persisted user settings with change notification.

Settings live in a small JSON file in the data directory. Components that
need a live view (the allow-list resolver's whitelist mirror) subscribe and
get pushed ``(key, old, new)`` on every change instead of re-reading.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

IS_ENABLED = "isEnabled"
USER_WHITELIST_HOSTS = "userWhitelistHosts"

# Protection starts switched off until the user enables it
DEFAULTS: dict[str, Any] = {
    IS_ENABLED: False,
    USER_WHITELIST_HOSTS: [],
}

Listener = Callable[[str, Any, Any], None]


@dataclass(frozen=True)
class GuardSettings:
    """Point-in-time view of the settings the coordinator reads."""

    is_enabled: bool = False
    user_whitelist_hosts: frozenset[str] = field(default_factory=frozenset)


class SettingsStore:
    """Key-value settings backed by a JSON file (or memory only when path is None)."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else None
        self._values: dict[str, Any] = {}
        self._listeners: list[Listener] = []
        self._load()

    def _load(self) -> None:
        self._values = {key: _copy(value) for key, value in DEFAULTS.items()}
        if not self.path or not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read settings from {self.path}: {e}; using defaults")
            return
        if isinstance(data, dict):
            self._values.update(data)

    def _save(self, values: dict[str, Any]) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(values, indent=2, sort_keys=True))
        tmp_path.replace(self.path)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._values:
            return _copy(self._values[key])
        return default

    def set(self, key: str, value: Any) -> None:
        """Persist a value, then commit it and notify listeners if it changed.

        Raises:
            OSError: the settings file could not be written (nothing changes)
        """
        old = self._values.get(key)
        if old == value:
            return
        updated = dict(self._values)
        updated[key] = _copy(value)
        self._save(updated)
        self._values = updated
        for listener in list(self._listeners):
            try:
                listener(key, _copy(old), _copy(value))
            except Exception as e:  # pragma: no cover
                logger.error(f"Settings listener failed for {key}: {e}")

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def is_enabled(self) -> bool:
        return bool(self._values.get(IS_ENABLED))

    def set_enabled(self, enabled: bool) -> None:
        self.set(IS_ENABLED, bool(enabled))

    def whitelist_hosts(self) -> list[str]:
        hosts = self._values.get(USER_WHITELIST_HOSTS) or []
        return [str(h) for h in hosts if h]

    def add_whitelist_host(self, host: str) -> bool:
        """Add a host to the user whitelist. Returns False if already present."""
        hosts = self.whitelist_hosts()
        if not host or host in hosts:
            return False
        self.set(USER_WHITELIST_HOSTS, sorted(hosts + [host]))
        return True

    def remove_whitelist_host(self, host: str) -> bool:
        hosts = self.whitelist_hosts()
        if host not in hosts:
            return False
        self.set(USER_WHITELIST_HOSTS, [h for h in hosts if h != host])
        return True

    def snapshot(self) -> GuardSettings:
        return GuardSettings(
            is_enabled=self.is_enabled,
            user_whitelist_hosts=frozenset(self.whitelist_hosts()),
        )


def _copy(value: Any) -> Any:
    if isinstance(value, list):
        return list(value)
    if isinstance(value, dict):
        return dict(value)
    return value

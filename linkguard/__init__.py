"""LinkGuard: phishing decision coordination for browser navigation and link probes."""

from .allowlist import AllowListResolver
from .cache import DecisionCache
from .classifier import ClassifierClient, RetryPolicy
from .coordinator import DecisionCoordinator
from .dedup import InFlightDeduplicator
from .models import Decision, NavigationAction, NavigationState, Outcome, TriggerKind
from .navigation import NavigationSessionTracker
from .settings import SettingsStore

__all__ = [
    "AllowListResolver",
    "ClassifierClient",
    "Decision",
    "DecisionCache",
    "DecisionCoordinator",
    "InFlightDeduplicator",
    "NavigationAction",
    "NavigationSessionTracker",
    "NavigationState",
    "Outcome",
    "RetryPolicy",
    "SettingsStore",
    "TriggerKind",
]

"""Shared data types for the decision layer."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Outcome(str, Enum):
    """Classifier verdict for a URL."""

    SAFE = "SAFE"
    PHISHING = "PHISHING"
    DISABLED = "DISABLED"  # Protection switched off (locally or upstream)
    ERROR = "ERROR"  # Invalid URL or unrecognized upstream verdict

    @classmethod
    def parse(cls, value: Any) -> "Outcome":
        """Map an upstream value to an outcome (exact, case-sensitive); anything else is ERROR."""
        for entry in cls:
            if entry.value == value:
                return entry
        return cls.ERROR


class TriggerKind(str, Enum):
    """What caused a check."""

    HOVER = "hover"
    CLICK = "click"
    PAGE = "page"
    NAVIGATION = "navigation"

    @classmethod
    def parse(cls, value: Any) -> "TriggerKind":
        if isinstance(value, TriggerKind):
            return value
        if isinstance(value, str):
            text = value.strip().lower()
            for entry in cls:
                if entry.value == text:
                    return entry
        raise ValueError(f"Unknown trigger kind: {value!r}")


class NavigationState(str, Enum):
    """Per-tab navigation check state."""

    IDLE = "idle"
    CHECKING = "checking"
    RESOLVED_SAFE = "resolved_safe"
    RESOLVED_PHISHING_REDIRECT = "resolved_phishing_redirect"
    RESOLVED_PHISHING_DEFERRED = "resolved_phishing_deferred"


class NavigationAction(str, Enum):
    """User-visible result of a navigation check."""

    PASS = "pass"  # Nothing shown
    REDIRECT = "redirect"  # Hard redirect to the warning page
    DEFERRED_NOTICE = "deferred_notice"  # Passive, auto-dismissing warning


def synthesize_score(outcome: Outcome, raw: Any = None) -> float:
    """Return a score in [0, 1]; missing or non-numeric values depend on outcome."""
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        value = float(raw)
        if not math.isnan(value):
            return min(1.0, max(0.0, value))
    return 1.0 if outcome == Outcome.PHISHING else 0.0


@dataclass(frozen=True)
class Decision:
    """A classifier verdict for one URL. Never mutated; re-checks create new ones."""

    url: str
    outcome: Outcome
    score: float
    observed_at: float

    @classmethod
    def create(
        cls,
        url: str,
        outcome: Outcome,
        observed_at: float,
        score: Optional[Any] = None,
    ) -> "Decision":
        return cls(
            url=url,
            outcome=outcome,
            score=synthesize_score(outcome, score),
            observed_at=observed_at,
        )

    @property
    def is_phishing(self) -> bool:
        return self.outcome == Outcome.PHISHING

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "decision": self.outcome.value,
            "score": self.score,
            "observedAt": self.observed_at,
        }


@dataclass(frozen=True)
class LinkVerdict:
    """Result of a link probe, with whether the render layer should show a bubble."""

    decision: Decision
    trigger: TriggerKind
    show_bubble: bool = False

    def to_dict(self) -> dict:
        return {
            "decision": self.decision.outcome.value,
            "score": self.decision.score,
            "source": self.trigger.value,
            "showBubble": self.show_bubble,
        }

"""Outbound messages for the render layer and the channel that delivers them."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Hashable, Optional, Protocol
from urllib.parse import urlencode

logger = logging.getLogger(__name__)

DEFAULT_WARNING_PAGE_URL = "extension/warning.html"


@dataclass(frozen=True)
class RenderMessage:
    """A message for the tab's render layer (``action`` plus payload)."""

    action: str
    payload: dict

    def to_dict(self, tab_id: Optional[Hashable] = None) -> dict:
        data: dict[str, Any] = {"action": self.action, **self.payload}
        if tab_id is not None:
            data["tabId"] = tab_id
        return data


def page_check_start(url: str) -> RenderMessage:
    return RenderMessage("pageCheckStart", {"url": url})


def page_check_result(url: str, decision: str, score: float) -> RenderMessage:
    return RenderMessage("pageCheckResult", {"url": url, "decision": decision, "score": score})


def late_phishing_warning(score: float) -> RenderMessage:
    return RenderMessage("latePhishingWarning", {"score": score})


def redirect(url: str) -> RenderMessage:
    return RenderMessage("redirect", {"url": url})


def build_warning_url(warning_page_url: str, target_url: str, score: Optional[float] = None) -> str:
    """Warning page URL carrying the blocked target (and score) as query parameters."""
    params: dict[str, str] = {"url": target_url}
    if score is not None:
        params["score"] = f"{score:.2f}"
    separator = "&" if "?" in warning_page_url else "?"
    return f"{warning_page_url}{separator}{urlencode(params)}"


class RenderSink(Protocol):
    async def send(self, tab_id: Optional[Hashable], message: RenderMessage) -> None:
        ...


class NullSink:
    """Drops every message."""

    async def send(self, tab_id: Optional[Hashable], message: RenderMessage) -> None:
        logger.debug(f"Dropping {message.action} for tab {tab_id}")


class EventHub:
    """Fans render messages out to every subscriber queue (one per connected client)."""

    def __init__(self, max_queue: int = 100):
        self.max_queue = max_queue
        self._subscribers: set[asyncio.Queue] = set()

    @property
    def subscribers(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    async def send(self, tab_id: Optional[Hashable], message: RenderMessage) -> None:
        data = message.to_dict(tab_id)
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(data)
            except asyncio.QueueFull:
                logger.warning(f"Render client queue full, dropping {message.action}")

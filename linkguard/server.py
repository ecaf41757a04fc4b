"""aiohttp bridge between the browser render layer and the coordinator.

- ``POST /message``: one JSON request per render-layer action
  (``{"action": "checkLink", ...}``), answered with JSON
- ``GET /ws``: WebSocket stream of outbound render messages, tagged with ``tabId``
- ``GET /healthz`` and ``GET /metrics``: status for operators
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable

from aiohttp import WSMsgType, web

from .coordinator import DecisionCoordinator
from .errors import InvalidURLError
from .messages import EventHub
from .models import TriggerKind

logger = logging.getLogger(__name__)

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}

Handler = Callable[[dict], Awaitable[tuple[int, dict]]]


class BadRequest(Exception):
    """Render-layer request is missing fields or has the wrong shape."""


def _require_str(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise BadRequest(f"'{key}' is required")
    return value.strip()


def _require_tab(data: dict) -> Any:
    tab_id = data.get("tabId")
    if tab_id is None or isinstance(tab_id, (dict, list, bool)):
        raise BadRequest("'tabId' is required")
    return tab_id


class BridgeServer:
    """Serves the render-layer bridge and health endpoints."""

    def __init__(
        self,
        coordinator: DecisionCoordinator,
        hub: EventHub,
        host: str = "127.0.0.1",
        port: int = 5031,
    ):
        self.coordinator = coordinator
        self.hub = hub
        self.host = host
        self.port = port
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self._background: set[asyncio.Task] = set()
        self._handlers: dict[str, Handler] = {
            "checkLink": self._check_link,
            "checkPage": self._check_page,
            "navOverlayInit": self._nav_overlay_init,
            "proceedToURL": self._proceed_to_url,
            "addCurrentToWhitelist": self._add_current_to_whitelist,
            "removeFromWhitelist": self._remove_from_whitelist,
            "navUserSkip": self._nav_user_skip,
            "tabClosed": self._tab_closed,
            "updateState": self._update_state,
            "getState": self._get_state,
            "tabUpdated": self._tab_updated,
        }
        self.app = self._build_app()

    def _build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/message", self._handle_message)
        app.router.add_get("/ws", self._handle_ws)
        app.router.add_get("/healthz", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start(self):
        """Start the bridge server."""
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()
        logger.info("Bridge server listening on %s:%s", self.host, self.port)

    async def stop(self):
        """Stop the bridge server and abandon running navigation checks."""
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        self._runner = None
        self._site = None

    # ------------------------------------------------------------------
    # Inbound messages
    # ------------------------------------------------------------------

    async def _handle_message(self, request: web.Request) -> web.Response:
        try:
            data = await request.json()
        except (ValueError, UnicodeDecodeError):
            return self._error(400, "Request body must be JSON")
        if not isinstance(data, dict):
            return self._error(400, "Request body must be a JSON object")

        action = data.get("action")
        handler = self._handlers.get(action) if isinstance(action, str) else None
        if handler is None:
            return self._error(400, f"Unknown action: {action!r}")

        try:
            status, payload = await handler(data)
        except (BadRequest, InvalidURLError) as e:
            return self._error(400, str(e))
        except Exception as e:
            logger.exception("Bridge action %s failed: %s", action, e)
            return self._error(500, "Internal error")
        return web.json_response(payload, status=status, headers=CORS_HEADERS)

    @staticmethod
    def _error(status: int, message: str) -> web.Response:
        return web.json_response({"error": message}, status=status, headers=CORS_HEADERS)

    async def _check_link(self, data: dict) -> tuple[int, dict]:
        url = _require_str(data, "url")
        source = TriggerKind.HOVER
        if data.get("source") is not None:
            try:
                source = TriggerKind.parse(data["source"])
            except ValueError as e:
                raise BadRequest(str(e)) from e
        verdict = await self.coordinator.check_link(url, data.get("pageUrl"), source)
        return 200, verdict.to_dict()

    async def _check_page(self, data: dict) -> tuple[int, dict]:
        decision = await self.coordinator.check_page(_require_str(data, "url"))
        return 200, {"decision": decision.outcome.value, "score": decision.score}

    async def _nav_overlay_init(self, data: dict) -> tuple[int, dict]:
        should_show = self.coordinator.nav_overlay_init(_require_tab(data), _require_str(data, "url"))
        return 200, {"shouldShow": should_show}

    async def _proceed_to_url(self, data: dict) -> tuple[int, dict]:
        host = await self.coordinator.proceed_to_url(_require_str(data, "url"), data.get("tabId"))
        return 200, {"ok": True, "host": host}

    async def _add_current_to_whitelist(self, data: dict) -> tuple[int, dict]:
        host = self.coordinator.add_current_to_whitelist(_require_str(data, "url"))
        return 200, {"ok": True, "host": host}

    async def _remove_from_whitelist(self, data: dict) -> tuple[int, dict]:
        host = self.coordinator.remove_from_whitelist(_require_str(data, "url"))
        return 200, {"ok": host is not None, "host": host}

    async def _nav_user_skip(self, data: dict) -> tuple[int, dict]:
        skip_until = self.coordinator.nav_user_skip(_require_tab(data))
        return 200, {"ok": True, "skipUntil": skip_until}

    async def _tab_closed(self, data: dict) -> tuple[int, dict]:
        self.coordinator.tab_closed(_require_tab(data))
        return 200, {"ok": True}

    async def _update_state(self, data: dict) -> tuple[int, dict]:
        state = data.get("state")
        if not isinstance(state, bool):
            raise BadRequest("'state' must be a boolean")
        self.coordinator.set_enabled(state)
        return 200, {"isEnabled": state}

    async def _get_state(self, data: dict) -> tuple[int, dict]:
        return 200, {"isEnabled": self.coordinator.settings.is_enabled}

    async def _tab_updated(self, data: dict) -> tuple[int, dict]:
        """Start the navigation check in the background; it may wait indefinitely."""
        tab_id = _require_tab(data)
        url = _require_str(data, "url")
        completed = bool(data.get("isLoadCompleted"))
        task = asyncio.create_task(self._run_navigation(tab_id, url, completed))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return 202, {"accepted": True}

    async def _run_navigation(self, tab_id: Any, url: str, completed: bool) -> None:
        try:
            await self.coordinator.handle_navigation(tab_id, url, completed)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Navigation check for tab {tab_id} ({url}) failed: {e}")

    # ------------------------------------------------------------------
    # Outbound stream
    # ------------------------------------------------------------------

    async def _handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(heartbeat=30)
        await ws.prepare(request)
        queue = self.hub.subscribe()
        logger.info("Render client connected (%s total)", self.hub.subscribers)

        async def pump() -> None:
            while True:
                message = await queue.get()
                await ws.send_str(json.dumps(message))

        pump_task = asyncio.create_task(pump())
        try:
            async for msg in ws:
                if msg.type == WSMsgType.ERROR:
                    logger.warning("Render client connection error: %s", ws.exception())
                    break
        finally:
            pump_task.cancel()
            await asyncio.gather(pump_task, return_exceptions=True)
            self.hub.unsubscribe(queue)
            logger.info("Render client disconnected (%s left)", self.hub.subscribers)
        return ws

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def _status(self) -> dict:
        payload = self.coordinator.status()
        payload["render_clients"] = self.hub.subscribers
        payload["background_checks"] = len(self._background)
        return payload

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Return JSON health status."""
        payload = self._status()
        payload.setdefault("status", "ok")
        return web.json_response(payload, headers=CORS_HEADERS)

    async def _handle_metrics(self, request: web.Request) -> web.Response:
        """Expose numeric status fields as Prometheus-style text."""
        lines = []
        for key, value in self._status().items():
            metric_key = str(key).replace(".", "_").replace("-", "_")
            if isinstance(value, bool):
                lines.append(f"linkguard_{metric_key} {int(value)}")
            elif isinstance(value, (int, float)):
                lines.append(f"linkguard_{metric_key} {value}")
        return web.Response(text="\n".join(lines) + "\n")


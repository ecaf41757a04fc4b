"""
Remote phishing classifier client.

Talks to the classifier's ``POST /check_url`` endpoint. A classifier that is
down, slow or returning garbage is treated as a transient condition: the
client keeps retrying with the injected backoff policy until it gets a
well-formed answer. Only a well-formed JSON object settles the call, even
one whose verdict is ERROR, DISABLED or something unrecognized.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Optional

import aiohttp

from ..errors import TransportError
from ..models import Decision, Outcome
from ..utils.domains import validate_url
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_CLASSIFIER_URL = "http://127.0.0.1:5030"
CHECK_PATH = "/check_url"


def normalize_response(url: str, payload: Any, observed_at: float) -> Decision:
    """
    Turn a decoded classifier response into a Decision.

    Raises:
        TransportError: payload is not a JSON object
    """
    if not isinstance(payload, dict):
        raise TransportError(f"Malformed response body ({type(payload).__name__})")

    raw_decision = payload.get("decision")
    outcome = Outcome.parse(raw_decision)
    if outcome == Outcome.ERROR and raw_decision != Outcome.ERROR.value:
        logger.warning(f"Unrecognized classifier decision for {url}: {raw_decision!r}")

    return Decision.create(url, outcome, observed_at, score=payload.get("score"))


class ClassifierClient:
    """Backend decision client with retry-until-settled semantics."""

    def __init__(
        self,
        base_url: str = DEFAULT_CLASSIFIER_URL,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        request_timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
    ):
        self.base_url = base_url.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy()
        self.request_timeout = request_timeout
        self._clock = clock
        self.calls = 0  # fetch_decision invocations, exposed for metrics

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}{CHECK_PATH}"

    async def fetch_decision(self, url: str) -> Decision:
        """
        Ask the classifier about ``url``, retrying transport failures forever.

        Raises:
            InvalidURLError: URL is not checkable (raised before any I/O)
        """
        validate_url(url)
        self.calls += 1

        attempt = 0
        while True:
            attempt += 1
            try:
                decision = await self._attempt(url)
            except TransportError as e:
                delay = self.retry_policy.delay_for(attempt)
                logger.warning(
                    "Classifier attempt %s for %s failed: %s; retrying in %.1fs",
                    attempt,
                    url,
                    e,
                    delay,
                )
                await self.retry_policy.sleep(delay)
                continue

            if attempt > 1:
                logger.info(f"Classifier answered for {url} after {attempt} attempts")
            logger.info(
                "Checked URL: %s decision=%s score=%.2f",
                url,
                decision.outcome.value,
                decision.score,
            )
            return decision

    async def _attempt(self, url: str) -> Decision:
        """Perform one request; every failure mode comes out as TransportError."""
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.endpoint, json={"url": url}) as resp:
                    if resp.status < 200 or resp.status >= 300:
                        raise TransportError("Classifier returned an error status", resp.status)
                    try:
                        payload = await resp.json(content_type=None)
                    except ValueError as e:
                        raise TransportError(f"Undecodable response body: {e}") from e
        except asyncio.TimeoutError as e:
            raise TransportError("Classifier request timed out") from e
        except aiohttp.ClientError as e:
            raise TransportError(f"Classifier unreachable: {e}") from e

        return normalize_response(url, payload, self._clock())

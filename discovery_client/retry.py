"""Retry engine: linear backoff with cache-busting on every retry.

A logical call moves through ``Attempting(0) -> Attempting(1) -> ...`` until
it succeeds, hits a non-retryable failure, or exhausts ``retry_count``. The
delay before retry ``i + 1`` is ``retry_interval * (i + 1)`` milliseconds.

Retryable failures:

- no response at all (``TransportError``)
- status 0, 3xx or 5xx

4xx responses are never retried. The final failure propagates unchanged.
"""

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Protocol

from discovery_client.errors import (
    ApiClientError,
    ResponseError,
    TransportError,
    UsageError,
    error_for_response,
)
from discovery_client.events import BeforeRequestEvent, RequestEvents
from discovery_client.models import ApiResponse, RequestDescriptor

logger = logging.getLogger(__name__)

DEFAULT_RETRY_INTERVAL_MS = 1000
CACHE_BUSTER_PARAM = "breaker"
CACHE_BUSTER_WORDS = ("breaker", "unstick", "refresh", "nudge", "rebound", "kick", "fresh")


class Transport(Protocol):
    async def send(self, method: str, url: str, **kwargs) -> ApiResponse: ...


def generate_cache_buster(attempt: int) -> str:
    """Random word, time-derived hash and attempt index, e.g. ``nudge-4182173021-2``."""
    word = random.choice(CACHE_BUSTER_WORDS)
    stamp = f"{int(time.time() * 1000) % 60000}{random.randrange(100000)}"
    return f"{word}-{stamp}-{attempt}"


def is_retryable(error: ApiClientError, request: RequestDescriptor, attempt: int) -> bool:
    """Decide whether ``attempt`` (0-based) may be followed by another try."""
    if request.retry_count is None or attempt >= request.retry_count:
        return False
    if isinstance(error, TransportError):
        return True
    if isinstance(error, ResponseError):
        status = error.status_code
        return status == 0 or 300 <= status <= 399 or 500 <= status <= 599
    return False


def backoff_ms(request: RequestDescriptor, attempt: int) -> int:
    interval = request.retry_interval if request.retry_interval is not None else DEFAULT_RETRY_INTERVAL_MS
    return int(interval * (attempt + 1))


class RetryEngine:
    """Wraps a transport call with the retry policy declared on the request."""

    def __init__(
        self,
        transport: Transport,
        events: RequestEvents | None = None,
        *,
        deadline: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._transport = transport
        self._events = events if events is not None else RequestEvents()
        self._deadline = deadline
        self._sleep = sleep
        self._clock = clock

    @property
    def events(self) -> RequestEvents:
        return self._events

    async def execute(self, request: RequestDescriptor) -> ApiResponse:
        """Send ``request`` until it succeeds or the retry policy gives up."""
        if not request.url:
            raise UsageError("RetryEngine.execute requires a normalized request with a url.")

        started = self._clock()
        attempt = 0
        current = request
        while True:
            try:
                response = await self._attempt(current, attempt)
                if attempt > 0:
                    logger.info(
                        "Request resolved with retry logic",
                        extra={"url": request.url, "attempts": attempt + 1},
                    )
                return response
            except ApiClientError as exc:
                if not is_retryable(exc, request, attempt):
                    raise
                delay_ms = backoff_ms(request, attempt)
                if self._deadline is not None and self._clock() - started + delay_ms / 1000.0 > self._deadline:
                    logger.warning(
                        "Retry deadline reached, giving up",
                        extra={"url": request.url, "attempt": attempt, "deadline_seconds": self._deadline},
                    )
                    raise
                logger.warning(
                    "Will retry request",
                    extra={
                        "url": request.url,
                        "attempt": attempt,
                        "delay_ms": delay_ms,
                        "error_type": type(exc).__name__,
                        "status_code": getattr(exc, "status_code", None),
                    },
                )
                await self._sleep(delay_ms / 1000.0)
                params = {**current.params, CACHE_BUSTER_PARAM: generate_cache_buster(attempt + 1)}
                current = replace(current, params=params)
                attempt += 1

    async def _attempt(self, request: RequestDescriptor, attempt: int) -> ApiResponse:
        headers = dict(request.headers)
        params = dict(request.params)
        self._events.trigger(
            BeforeRequestEvent(
                method=request.method,
                url=request.url or "",
                headers=headers,
                params=params,
                attempt=attempt,
            )
        )
        response = await self._transport.send(
            request.method,
            request.url or "",
            headers=headers,
            data=request.data,
            params=params,
            form=request.form,
            response_format=request.response_format,
        )
        if not response.is_success:
            raise error_for_response(
                f"{request.method} {request.url} responded with {response.status_code}",
                response,
            )
        return response

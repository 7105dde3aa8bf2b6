"""Before-request notifications, used by callers to inject headers such as auth tokens."""

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BeforeRequestEvent:
    """Fired before each outgoing attempt. Subscribers may mutate ``headers``."""

    method: str
    url: str
    headers: dict[str, str]
    params: dict[str, Any]
    attempt: int


Subscriber = Callable[[BeforeRequestEvent], Any]


class RequestEvents:
    """Fire-and-forget event stream.

    Synchronous subscribers run inline so their header changes apply to the
    request about to be sent. Coroutine subscribers are scheduled on the
    running loop and never awaited.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._background: set[asyncio.Task[Any]] = set()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register ``subscriber``; the returned callable unsubscribes it."""
        self._subscribers.append(subscriber)

        def _unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return _unsubscribe

    def trigger(self, event: BeforeRequestEvent) -> None:
        for subscriber in list(self._subscribers):
            try:
                result = subscriber(event)
            except Exception:  # noqa: BLE001
                logger.exception(
                    "Before-request subscriber failed",
                    extra={"method": event.method, "url": event.url},
                )
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._background.add(task)
                task.add_done_callback(self._finish_background)

    def _finish_background(self, task: "asyncio.Task[Any]") -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Asynchronous before-request subscriber failed",
                exc_info=task.exception(),
            )

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List, Set

log = logging.getLogger("familypoints.events")

POINTS_CHANGED = "points:changed"

# Older views listen on the hyphenated name.
_ALIASES = {"points-changed": POINTS_CHANGED}

Handler = Callable[[Dict[str, Any]], Any]


def _canonical(name: str) -> str:
    return _ALIASES.get(name, name)


class PointsEvents:
    """
    In-process publish/subscribe for wallet refresh signals.

    One instance lives on the service container; there is no module-level bus,
    so tests can build isolated instances. Delivery is best effort: a failing
    handler is logged and the remaining handlers still run. Coroutine handlers
    are scheduled on the running loop, or run to completion when there is none.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = {}
        self._pending: Set["asyncio.Future[Any]"] = set()

    def subscribe(self, name: str, handler: Handler) -> Callable[[], None]:
        key = _canonical(name)
        self._handlers.setdefault(key, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(key) or []
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, name: str, payload: Dict[str, Any]) -> int:
        delivered = 0
        for handler in list(self._handlers.get(_canonical(name)) or []):
            try:
                result = handler(dict(payload))
                if inspect.iscoroutine(result):
                    self._schedule(name, result)
                delivered += 1
            except Exception:
                log.exception("[events] handler failed for %s", name)
        return delivered

    def _schedule(self, name: str, coro: Any) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(coro)
            return

        task = asyncio.ensure_future(coro)
        self._pending.add(task)

        def _done(t: "asyncio.Future[Any]") -> None:
            self._pending.discard(t)
            if not t.cancelled() and t.exception() is not None:
                log.error("[events] async handler failed for %s", name, exc_info=t.exception())

        task.add_done_callback(_done)

    def subscriber_count(self, name: str) -> int:
        return len(self._handlers.get(_canonical(name)) or [])

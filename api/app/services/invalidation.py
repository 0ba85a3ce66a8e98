"""
Profile change notifications.

Writers publish ``(scope, key)`` events after a successful profile change;
readers subscribe to a scope (optionally narrowed to one key) and drop
whatever they derived from the old state. Scopes in use are ``"profile"``
(keyed by profile id) and ``"username"``.
"""

import asyncio
import inspect
import logging
from collections import OrderedDict, defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

from app.config import settings

logger = logging.getLogger(__name__)

PROFILE_SCOPE = "profile"
USERNAME_SCOPE = "username"

Callback = Callable[[str, str], Awaitable[None] | None]


class InvalidationBus:
    """In-process publish/subscribe keyed by scope and optional key."""

    def __init__(self):
        self._subscribers: dict[tuple[str, str | None], list[Callback]] = defaultdict(list)
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, scope: str, callback: Callback, key: str | None = None) -> Callable[[], None]:
        """
        Register ``callback(scope, key)``.

        With ``key=None`` the callback hears every event of the scope.
        Returns a function that removes the subscription.
        """
        slot = (scope, key)
        self._subscribers[slot].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers.get(slot, []):
                self._subscribers[slot].remove(callback)

        return unsubscribe

    def publish(self, scope: str, key: str) -> int:
        """
        Notify subscribers of ``(scope, key)`` and of the whole scope.

        Coroutine callbacks are scheduled on the running loop and not awaited.
        Returns the number of callbacks notified.
        """
        callbacks = [*self._subscribers.get((scope, key), []), *self._subscribers.get((scope, None), [])]
        for callback in callbacks:
            try:
                result = callback(scope, key)
            except Exception:
                logger.exception("Invalidation subscriber failed for %s:%s", scope, key)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._finished)
        logger.debug("Published invalidation %s:%s to %d subscriber(s)", scope, key, len(callbacks))
        return len(callbacks)

    def _finished(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Invalidation subscriber failed", exc_info=task.exception())

    async def drain(self) -> None:
        """Wait for scheduled subscriber coroutines to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


class ProfileViewCache:
    """
    Public profile payloads keyed by profile id and by username.

    Holds at most ``max_entries`` profiles; the least recently used one is
    evicted first.
    """

    def __init__(self, bus: InvalidationBus | None = None, max_entries: int = 1024):
        self.max_entries = max_entries
        self._by_id: OrderedDict[str, dict[str, Any]] = OrderedDict()
        self._by_username: dict[str, dict[str, Any]] = {}
        if bus is not None:
            bus.subscribe(PROFILE_SCOPE, self.invalidate)
            bus.subscribe(USERNAME_SCOPE, self.invalidate)

    def get_by_id(self, profile_id: str) -> dict[str, Any] | None:
        payload = self._by_id.get(str(profile_id))
        if payload is not None:
            self._by_id.move_to_end(str(profile_id))
        return payload

    def get_by_username(self, username: str) -> dict[str, Any] | None:
        payload = self._by_username.get(username.lower())
        if payload is None:
            return None
        if self._by_id.get(str(payload["id"])) is not payload:
            # Stale alias left behind by a renamed or evicted profile
            del self._by_username[username.lower()]
            return None
        self._by_id.move_to_end(str(payload["id"]))
        return payload

    def store(self, payload: dict[str, Any]) -> None:
        profile_id = str(payload["id"])
        self._by_id[profile_id] = payload
        self._by_id.move_to_end(profile_id)
        if payload.get("username"):
            self._by_username[payload["username"].lower()] = payload
        while len(self._by_id) > self.max_entries:
            _, evicted = self._by_id.popitem(last=False)
            if evicted.get("username"):
                self._by_username.pop(evicted["username"].lower(), None)

    def __len__(self) -> int:
        return len(self._by_id)

    def invalidate(self, scope: str, key: str) -> None:
        if scope == PROFILE_SCOPE:
            payload = self._by_id.pop(str(key), None)
            if payload and payload.get("username"):
                self._by_username.pop(payload["username"].lower(), None)
        elif scope == USERNAME_SCOPE:
            payload = self._by_username.pop(key.lower(), None)
            if payload:
                self._by_id.pop(str(payload["id"]), None)

    def clear(self) -> None:
        self._by_id.clear()
        self._by_username.clear()


bus = InvalidationBus()
profile_view_cache = ProfileViewCache(bus, max_entries=settings.profile_view_cache_size)


def get_bus() -> InvalidationBus:
    return bus


def get_profile_view_cache() -> ProfileViewCache:
    return profile_view_cache

"""
Tests for the invalidation bus and the public profile view cache.
"""

import asyncio

from app.services.invalidation import (
    PROFILE_SCOPE,
    USERNAME_SCOPE,
    InvalidationBus,
    ProfileViewCache,
)


class TestInvalidationBus:
    def test_keyed_and_scope_subscribers(self):
        bus = InvalidationBus()
        keyed, scoped = [], []
        bus.subscribe(PROFILE_SCOPE, lambda s, k: keyed.append(k), key="p1")
        bus.subscribe(PROFILE_SCOPE, lambda s, k: scoped.append(k))

        assert bus.publish(PROFILE_SCOPE, "p1") == 2
        assert bus.publish(PROFILE_SCOPE, "p2") == 1
        assert bus.publish(USERNAME_SCOPE, "ada") == 0

        assert keyed == ["p1"]
        assert scoped == ["p1", "p2"]

    def test_unsubscribe(self):
        bus = InvalidationBus()
        seen = []
        unsubscribe = bus.subscribe(PROFILE_SCOPE, lambda s, k: seen.append(k))

        unsubscribe()
        unsubscribe()
        bus.publish(PROFILE_SCOPE, "p1")

        assert seen == []

    def test_failing_subscriber_does_not_stop_others(self):
        bus = InvalidationBus()
        seen = []

        def broken(scope, key):
            raise RuntimeError("boom")

        bus.subscribe(PROFILE_SCOPE, broken)
        bus.subscribe(PROFILE_SCOPE, lambda s, k: seen.append(k))

        bus.publish(PROFILE_SCOPE, "p1")
        assert seen == ["p1"]

    async def test_coroutine_subscribers_are_scheduled(self):
        bus = InvalidationBus()
        seen = []

        async def listener(scope, key):
            await asyncio.sleep(0)
            seen.append((scope, key))

        bus.subscribe(USERNAME_SCOPE, listener)
        bus.publish(USERNAME_SCOPE, "ada")
        await bus.drain()

        assert seen == [(USERNAME_SCOPE, "ada")]


class TestProfileViewCache:
    def _payload(self, profile_id="p1", username="Ada"):
        return {"id": profile_id, "username": username, "bio": "hi"}

    def test_lookup_by_id_and_username(self):
        cache = ProfileViewCache()
        cache.store(self._payload())

        assert cache.get_by_id("p1")["bio"] == "hi"
        assert cache.get_by_username("ADA")["id"] == "p1"
        assert cache.get_by_id("p2") is None

    def test_profile_event_drops_both_entries(self):
        bus = InvalidationBus()
        cache = ProfileViewCache(bus)
        cache.store(self._payload())

        bus.publish(PROFILE_SCOPE, "p1")

        assert cache.get_by_id("p1") is None
        assert cache.get_by_username("ada") is None

    def test_username_event_drops_both_entries(self):
        bus = InvalidationBus()
        cache = ProfileViewCache(bus)
        cache.store(self._payload())
        cache.store(self._payload("p2", "grace"))

        bus.publish(USERNAME_SCOPE, "ada")

        assert cache.get_by_id("p1") is None
        assert cache.get_by_id("p2") is not None
        assert cache.get_by_username("grace") is not None

    def test_least_recently_used_profile_is_evicted(self):
        cache = ProfileViewCache(max_entries=2)
        cache.store(self._payload("p1", "ada"))
        cache.store(self._payload("p2", "grace"))
        cache.get_by_id("p1")

        cache.store(self._payload("p3", "linus"))

        assert len(cache) == 2
        assert cache.get_by_id("p2") is None
        assert cache.get_by_username("grace") is None
        assert cache.get_by_id("p1") is not None
        assert cache.get_by_username("linus")["id"] == "p3"

    def test_username_lookup_refreshes_recency(self):
        cache = ProfileViewCache(max_entries=2)
        cache.store(self._payload("p1", "ada"))
        cache.store(self._payload("p2", "grace"))
        cache.get_by_username("ada")

        cache.store(self._payload("p3", "linus"))

        assert cache.get_by_id("p1") is not None
        assert cache.get_by_id("p2") is None

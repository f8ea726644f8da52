"""Tests for core.locks.session_locks module."""

import asyncio

import pytest

from tabletop.game_server.core.locks import SessionLockManager


@pytest.mark.asyncio
class TestSessionLockManager:
    async def test_lock_held_inside_block(self):
        locks = SessionLockManager()
        assert locks.locked("s1") is False
        async with locks.lock("s1", "dm"):
            assert locks.locked("s1") is True
        assert locks.locked("s1") is False

    async def test_same_session_serialized(self):
        locks = SessionLockManager()
        events = []

        async def worker(name: str):
            async with locks.lock("s1", name):
                events.append(f"{name}-in")
                await asyncio.sleep(0.01)
                events.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert events == ["a-in", "a-out", "b-in", "b-out"]

    async def test_different_sessions_independent(self):
        locks = SessionLockManager()
        async with locks.lock("s1"):
            # would deadlock if sessions shared a lock
            await asyncio.wait_for(self._enter(locks, "s2"), timeout=1.0)

    async def _enter(self, locks, session_id):
        async with locks.lock(session_id):
            return True

    async def test_lock_released_on_error(self):
        locks = SessionLockManager()
        with pytest.raises(RuntimeError):
            async with locks.lock("s1"):
                raise RuntimeError("boom")
        assert locks.locked("s1") is False

    async def test_idle_locks_are_forgotten(self):
        locks = SessionLockManager()
        async with locks.lock("s1"):
            assert "s1" in locks._locks
        assert locks._locks == {}
        assert locks._users == {}

    async def test_lock_kept_while_waiters_remain(self):
        locks = SessionLockManager()
        entered = []

        async def waiter():
            async with locks.lock("s1", "late"):
                entered.append("late")

        async with locks.lock("s1", "first"):
            task = asyncio.create_task(waiter())
            await asyncio.sleep(0)
            assert locks._users["s1"] == 2
        await task

        assert entered == ["late"]
        assert locks._locks == {}

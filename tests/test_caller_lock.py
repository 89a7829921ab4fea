"""
Tests for per-caller turn serialization.
"""

import asyncio

from leave_intake.utils.caller_lock import CallerLocks


class TestCallerLocks:
    def test_same_caller_shares_one_lock(self):
        locks = CallerLocks()

        async def run():
            first = locks.lock_for("U1")
            assert locks.lock_for("U1") is first
            assert locks.lock_for("U2") is not first

        asyncio.run(run())

    def test_turns_for_one_caller_do_not_overlap(self):
        locks = CallerLocks()
        timeline = []

        async def turn(name):
            async with locks.hold("U1"):
                timeline.append(f"{name}-start")
                await asyncio.sleep(0.01)
                timeline.append(f"{name}-end")

        async def run():
            await asyncio.gather(turn("a"), turn("b"))

        asyncio.run(run())
        assert timeline == ["a-start", "a-end", "b-start", "b-end"]

    def test_different_callers_interleave(self):
        locks = CallerLocks()
        timeline = []

        async def turn(caller_id):
            async with locks.hold(caller_id):
                timeline.append(f"{caller_id}-start")
                await asyncio.sleep(0.01)
                timeline.append(f"{caller_id}-end")

        async def run():
            await asyncio.gather(turn("U1"), turn("U2"))

        asyncio.run(run())
        assert timeline[:2] == ["U1-start", "U2-start"]

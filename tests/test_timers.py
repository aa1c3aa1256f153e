"""Tests for cancellable loop timers."""

import asyncio

import pytest

from fishtracker.orchestrator.timers import call_every, call_later


class TestCallLater:

    @pytest.mark.asyncio
    async def test_fires_once(self):
        fired = []
        call_later(0.01, lambda: fired.append(1))

        await asyncio.sleep(0.05)

        assert fired == [1]

    @pytest.mark.asyncio
    async def test_cancel_before_fire(self):
        fired = []
        task = call_later(0.02, lambda: fired.append(1))

        task.cancel()
        task.cancel()
        await asyncio.sleep(0.05)

        assert fired == []
        assert task.cancelled


class TestCallEvery:

    @pytest.mark.asyncio
    async def test_repeats_until_cancelled(self):
        fired = []
        task = call_every(0.05, lambda: fired.append(asyncio.get_running_loop().time()))

        await asyncio.sleep(0.28)
        task.cancel()
        count = len(fired)
        await asyncio.sleep(0.12)

        assert 4 <= count <= 6
        assert len(fired) == count

    @pytest.mark.asyncio
    async def test_first_tick_after_one_period(self):
        fired = []
        task = call_every(0.1, lambda: fired.append(1))

        await asyncio.sleep(0.05)
        assert fired == []
        await asyncio.sleep(0.1)
        assert fired == [1]
        task.cancel()

    @pytest.mark.asyncio
    async def test_cancel_from_inside_callback(self):
        fired = []
        holder = {}

        def callback():
            fired.append(1)
            holder["task"].cancel()

        holder["task"] = call_every(0.01, callback)
        await asyncio.sleep(0.08)

        assert fired == [1]

"""Tests for the single-flight guard."""

import asyncio

import pytest

from ledgerlens.services.single_flight import SingleFlight


class TestSingleFlight:
    """Tests for SingleFlight.run."""

    @pytest.mark.asyncio
    async def test_returns_result(self):
        """The operation's result is passed through."""
        guard = SingleFlight("import")

        async def operation(x, y=0):
            return x + y

        assert await guard.run(operation, 1, y=2) == 3
        assert guard.busy is False

    @pytest.mark.asyncio
    async def test_concurrent_call_ignored(self):
        """A call made while one is in flight returns None immediately."""
        guard = SingleFlight("import")
        release = asyncio.Event()
        started = []

        async def operation():
            started.append(1)
            await release.wait()
            return "done"

        first = asyncio.ensure_future(guard.run(operation))
        await asyncio.sleep(0)

        assert guard.busy
        assert await guard.run(operation) is None

        release.set()
        assert await first == "done"
        assert started == [1]

    @pytest.mark.asyncio
    async def test_released_after_error(self):
        """The guard is released when the operation raises."""
        guard = SingleFlight("import")

        async def operation():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await guard.run(operation)

        assert guard.busy is False

    @pytest.mark.asyncio
    async def test_busy_flag_observable(self, qtbot):
        """in_flight emits True then False around a run."""
        guard = SingleFlight("import")
        states = []
        guard.in_flight.subscribe(lambda busy: states.append(busy))

        async def operation():
            return None

        await guard.run(operation)

        assert states == [True, False]

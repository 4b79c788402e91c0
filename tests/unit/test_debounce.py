import asyncio
import time

from case_assist.flow.debounce import Debouncer


def test_burst_collapses_into_single_delayed_call() -> None:
    fired: list[float] = []

    async def _run() -> float:
        debouncer = Debouncer(delay_seconds=0.05)
        last_call = 0.0
        for _ in range(5):
            debouncer.schedule(lambda: fired.append(time.monotonic()))
            last_call = time.monotonic()
            await asyncio.sleep(0.01)
        assert debouncer.pending
        await asyncio.sleep(0.15)
        assert not debouncer.pending
        return last_call

    last_call = asyncio.run(_run())

    assert len(fired) == 1
    assert fired[0] - last_call >= 0.045


def test_quiet_periods_fire_once_each() -> None:
    fired: list[str] = []

    async def _run() -> None:
        debouncer = Debouncer(delay_seconds=0.02)
        debouncer.schedule(lambda: fired.append("first"))
        await asyncio.sleep(0.08)
        debouncer.schedule(lambda: fired.append("second"))
        await asyncio.sleep(0.08)

    asyncio.run(_run())

    assert fired == ["first", "second"]


def test_cancel_drops_pending_action() -> None:
    fired: list[str] = []

    async def _run() -> None:
        debouncer = Debouncer(delay_seconds=0.02)
        debouncer.schedule(lambda: fired.append("x"))
        debouncer.cancel()
        assert not debouncer.pending
        await asyncio.sleep(0.06)

    asyncio.run(_run())

    assert fired == []

from __future__ import annotations

import asyncio

import pytest

from clients.scheduler import RateLimitedScheduler, build_coingecko_scheduler, build_etherscan_scheduler


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


@pytest.mark.asyncio
async def test_schedule_never_exceeds_max_concurrent() -> None:
    scheduler = RateLimitedScheduler(name="bounded", max_concurrent=2)
    active = 0
    peak = 0

    async def task() -> None:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1

    await asyncio.gather(*(scheduler.schedule(task) for _ in range(6)))

    assert peak == 2


@pytest.mark.asyncio
async def test_schedule_dispatches_in_submission_order() -> None:
    scheduler = RateLimitedScheduler(name="fifo", max_concurrent=1)
    started: list[int] = []

    def make_task(index: int):
        async def task() -> int:
            started.append(index)
            await asyncio.sleep(0)
            return index

        return task

    results = await asyncio.gather(*(scheduler.schedule(make_task(i)) for i in range(5)))

    assert started == [0, 1, 2, 3, 4]
    assert results == [0, 1, 2, 3, 4]


@pytest.mark.asyncio
async def test_schedule_spaces_consecutive_dispatches() -> None:
    clock = _FakeClock()
    scheduler = RateLimitedScheduler(name="spaced", min_interval=0.2, clock=clock, sleep=clock.sleep)

    async def task() -> float:
        return clock.now

    dispatched = [await scheduler.schedule(task) for _ in range(3)]

    assert clock.sleeps == [pytest.approx(0.2), pytest.approx(0.2)]
    assert dispatched == [0.0, pytest.approx(0.2), pytest.approx(0.4)]


@pytest.mark.asyncio
async def test_schedule_does_not_wait_when_interval_already_elapsed() -> None:
    clock = _FakeClock()
    scheduler = RateLimitedScheduler(name="idle", min_interval=0.6, clock=clock, sleep=clock.sleep)

    async def task() -> None:
        clock.now += 1.0

    await scheduler.schedule(task)
    await scheduler.schedule(task)

    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_failing_task_only_fails_its_own_awaiter() -> None:
    scheduler = RateLimitedScheduler(name="isolated", max_concurrent=1)

    async def ok() -> str:
        return "ok"

    async def boom() -> str:
        raise RuntimeError("boom")

    results = await asyncio.gather(
        scheduler.schedule(ok),
        scheduler.schedule(boom),
        scheduler.schedule(ok),
        return_exceptions=True,
    )

    assert results[0] == "ok"
    assert isinstance(results[1], RuntimeError)
    assert results[2] == "ok"
    # The failed task released its slot.
    assert await scheduler.schedule(ok) == "ok"


@pytest.mark.asyncio
async def test_schedule_blocking_passes_arguments_through() -> None:
    scheduler = RateLimitedScheduler(name="blocking")

    def lookup(contract_address: str, *, address: str, tag: str = "latest") -> str:
        return f"{contract_address}:{address}:{tag}"

    result = await scheduler.schedule_blocking(lookup, "0xdai", address="0xwallet", tag="0x10")

    assert result == "0xdai:0xwallet:0x10"


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"max_concurrent": 0}, "max_concurrent"),
        ({"min_interval": -1.0}, "min_interval"),
    ],
)
def test_scheduler_rejects_invalid_limits(kwargs: dict, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        RateLimitedScheduler(name="invalid", **kwargs)


def test_service_schedulers_use_service_limits() -> None:
    etherscan = build_etherscan_scheduler()
    coingecko = build_coingecko_scheduler()

    assert (etherscan.name, etherscan.max_concurrent, etherscan.min_interval) == ("etherscan", 1, 0.2)
    assert (coingecko.name, coingecko.max_concurrent, coingecko.min_interval) == ("coingecko", 1, 0.6)

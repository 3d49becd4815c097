import asyncio

import pytest

from seller_hub.utils.concurrency import Settled, settle_all, with_deadline


async def _value(value, delay=0.0):
    await asyncio.sleep(delay)
    return value


async def _boom(message):
    await asyncio.sleep(0)
    raise RuntimeError(message)


@pytest.mark.asyncio
async def test_settle_all_collects_every_outcome_in_order():
    results = await settle_all([_value(1, 0.02), _boom("second"), _value(3)])

    assert [r.ok for r in results] == [True, False, True]
    assert results[0].value == 1
    assert results[2].value == 3
    assert isinstance(results[1].error, RuntimeError)
    assert str(results[1].error) == "second"


@pytest.mark.asyncio
async def test_settle_all_does_not_short_circuit_on_failure():
    finished = []

    async def slow():
        await asyncio.sleep(0.05)
        finished.append("slow")
        return "done"

    results = await settle_all([_boom("first"), slow()])

    assert finished == ["slow"]
    assert results[1].value == "done"


@pytest.mark.asyncio
async def test_settle_all_with_nothing_to_do():
    assert await settle_all([]) == []


def test_value_or():
    assert Settled(ok=True, value=5).value_or(0) == 5
    assert Settled(ok=False, error=ValueError("x")).value_or(0) == 0


@pytest.mark.asyncio
async def test_with_deadline_times_out():
    with pytest.raises(asyncio.TimeoutError):
        await with_deadline(_value("late", 0.5), 0.01)


@pytest.mark.asyncio
@pytest.mark.parametrize("seconds", [None, 0])
async def test_with_deadline_unbounded(seconds):
    assert await with_deadline(_value("ok", 0.01), seconds) == "ok"


@pytest.mark.asyncio
async def test_timeout_inside_settle_all_is_reported_as_failure():
    results = await settle_all([with_deadline(_value("late", 0.5), 0.01), _value("fast")])

    assert results[0].ok is False
    assert isinstance(results[0].error, asyncio.TimeoutError)
    assert results[1].value == "fast"

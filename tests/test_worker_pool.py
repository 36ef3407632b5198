"""Tests for the bounded worker pool."""

from __future__ import annotations

import asyncio

import pytest

from worker_pool import WorkerPool


def test_rejects_non_positive_size():
    with pytest.raises(ValueError):
        WorkerPool(0)


@pytest.mark.parametrize("size", [1, 2, 4, 7])
def test_concurrency_never_exceeds_size(size):
    async def scenario():
        running = 0
        peak = 0

        async with WorkerPool(size) as pool:
            async def job():
                nonlocal running, peak
                running += 1
                peak = max(peak, running)
                assert pool.active <= size
                await asyncio.sleep(0.005)
                running -= 1
                return "ok"

            futures = [pool.submit(job) for _ in range(20)]
            results = await asyncio.gather(*futures)
        return peak, results

    peak, results = asyncio.run(scenario())
    assert peak == size
    assert results == ["ok"] * 20


def test_fifo_admission_with_single_worker():
    async def scenario():
        started: list[int] = []

        def make_job(i):
            async def job():
                started.append(i)
                await asyncio.sleep(0)
                return i
            return job

        async with WorkerPool(1) as pool:
            futures = [pool.submit(make_job(i)) for i in range(10)]
            results = await asyncio.gather(*futures)
        return started, results

    started, results = asyncio.run(scenario())
    assert started == list(range(10))
    assert results == list(range(10))


def test_failure_rejects_only_its_own_future_and_releases_slot():
    async def scenario():
        async def boom():
            raise RuntimeError("boom")

        async def ok():
            return "ok"

        async with WorkerPool(1) as pool:
            failed = pool.submit(boom)
            later = [pool.submit(ok) for _ in range(3)]
            results = await asyncio.gather(failed, *later, return_exceptions=True)
            active_after = pool.active
        return results, active_after

    results, active_after = asyncio.run(scenario())
    assert isinstance(results[0], RuntimeError)
    assert str(results[0]) == "boom"
    assert results[1:] == ["ok", "ok", "ok"]
    assert active_after == 0


def test_every_job_yields_exactly_one_outcome():
    async def scenario():
        def make_job(i):
            async def job():
                await asyncio.sleep(0.001 * (i % 3))
                if i % 4 == 0:
                    raise ValueError(f"job {i}")
                return i
            return job

        async with WorkerPool(3) as pool:
            futures = [pool.submit(make_job(i)) for i in range(25)]
            return await asyncio.gather(*futures, return_exceptions=True)

    results = asyncio.run(scenario())
    assert len(results) == 25
    failures = [r for r in results if isinstance(r, ValueError)]
    assert len(failures) == len([i for i in range(25) if i % 4 == 0])


def test_job_timeout_rejects_future_and_frees_worker():
    async def scenario():
        async def slow():
            await asyncio.sleep(5)

        async def fast():
            return "done"

        async with WorkerPool(1, job_timeout=0.01) as pool:
            timed_out = pool.submit(slow)
            after = pool.submit(fast)
            with pytest.raises(asyncio.TimeoutError):
                await timed_out
            return await after

    assert asyncio.run(scenario()) == "done"


def test_no_timeout_by_default():
    pool = WorkerPool(2)
    assert pool.job_timeout is None


def test_submit_after_close_raises():
    async def scenario():
        pool = WorkerPool(2)
        await pool.close()

        async def job():
            return 1

        with pytest.raises(RuntimeError):
            pool.submit(job)

    asyncio.run(scenario())


def test_close_cancels_running_and_queued_jobs():
    async def scenario():
        gate = asyncio.Event()

        async def blocked():
            await gate.wait()

        pool = WorkerPool(1)
        running = pool.submit(blocked)
        queued = pool.submit(blocked)
        await asyncio.sleep(0.01)
        assert pool.active == 1
        assert pool.pending == 1
        await pool.close()
        return running, queued

    running, queued = asyncio.run(scenario())
    assert running.cancelled()
    assert queued.cancelled()

#!/usr/bin/env python3
"""
ICON-DC Worker Pool

Bounded-concurrency scheduler for asynchronous jobs.

Key properties:
- Fixed size N, chosen at construction
- FIFO admission: N long-lived worker tasks pull from one asyncio.Queue
- One future per submitted job; a failing job rejects only its own future
- A worker always returns to the queue after a job, success or failure
- Optional per-job timeout (default: none, jobs run to completion)

The queue and the active counter are only touched from the event loop the
pool was started on, so no locking is needed.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional


Job = Callable[[], Awaitable[Any]]


@dataclass
class PendingJob:
    """Queued job and the future that receives its result."""
    job: Job
    future: asyncio.Future


class WorkerPool:
    """Runs submitted jobs with at most `size` executing at once."""

    def __init__(self, size: int, job_timeout: Optional[float] = None):
        if size < 1:
            raise ValueError(f"WorkerPool size must be >= 1, got {size}")
        self.size = size
        self.job_timeout = job_timeout

        self._queue: Optional[asyncio.Queue[PendingJob]] = None
        self._workers: list[asyncio.Task] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._active = 0
        self._closed = False

    @property
    def active(self) -> int:
        """Jobs currently executing."""
        return self._active

    @property
    def pending(self) -> int:
        """Jobs waiting for a free worker."""
        return self._queue.qsize() if self._queue is not None else 0

    def submit(self, job: Job) -> asyncio.Future:
        """
        Enqueue a job and return its future.

        Never blocks; must be called from within a running event loop.
        `job` is called with no arguments by a worker and must return an
        awaitable.
        """
        if self._closed:
            raise RuntimeError("WorkerPool is closed")
        loop = asyncio.get_running_loop()
        self._ensure_started(loop)

        future = loop.create_future()
        self._queue.put_nowait(PendingJob(job=job, future=future))
        return future

    def _ensure_started(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._loop is None:
            self._loop = loop
            self._queue = asyncio.Queue()
            self._workers = [
                loop.create_task(self._worker(i), name=f"worker-pool-{i}")
                for i in range(self.size)
            ]
        elif self._loop is not loop:
            raise RuntimeError("WorkerPool is bound to a different event loop")

    async def _run(self, job: Job) -> Any:
        if self.job_timeout is None:
            return await job()
        return await asyncio.wait_for(job(), timeout=self.job_timeout)

    async def _worker(self, index: int) -> None:
        assert self._queue is not None
        while True:
            pending = await self._queue.get()
            self._active += 1
            result: Any = None
            error: Optional[BaseException] = None
            try:
                result = await self._run(pending.job)
            except asyncio.CancelledError:
                pending.future.cancel()
                raise
            except Exception as e:
                error = e
            finally:
                self._active -= 1
                self._queue.task_done()

            if pending.future.done():
                continue
            if error is not None:
                pending.future.set_exception(error)
            else:
                pending.future.set_result(result)

    async def join(self) -> None:
        """Wait until every submitted job has finished."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        """Stop the workers and cancel jobs that never started."""
        self._closed = True
        for task in self._workers:
            task.cancel()
        for task in self._workers:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._workers = []

        if self._queue is not None:
            while not self._queue.empty():
                pending = self._queue.get_nowait()
                pending.future.cancel()

    async def __aenter__(self) -> "WorkerPool":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

"""
Marketplace Backend — Background Task Pool
===========================================

What:  A bounded pool for work that must not hold up the HTTP response
       (welcome and verification emails).
Why:   Detached fire-and-forget tasks lose their errors and can outlive the
       process. Here every task is tracked, bounded, and reports a typed
       outcome to an observability sink.
How:   submit() wraps the coroutine in an asyncio.Task that first acquires a
       semaphore (max_workers running at once). Success or failure becomes a
       TaskOutcome passed to the sink (default: the log). drain() waits for
       outstanding tasks on shutdown.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)


@dataclass
class TaskOutcome:
    name: str
    ok: bool
    duration_ms: float
    result: Any = None
    error: Optional[BaseException] = None
    context: Dict[str, Any] = field(default_factory=dict)


OutcomeSink = Callable[[TaskOutcome], None]


def log_outcome(outcome: TaskOutcome) -> None:
    if outcome.ok:
        logger.info("Background task %s finished in %.1fms %s",
                    outcome.name, outcome.duration_ms, outcome.context)
    else:
        logger.error(
            "Background task %s failed after %.1fms %s: %s",
            outcome.name,
            outcome.duration_ms,
            outcome.context,
            outcome.error,
            exc_info=outcome.error,
        )


class BackgroundTaskPool:
    """Runs submitted coroutines with bounded concurrency and reports each outcome."""

    def __init__(self, max_workers: int, sink: Optional[OutcomeSink] = None):
        self.max_workers = max_workers
        self._semaphore = asyncio.Semaphore(max_workers)
        self._tasks: Set[asyncio.Task] = set()
        self._sink = sink or log_outcome
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(
        self,
        name: str,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        **context: Any,
    ) -> asyncio.Task:
        """
        Schedule func(*args) on the pool.

        Keyword arguments are not passed to func; they are attached to the
        outcome as log context (e.g. user_id=42).
        """
        if self._closed:
            raise RuntimeError("background task pool is shut down")

        task = asyncio.create_task(self._run(name, func, args, context), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        name: str,
        func: Callable[..., Awaitable[Any]],
        args: tuple,
        context: Dict[str, Any],
    ) -> TaskOutcome:
        async with self._semaphore:
            start = time.perf_counter()
            try:
                result = await func(*args)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                outcome = TaskOutcome(
                    name=name,
                    ok=False,
                    duration_ms=(time.perf_counter() - start) * 1000,
                    error=e,
                    context=context,
                )
            else:
                outcome = TaskOutcome(
                    name=name,
                    ok=True,
                    duration_ms=(time.perf_counter() - start) * 1000,
                    result=result,
                    context=context,
                )
        self._report(outcome)
        return outcome

    def _report(self, outcome: TaskOutcome) -> None:
        try:
            self._sink(outcome)
        except Exception:
            logger.exception("Outcome sink raised while reporting %s", outcome.name)

    async def drain(self, timeout: Optional[float] = None) -> List[TaskOutcome]:
        """
        Stop accepting work and wait for outstanding tasks.

        Tasks still running after `timeout` seconds are cancelled.
        """
        self._closed = True
        tasks = list(self._tasks)
        if not tasks:
            return []

        done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("Cancelled %d background tasks at shutdown", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

        return [t.result() for t in done if not t.cancelled() and t.exception() is None]

"""
Bounded pool for proof submissions.

The dispatch loop hands each submission to this pool and returns at once,
so a tick never waits on the proving backend. The pool owns every task it
starts: it refuses new work when full, logs every task that ends with an
exception, and can be drained on shutdown.
"""

import asyncio
from typing import TYPE_CHECKING, Awaitable, Optional, Set

from proof_orchestrator.shared.logging import get_logger

if TYPE_CHECKING:
    from proof_orchestrator.proofs.types import ProofRequest

_logger = get_logger(__name__)


def submission_task_name(request: "ProofRequest") -> str:
    """Pool task name for a request's submission, e.g. "span-12"."""
    return f"{request.type.value.lower()}-{request.id}"


class SubmissionPoolFull(RuntimeError):
    """Raised when a task is submitted to a pool at capacity."""


class SubmissionPool:
    """
    Tracks in-flight submission tasks.

    Attributes:
        max_pending: Maximum number of concurrently running tasks
        completed: Tasks that finished without raising
        failed: Tasks that finished with an exception (already logged)
    """

    def __init__(self, max_pending: int):
        if max_pending < 1:
            raise ValueError("max_pending must be at least 1")
        self.max_pending = max_pending
        self.completed = 0
        self.failed = 0
        self.last_error: Optional[BaseException] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def has_capacity(self) -> bool:
        return self.pending < self.max_pending

    def is_running(self, name: str) -> bool:
        """True while a task with this name is still in flight."""
        return any(task.get_name() == name for task in self._tasks)

    def submit(self, coro: Awaitable[None], name: str) -> asyncio.Task:
        """
        Start a task in the pool.

        Raises:
            SubmissionPoolFull: if max_pending tasks are already running
        """
        if not self.has_capacity():
            # Close the coroutine so it does not warn about never being awaited.
            close = getattr(coro, "close", None)
            if close:
                close()
            raise SubmissionPoolFull(
                f"submission pool is full ({self.pending}/{self.max_pending})"
            )

        task = asyncio.ensure_future(coro)
        task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            self.failed += 1
            _logger.warning("Submission task %s was cancelled", task.get_name())
            return

        exc = task.exception()
        if exc is not None:
            self.failed += 1
            self.last_error = exc
            _logger.error(
                "Submission task %s failed: %s",
                task.get_name(),
                exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )
            return

        self.completed += 1

    async def drain(self) -> None:
        """Wait for every in-flight task, including ones started meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

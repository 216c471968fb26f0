"""Single-use asynchronous tasks and a queue that honours their dependencies.

An AsyncTask wraps an execution block. The block receives a ``finish``
callable and must call it exactly once, on every exit path, possibly from
another thread after some I/O completes. Dependents of a task that never
finishes never run.

    task = AsyncTask(lambda finish: (do_work(), finish()))
    task.add_dependency(other)
    queue.add_task(task)
"""

import enum
import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

logger = logging.getLogger(__name__)

FinishCallback = Callable[[], None]
ExecutionBlock = Callable[[FinishCallback], None]


class TaskState(enum.Enum):
    IDLE = "idle"
    EXECUTING = "executing"
    FINISHED = "finished"


class TaskStateError(RuntimeError):
    """A task was driven through an illegal state transition."""


class AsyncTask:
    """A unit of asynchronous work with an explicit finish signal."""

    def __init__(
        self,
        execution_block: ExecutionBlock | None = None,
        name: str | None = None,
    ):
        self.name = name or f"task-{id(self):x}"
        self._execution_block = execution_block
        self._state = TaskState.IDLE
        self._dependencies: list[AsyncTask] = []
        self._done_callbacks: list[Callable[[AsyncTask], None]] = []
        self._scheduled = False
        self._lock = threading.Lock()
        self._finished_event = threading.Event()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} {self._state.value}>"

    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def is_executing(self) -> bool:
        return self._state is TaskState.EXECUTING

    @property
    def is_finished(self) -> bool:
        return self._state is TaskState.FINISHED

    @property
    def dependencies(self) -> tuple["AsyncTask", ...]:
        return tuple(self._dependencies)

    @property
    def is_ready(self) -> bool:
        """True when every dependency has finished."""
        return all(dep.is_finished for dep in self._dependencies)

    def set_execution_block(self, block: ExecutionBlock) -> None:
        """Assign the block after construction (lets subclasses capture self)."""
        with self._lock:
            if self._state is not TaskState.IDLE:
                raise TaskStateError(f"{self.name} has already started")
            self._execution_block = block

    def add_dependency(self, task: "AsyncTask") -> None:
        if task is self:
            raise ValueError("A task cannot depend on itself")
        with self._lock:
            if self._state is not TaskState.IDLE or self._scheduled:
                raise TaskStateError(
                    f"Dependencies must be added before {self.name} is queued"
                )
            self._dependencies.append(task)

    def add_done_callback(self, fn: Callable[["AsyncTask"], None]) -> None:
        """Call ``fn(task)`` once the task finishes (now, if it already has)."""
        with self._lock:
            if self._state is not TaskState.FINISHED:
                self._done_callbacks.append(fn)
                return
        fn(self)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until finished. Returns False if ``timeout`` elapsed first."""
        return self._finished_event.wait(timeout)

    def start(self) -> None:
        """Run the execution block. Only legal once, with dependencies done."""
        with self._lock:
            if self._state is not TaskState.IDLE:
                raise TaskStateError(
                    f"start() called on {self.name} more than once"
                )
            block = self._execution_block
            if block is None:
                raise TaskStateError(f"{self.name} has no execution block")
            if not self.is_ready:
                raise TaskStateError(
                    f"{self.name} started before its dependencies finished"
                )
            self._execution_block = None
            self._state = TaskState.EXECUTING

        logger.debug("Starting %s", self.name)
        block(self._finish)

    def _finish(self) -> None:
        with self._lock:
            if self._state is not TaskState.EXECUTING:
                raise TaskStateError(
                    f"{self.name} finished while {self._state.value}"
                )
            self._state = TaskState.FINISHED
            callbacks, self._done_callbacks = self._done_callbacks, []

        logger.debug("Finished %s", self.name)
        self._finished_event.set()
        for callback in callbacks:
            callback(self)

    def _abandon(self) -> None:
        """Finish without running the execution block."""
        with self._lock:
            if self._state is not TaskState.IDLE:
                raise TaskStateError(
                    f"{self.name} cannot be abandoned while {self._state.value}"
                )
            self._execution_block = None
            self._state = TaskState.EXECUTING
        self._finish()

    def _mark_scheduled(self) -> None:
        with self._lock:
            if self._scheduled:
                raise TaskStateError(f"{self.name} was queued twice")
            self._scheduled = True


class TaskQueue:
    """Runs tasks on a thread pool once their dependencies have finished.

    Tasks with no unfinished dependencies are submitted immediately; the rest
    are submitted from the done callback of their last dependency. Unrelated
    tasks run concurrently in no particular order.
    """

    def __init__(self, max_workers: int = 4, name: str = "tasks"):
        self.name = name
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=name
        )
        self._lock = threading.Lock()
        self._all_done = threading.Condition(self._lock)
        self._waiting: dict[AsyncTask, int] = {}
        self._outstanding = 0
        self._closed = False

    def add_task(self, task: AsyncTask) -> AsyncTask:
        task._mark_scheduled()
        with self._lock:
            self._outstanding += 1
        task.add_done_callback(self._task_finished)

        pending = [dep for dep in task.dependencies if not dep.is_finished]
        if not pending:
            self._submit(task)
            return task

        logger.debug(
            "%s waiting on %d dependencies", task.name, len(pending)
        )
        with self._lock:
            self._waiting[task] = len(pending)
        for dep in pending:
            # Fires immediately if dep finished since the check above
            dep.add_done_callback(
                lambda _dep, task=task: self._dependency_finished(task)
            )
        return task

    def _dependency_finished(self, task: AsyncTask) -> None:
        with self._lock:
            self._waiting[task] -= 1
            if self._waiting[task]:
                return
            del self._waiting[task]
        self._submit(task)

    def _task_finished(self, task: AsyncTask) -> None:
        with self._all_done:
            self._outstanding -= 1
            if not self._outstanding:
                self._all_done.notify_all()

    def _submit(self, task: AsyncTask) -> None:
        with self._lock:
            if not self._closed:
                self._executor.submit(self._run, task)
                return
        self._abandon(task)

    def _abandon(self, task: AsyncTask) -> None:
        logger.debug(
            "Queue %s is shut down; %s finishes without running",
            self.name,
            task.name,
        )
        task._abandon()

    def _run(self, task: AsyncTask) -> None:
        with self._lock:
            closed = self._closed
        if closed:
            self._abandon(task)
            return
        try:
            task.start()
        except Exception:
            logger.exception("Task %s raised", task.name)
            # Keep dependents from stalling on a block that died early
            if task.is_executing:
                task._finish()

    def join(self, timeout: float | None = None) -> bool:
        """Wait until every added task has finished."""
        with self._all_done:
            return self._all_done.wait_for(
                lambda: not self._outstanding, timeout
            )

    def shutdown(self, wait: bool = True) -> None:
        """Stop running new tasks, first letting every added task finish if ``wait``.

        A task that would start after shutdown finishes without running its
        block, so its dependents and join() are not left waiting. Without
        ``wait``, blocks already running are not interrupted.
        """
        if wait:
            self.join()
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.shutdown()

"""Task scheduling."""

import asyncio
import typing as t
from contextlib import suppress
from functools import partial
from inspect import getcoroutinestate

from loguru import logger


class Scheduler:
    """Runs coroutines as tasks keyed by ID, with at most one live task per ID."""

    def __init__(self, name: str):
        self.name = name
        self._scheduled_tasks: dict[t.Hashable, asyncio.Task] = {}

    def __contains__(self, task_id: t.Hashable) -> bool:
        return task_id in self._scheduled_tasks

    def __len__(self) -> int:
        return len(self._scheduled_tasks)

    def schedule(self, task_id: t.Hashable, coroutine: t.Coroutine) -> bool:
        """Schedules `coroutine` to start immediately.

        If a task with `task_id` is already live, `coroutine` is closed instead
        and False is returned.
        """
        logger.trace(f"{self.name}: Scheduling task #{task_id}")

        msg = f"Cannot schedule an already started coroutine for #{task_id}"
        assert getcoroutinestate(coroutine) == "CORO_CREATED", msg

        if task_id in self._scheduled_tasks:
            logger.debug(f"{self.name}: Did not schedule task #{task_id}; task was already scheduled")
            coroutine.close()
            return False

        task = asyncio.create_task(coroutine, name=f"{self.name}_{task_id}")
        task.add_done_callback(partial(self._task_done_callback, task_id))

        self._scheduled_tasks[task_id] = task
        logger.debug(f"{self.name}: Scheduled task #{task_id} {id(task)}.")
        return True

    def schedule_later(self, delay: float, task_id: t.Hashable, coroutine: t.Coroutine) -> bool:
        """Schedules `coroutine` to be awaited after `delay` seconds.

        The same rules as `schedule` apply when `task_id` is already live.
        """
        if task_id in self._scheduled_tasks:
            return self.schedule(task_id, coroutine)

        return self.schedule(task_id, self._await_later(delay, task_id, coroutine))

    def cancel(self, task_id: t.Hashable) -> bool:
        """Unschedules the task identified by `task_id`.

        Returns False if no such task was live.
        """
        logger.trace(f"{self.name}: Cancelling task #{task_id}...")

        try:
            task = self._scheduled_tasks.pop(task_id)
        except KeyError:
            logger.debug(f"{self.name}: No live task #{task_id} to unschedule.")
            return False

        task.cancel()
        logger.debug(f"{self.name}: Unscheduled task #{task_id} {id(task)}.")
        return True

    def cancel_all(self) -> None:
        """Unschedules all known tasks."""
        logger.debug(f"{self.name}: Unscheduling all tasks")

        for task_id in self._scheduled_tasks.copy():
            self.cancel(task_id)

    async def _await_later(self, delay: float, task_id: t.Hashable, coroutine: t.Coroutine) -> None:
        """Awaits `coroutine` after the given `delay` number of seconds."""
        try:
            logger.trace(f"{self.name}: Waiting {delay} seconds before awaiting coroutine for #{task_id}.")
            await asyncio.sleep(delay)

            # The coroutine may cancel its own task, so it runs shielded.
            logger.trace(f"{self.name}: Done waiting for #{task_id}; now awaiting the coroutine.")
            await asyncio.shield(coroutine)
        finally:
            # Only close the coroutine if it was never started, i.e. we were cancelled during the sleep.
            state = getcoroutinestate(coroutine)
            if state == "CORO_CREATED":
                logger.debug(f"{self.name}: Explicitly closing the coroutine for #{task_id}.")
                coroutine.close()
            else:
                logger.debug(f"{self.name}: Finally block reached for #{task_id}; {state=}")

    def _task_done_callback(self, task_id: t.Hashable, done_task: asyncio.Task) -> None:
        """Forgets the finished task and logs its exception if it has one.

        The entry for `task_id` is only removed if it still points at
        `done_task`; otherwise a new task was scheduled with the same ID.
        """
        logger.trace(f"{self.name}: Performing done callback for task #{task_id} {id(done_task)}.")

        scheduled_task = self._scheduled_tasks.get(task_id)

        if scheduled_task is done_task:
            logger.trace(f"{self.name}: Deleting task #{task_id} {id(done_task)}.")
            del self._scheduled_tasks[task_id]
        elif scheduled_task:
            logger.debug(
                f"{self.name}: "
                f"The scheduled task #{task_id} {id(scheduled_task)} "
                f"and the done task {id(done_task)} differ."
            )

        with suppress(asyncio.CancelledError):
            exception = done_task.exception()
            if exception:
                logger.opt(exception=exception).error(f"{self.name}: Error in task #{task_id} {id(done_task)}!")


def create_task(
    coro: t.Awaitable,
    *,
    suppressed_exceptions: tuple[t.Type[Exception], ...] = (),
    event_loop: t.Optional[asyncio.AbstractEventLoop] = None,
    **kwargs,
) -> asyncio.Task:
    """Wrapper for creating asyncio `Task`s which logs exceptions raised in the
    task.

    If `event_loop` is provided, the task is created from that event loop,
    otherwise the running loop is used.
    """
    if event_loop is not None:
        task = event_loop.create_task(coro, **kwargs)
    else:
        task = asyncio.create_task(coro, **kwargs)
    task.add_done_callback(partial(_log_task_exception, suppressed_exceptions=suppressed_exceptions))
    return task


def _log_task_exception(task: asyncio.Task, *, suppressed_exceptions: tuple[t.Type[Exception], ...]) -> None:
    """Retrieves and logs the exception raised in `task` if one exists."""
    with suppress(asyncio.CancelledError):
        exception = task.exception()
        if exception and not isinstance(exception, suppressed_exceptions):
            logger.opt(exception=exception).error(f"Error in task {task.get_name()} {id(task)}!")

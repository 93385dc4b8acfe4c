"""Scheduled tasks that run for as long as the app is up.

A ``ScheduleTask`` pairs a crontab expression with an ``execute``
coroutine. ``TaskScheduler`` gives every task its own anyio task, sleeping
until the next time the expression fires. ``App.schedule()`` registers
tasks; the app starts the scheduler after its startup hooks and stops it
before its shutdown hooks.

Usage::

    class PurgeUploads(ScheduleTask):
        expression = "*/15 * * * *"

        async def execute(self) -> None:
            await purge_stale_uploads()

    app.schedule(PurgeUploads())
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from contextlib import AsyncExitStack
from datetime import UTC, datetime, timedelta

import anyio
from anyio.abc import TaskGroup
from apscheduler.triggers.cron import CronTrigger

from rampart._internal.invoke import invoke
from rampart.errors import ConfigurationError

logger = logging.getLogger("rampart.scheduler")

type Clock = Callable[[], datetime]
type Sleep = Callable[[float], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ScheduleTask(ABC):
    """A job fired on a crontab schedule.

    ``expression`` uses the five-field crontab syntax, evaluated in UTC.
    ``on_complete`` runs after every firing, whether or not ``execute``
    raised. Either may be sync or async.
    """

    expression: str = ""

    @abstractmethod
    async def execute(self) -> None:
        """Do the scheduled work."""

    def on_complete(self) -> None:
        return None

    @property
    def name(self) -> str:
        return type(self).__name__


class TaskScheduler:
    """Runs registered ``ScheduleTask`` objects between ``start()`` and ``stop()``.

    ``start()`` and ``stop()`` must be awaited from the same task, as the
    ASGI lifespan and ``TestClient`` both do. A task that raises is logged
    and keeps its schedule.
    """

    __slots__ = ("_clock", "_sleep", "_stack", "_task_group", "_tasks")

    def __init__(self, *, clock: Clock = _utcnow, sleep: Sleep = anyio.sleep) -> None:
        self._clock = clock
        self._sleep = sleep
        self._tasks: list[tuple[ScheduleTask, CronTrigger]] = []
        self._stack: AsyncExitStack | None = None
        self._task_group: TaskGroup | None = None

    def add(self, task: ScheduleTask) -> ScheduleTask:
        """Register *task*. Rejects expressions that are not valid crontab."""
        try:
            trigger = CronTrigger.from_crontab(task.expression, timezone=UTC)
        except ValueError as exc:
            msg = f"{task.name} has an invalid schedule {task.expression!r}: {exc}"
            raise ConfigurationError(msg) from exc
        self._tasks.append((task, trigger))
        return task

    @property
    def tasks(self) -> tuple[ScheduleTask, ...]:
        return tuple(task for task, _ in self._tasks)

    @property
    def running(self) -> bool:
        return self._task_group is not None

    async def start(self) -> None:
        if self._task_group is not None:
            msg = "Scheduler is already running."
            raise RuntimeError(msg)
        stack = AsyncExitStack()
        task_group = await stack.enter_async_context(anyio.create_task_group())
        for task, trigger in self._tasks:
            task_group.start_soon(self._run, task, trigger, name=f"rampart.schedule:{task.name}")
        self._stack = stack
        self._task_group = task_group
        logger.info("Scheduler started with %d task(s)", len(self._tasks))

    async def stop(self) -> None:
        """Cancel every task and wait for them to finish. No-op when stopped."""
        if self._stack is None or self._task_group is None:
            return
        self._task_group.cancel_scope.cancel()
        stack, self._stack, self._task_group = self._stack, None, None
        await stack.aclose()
        logger.info("Scheduler stopped")

    async def _run(self, task: ScheduleTask, trigger: CronTrigger) -> None:
        after = self._clock()
        while True:
            fire_at = trigger.get_next_fire_time(None, after)
            if fire_at is None:
                logger.debug("%s has no further fire times", task.name)
                return
            await self._sleep(max((fire_at - self._clock()).total_seconds(), 0.0))
            await self._fire(task)
            # Never fire twice for one slot, even if the sleep woke early
            after = max(self._clock(), fire_at + timedelta(seconds=1))

    async def _fire(self, task: ScheduleTask) -> None:
        logger.debug("Running scheduled task %s", task.name)
        try:
            await invoke(task.execute)
        except Exception:
            logger.exception("Scheduled task %s failed", task.name)
        try:
            await invoke(task.on_complete)
        except Exception:
            logger.exception("on_complete of scheduled task %s failed", task.name)

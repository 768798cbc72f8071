from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from .state import Event

logger = logging.getLogger(__name__)

TaskKey = tuple[int, str]  # (protocol id, task kind)
TaskCallback = Callable[[], list[Event]]


@dataclass
class ScheduledTask:
    key: TaskKey
    due: float
    seq: int
    callback: TaskCallback = field(repr=False)
    fired: bool = False
    cancelled: bool = False

    @property
    def active(self) -> bool:
        return not self.fired and not self.cancelled


class Scheduler:
    """Cancellable one-shot tasks on a virtual clock.

    The host drives time with :meth:`advance` (typically the frame delta).
    Each task fires at most once; cancelled or fired tasks are inert.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._tasks: dict[TaskKey, ScheduledTask] = {}
        self._seq = 0

    def schedule(self, key: TaskKey, delay: float, callback: TaskCallback) -> ScheduledTask:
        self.cancel(key)
        self._seq += 1
        task = ScheduledTask(key=key, due=self.now + max(0.0, delay), seq=self._seq, callback=callback)
        self._tasks[key] = task
        return task

    def cancel(self, key: TaskKey) -> bool:
        task = self._tasks.pop(key, None)
        if task is None or not task.active:
            return False
        task.cancelled = True
        return True

    def cancel_protocol(self, protocol_id: int) -> int:
        keys = [k for k in self._tasks if k[0] == protocol_id]
        return sum(1 for k in keys if self.cancel(k))

    def cancel_all(self) -> None:
        for key in list(self._tasks):
            self.cancel(key)

    def is_scheduled(self, key: TaskKey) -> bool:
        task = self._tasks.get(key)
        return task is not None and task.active

    def pending(self) -> list[ScheduledTask]:
        return sorted((t for t in self._tasks.values() if t.active), key=lambda t: (t.due, t.seq))

    def advance(self, dt: float) -> list[Event]:
        """Move the clock forward, firing due tasks in (due, seq) order."""
        target = self.now + max(0.0, dt)
        events: list[Event] = []
        while True:
            due = [t for t in self._tasks.values() if t.active and t.due <= target]
            if not due:
                break
            task = min(due, key=lambda t: (t.due, t.seq))
            self.now = max(self.now, task.due)
            task.fired = True
            del self._tasks[task.key]
            logger.debug("Firing task %s at t=%.2f", task.key, self.now)
            events.extend(task.callback())
        self.now = target
        return events

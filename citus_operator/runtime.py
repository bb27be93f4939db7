from __future__ import annotations

import heapq
import time
from threading import Condition, Event

from .resources import ObjectKey


class WorkQueue:
    """Keys waiting for reconciliation.

    - a key is queued at most once, however many events arrive for it;
    - a key handed to a worker is not handed out again until ``done``; if it
      was added meanwhile it is queued again at that point;
    - ``add_after`` keeps the earliest deadline per key.
    """

    def __init__(self) -> None:
        self.cond = Condition()
        self.queue: list[ObjectKey] = []
        self.dirty: set[ObjectKey] = set()
        self.processing: set[ObjectKey] = set()
        self.waiting: list[tuple[float, int, ObjectKey]] = []  # heap of (deadline, seq, key)
        self.deadlines: dict[ObjectKey, float] = {}
        self._seq = 0
        self._shutdown = Event()

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown.is_set()

    def add(self, key: ObjectKey) -> None:
        with self.cond:
            self._add_locked(key)

    def _add_locked(self, key: ObjectKey) -> None:
        if self._shutdown.is_set() or key in self.dirty:
            return
        self.dirty.add(key)
        if key not in self.processing:
            self.queue.append(key)
            self.cond.notify()

    def add_after(self, key: ObjectKey, delay_s: float) -> None:
        if delay_s <= 0:
            self.add(key)
            return
        with self.cond:
            if self._shutdown.is_set():
                return
            deadline = time.monotonic() + delay_s
            current = self.deadlines.get(key)
            if current is not None and current <= deadline:
                return
            self.deadlines[key] = deadline
            self._seq += 1
            heapq.heappush(self.waiting, (deadline, self._seq, key))
            self.cond.notify()

    def forget(self, key: ObjectKey) -> None:
        """Drop any pending delayed add for ``key``."""
        with self.cond:
            self.deadlines.pop(key, None)

    def _promote_due_locked(self, now: float) -> float | None:
        """Move due delayed keys to the queue; return seconds to the next deadline."""
        while self.waiting:
            deadline, _, key = self.waiting[0]
            if self.deadlines.get(key) != deadline:
                heapq.heappop(self.waiting)  # superseded or forgotten
                continue
            if deadline > now:
                return deadline - now
            heapq.heappop(self.waiting)
            del self.deadlines[key]
            self._add_locked(key)
        return None

    def get(self, timeout: float | None = None) -> ObjectKey | None:
        """Block until a key is ready; None on timeout or shutdown."""
        end = None if timeout is None else time.monotonic() + timeout
        with self.cond:
            while True:
                if self._shutdown.is_set():
                    return None
                next_due = self._promote_due_locked(time.monotonic())
                if self.queue:
                    key = self.queue.pop(0)
                    self.dirty.discard(key)
                    self.processing.add(key)
                    return key
                wait = next_due
                if end is not None:
                    remaining = end - time.monotonic()
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)
                self.cond.wait(wait)

    def done(self, key: ObjectKey) -> None:
        with self.cond:
            self.processing.discard(key)
            if key in self.dirty:
                self.queue.append(key)
                self.cond.notify()

    def shutdown(self) -> None:
        with self.cond:
            self._shutdown.set()
            self.cond.notify_all()

    def __len__(self) -> int:
        with self.cond:
            return len(self.queue) + len(self.deadlines)

"""
Tick scheduling for the extraction and fusion loops.

Every periodic step (audio sampling, face sampling, fusion) implements
Tickable. A TickScheduler runs each registered Tickable once its interval
has elapsed on a pluggable clock. Tests call run_due(now) with synthetic
timestamps; the live session calls start(), which drives the same method
from a background thread.

Stopping is immediate: the loop exits before the next pass and never
interrupts a tick in progress, so buffers are left consistent.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def wall_clock_ms() -> float:
    """Current wall-clock time in milliseconds."""
    return time.time() * 1000.0


class ManualClock:
    """Deterministic clock for tests and replays."""

    def __init__(self, start_ms: float = 0.0):
        self.now_ms = float(start_ms)

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, delta_ms: float) -> float:
        self.now_ms += float(delta_ms)
        return self.now_ms


class Tickable(ABC):
    """A unit of periodic work."""

    @abstractmethod
    def tick(self, now_ms: float) -> None:
        """Run one step. Must finish synchronously and must not raise."""
        pass


@dataclass
class _Entry:
    name: str
    task: Tickable
    interval_ms: float
    next_due: Optional[float] = None


class TickScheduler:
    """
    Runs registered Tickables at fixed intervals.

    Usage:
        scheduler = TickScheduler(clock=wall_clock_ms)
        scheduler.add("fusion", session, 500)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(self, clock: Clock = wall_clock_ms, resolution_ms: float = 16.0):
        self.clock = clock
        self.resolution_ms = max(1.0, float(resolution_ms))
        self._entries: List[_Entry] = []
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self.is_running = False

    def add(self, name: str, task: Tickable, interval_ms: float) -> None:
        """Register a task. interval_ms <= 0 means every scheduler pass."""
        self._entries.append(_Entry(name=name, task=task, interval_ms=max(0.0, float(interval_ms))))

    def run_due(self, now_ms: Optional[float] = None) -> List[str]:
        """
        Run every task whose interval has elapsed at now_ms, in registration order.

        Returns:
            Names of the tasks that ran.
        """
        now = self.clock() if now_ms is None else float(now_ms)
        ran = []
        for entry in self._entries:
            if entry.next_due is not None and now < entry.next_due:
                continue
            try:
                entry.task.tick(now)
            except Exception as e:
                logger.warning("Tick %s failed: %s", entry.name, e)
            entry.next_due = now + entry.interval_ms
            ran.append(entry.name)
        return ran

    def start(self) -> None:
        """Run the scheduler loop on a daemon thread."""
        if self.is_running:
            return
        self._stop_event.clear()
        for entry in self._entries:
            entry.next_due = None
        self.is_running = True
        self._thread = threading.Thread(target=self._loop, name="tick-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout_sec: float = 1.0) -> None:
        """Stop scheduling; the task running now (if any) completes first."""
        self._stop_event.set()
        self.is_running = False
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout_sec)

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            self.run_due()
            self._stop_event.wait(self.resolution_ms / 1000.0)

"""
Bounded time-series storage.

BoundedSeriesBuffer keeps the most recent `capacity` scalar samples in a fixed
circular array; pushing into a full buffer silently overwrites the oldest
entry. Snapshots are taken under a lock, so a reader never observes a
half-written push even when capture threads and the scheduler thread share a
buffer.

VadTimeline groups three buffers (valence, arousal, dominance) that are
always pushed together, so index i of each buffer refers to the same tick.
"""

import threading
from dataclasses import dataclass
from typing import Iterator, List, Tuple

import numpy as np


@dataclass(frozen=True)
class Sample:
    """One scalar observation. t is a timestamp in milliseconds."""
    t: float
    v: float


@dataclass(frozen=True)
class VadSample:
    """One fused VAD point on the session timeline."""
    t: float
    v: float
    a: float
    d: float

    def to_dict(self) -> dict:
        return {"t": self.t, "v": self.v, "a": self.a, "d": self.d}


class BoundedSeriesBuffer:
    """
    Fixed-capacity circular buffer of (t, v) samples.

    Usage:
        buf = BoundedSeriesBuffer(500)
        buf.push(now_ms, value)
        recent = buf.avg_in_window(now_ms, 5000)
    """

    def __init__(self, capacity: int):
        if int(capacity) <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = int(capacity)
        self._times = np.zeros(self.capacity, dtype=np.float64)
        self._values = np.zeros(self.capacity, dtype=np.float64)
        self._head = 0
        self._filled = False
        self._lock = threading.Lock()

    def push(self, t: float, v: float) -> None:
        """Store one sample, evicting the oldest when the buffer is full."""
        with self._lock:
            self._times[self._head] = t
            self._values[self._head] = v
            self._head = (self._head + 1) % self.capacity
            if self._head == 0:
                self._filled = True

    def _snapshot(self) -> Tuple[np.ndarray, np.ndarray]:
        """Copy of (times, values) in insertion order. Caller must not hold the lock."""
        with self._lock:
            if self._filled:
                order = np.roll(np.arange(self.capacity), -self._head)
                return self._times[order].copy(), self._values[order].copy()
            return self._times[:self._head].copy(), self._values[:self._head].copy()

    def to_array(self) -> Iterator[Sample]:
        """
        Return a single-pass iterator over the samples, oldest first.

        The snapshot is taken when this method is called; later pushes do not
        affect an iterator that was already handed out.
        """
        times, values = self._snapshot()
        return (Sample(float(t), float(v)) for t, v in zip(times, values))

    def values(self) -> List[float]:
        """Snapshot of the stored values only, oldest first."""
        _, values = self._snapshot()
        return values.tolist()

    def avg_in_window(self, now: float, window_ms: float) -> float:
        """Mean of samples with t >= now - window_ms; 0 when none qualify."""
        times, values = self._snapshot()
        mask = times >= (now - window_ms)
        if not mask.any():
            return 0.0
        return float(values[mask].mean())

    def clear(self) -> None:
        with self._lock:
            self._head = 0
            self._filled = False

    def __len__(self) -> int:
        with self._lock:
            return self.capacity if self._filled else self._head


class VadTimeline:
    """Three lock-step buffers holding the fused V, A and D series."""

    def __init__(self, capacity: int):
        self.v = BoundedSeriesBuffer(capacity)
        self.a = BoundedSeriesBuffer(capacity)
        self.d = BoundedSeriesBuffer(capacity)
        self._lock = threading.Lock()

    def push(self, t: float, v: float, a: float, d: float) -> None:
        with self._lock:
            self.v.push(t, v)
            self.a.push(t, a)
            self.d.push(t, d)

    def to_array(self) -> Iterator[VadSample]:
        with self._lock:
            vs = list(self.v.to_array())
            as_ = list(self.a.to_array())
            ds = list(self.d.to_array())
        return (VadSample(sv.t, sv.v, sa.v, sd.v) for sv, sa, sd in zip(vs, as_, ds))

    def window_average(self, now: float, window_ms: float) -> Tuple[float, float, float]:
        """(v, a, d) means over the window; zeros when the window is empty."""
        return (
            self.v.avg_in_window(now, window_ms),
            self.a.avg_in_window(now, window_ms),
            self.d.avg_in_window(now, window_ms),
        )

    def clear(self) -> None:
        with self._lock:
            self.v.clear()
            self.a.clear()
            self.d.clear()

    def __len__(self) -> int:
        return len(self.v)

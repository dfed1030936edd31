"""
End-of-session reduction of the VAD timeline.

summarize_timeline() gives mean V/A/D for reporting. describe_state() and
compare_summaries() produce the short labels and session-over-session deltas
shown on the report and history screens.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Tuple

from utils.series_buffer import VadSample

# describe_state() bands
HIGH_BAND = 0.66
LOW_BAND = 0.33


@dataclass(frozen=True)
class SessionSummary:
    """Mean V, A, D over a session; zeros for an empty session."""
    avg_v: float = 0.0
    avg_a: float = 0.0
    avg_d: float = 0.0
    samples: int = 0

    def to_dict(self) -> Dict[str, float]:
        return {"avgV": self.avg_v, "avgA": self.avg_a, "avgD": self.avg_d, "samples": self.samples}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionSummary":
        """Rebuild from to_dict() output (e.g. a stored previous session). Raises ValueError."""
        values = {}
        for key in ("avgV", "avgA", "avgD"):
            value = data.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ValueError(f"summary {key} must be a finite number")
            values[key] = float(value)
        samples = data.get("samples", 0)
        if isinstance(samples, bool) or not isinstance(samples, int) or samples < 0:
            raise ValueError("summary samples must be a non-negative integer")
        return cls(avg_v=values["avgV"], avg_a=values["avgA"], avg_d=values["avgD"], samples=samples)


def summarize_timeline(timeline: Iterable[VadSample]) -> SessionSummary:
    """Mean of each axis over the recorded timeline."""
    n = 0
    sv = sa = sd = 0.0
    for point in timeline:
        sv += point.v
        sa += point.a
        sd += point.d
        n += 1
    if n == 0:
        return SessionSummary()
    return SessionSummary(avg_v=sv / n, avg_a=sa / n, avg_d=sd / n, samples=n)


def describe_state(v: float, a: float, d: float) -> Tuple[str, str]:
    """
    Plain-language (title, note) for a VAD point.

    Title follows valence first, then arousal; the note follows dominance.
    """
    if v > HIGH_BAND:
        title = "Positive"
    elif v < LOW_BAND:
        title = "Heavy"
    elif a > HIGH_BAND:
        title = "Energetic"
    elif a < LOW_BAND:
        title = "Calm"
    else:
        title = "Steady"
    if d > HIGH_BAND:
        note = "A sense of agency comes through."
    elif d < LOW_BAND:
        note = "Things may feel like a burden right now."
    else:
        note = "Feels balanced."
    return title, note


def compare_summaries(latest: SessionSummary, previous: SessionSummary) -> Dict[str, float]:
    """Per-axis change from the previous session to the latest one."""
    return {
        "dv": latest.avg_v - previous.avg_v,
        "da": latest.avg_a - previous.avg_a,
        "dd": latest.avg_d - previous.avg_d,
    }

"""
Small numeric helpers shared by the extractors and the fusion engine.

All functions are pure and never raise on degenerate input: NaN clamps to the
lower bound, empty sequences have zero variance.
"""

import math
from typing import Optional, Sequence

import numpy as np

# Smoothing factor used at every arousal smoothing site (audio and face)
SMOOTHING_ALPHA = 0.2


def clamp(x: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """Clamp x into [lo, hi]. NaN resolves to lo."""
    x = float(x)
    if math.isnan(x):
        return lo
    return max(lo, min(hi, x))


def ema(prev: Optional[float], value: float, alpha: float = SMOOTHING_ALPHA) -> float:
    """
    Exponential moving average step.

    The first call (prev is None) seeds the filter with value unchanged.
    """
    if prev is None:
        return value
    return alpha * value + (1.0 - alpha) * prev


def variance(values: Sequence[float]) -> float:
    """Population variance; 0 for an empty sequence."""
    if len(values) == 0:
        return 0.0
    return float(np.var(np.asarray(values, dtype=np.float64)))

"""
Audio feature extraction for the arousal proxy.

Turns a block of raw microphone samples (floats in [-1, 1]) into:
- normalized RMS energy (0-1)
- a coarse pitch estimate in Hz from time-domain autocorrelation
- an arousal proxy mixing energy with recent pitch variability

Heuristics, not a trained model:
- Loudness tracks arousal (Bachorowski); RMS is scaled by a fixed reference
  tuned for typical speech at laptop-microphone distance.
- Pitch variability rises with activation (Scherer); variance of the last few
  pitch estimates is scaled by a fixed constant.
"""

from collections import deque
from typing import Deque, Optional, Sequence, Tuple

import numpy as np

from utils.signal_math import clamp, variance

# RMS that maps to full-scale energy (typical conversational speech)
RMS_REFERENCE = 0.2
# Pitch search range (Hz); covers adult and child speaking voices
PITCH_MIN_HZ = 60.0
PITCH_MAX_HZ = 800.0
# Lag stride in samples; trades pitch resolution for speed
PITCH_LAG_STEP = 2
# Pitch variability window (number of previous pitch estimates)
PITCH_VARIANCE_WINDOW = 25
# Variance (Hz^2) that maps to full-scale variability
PITCH_VARIANCE_SCALE = 2000.0
# Arousal mix: energy vs pitch variability
AROUSAL_RMS_WEIGHT = 0.7
AROUSAL_PITCH_VAR_WEIGHT = 0.3


def compute_rms(samples: Sequence[float]) -> float:
    """Root-mean-square of the block; 0 for an empty block."""
    buf = np.asarray(samples, dtype=np.float64)
    if buf.size == 0:
        return 0.0
    rms = float(np.sqrt(np.mean(buf * buf)))
    return rms if np.isfinite(rms) else 0.0


def normalize_rms(rms: float, reference: float = RMS_REFERENCE) -> float:
    """Scale RMS by the reference ceiling and clamp to [0, 1]."""
    return clamp(rms / reference, 0.0, 1.0)


def estimate_pitch_autocorr(
    samples: Sequence[float],
    sample_rate: float,
    min_hz: float = PITCH_MIN_HZ,
    max_hz: float = PITCH_MAX_HZ,
    lag_step: int = PITCH_LAG_STEP,
) -> float:
    """
    Estimate the fundamental frequency of a block by autocorrelation.

    Candidate lags span [sample_rate / max_hz, sample_rate / min_hz] in
    steps of lag_step. The lag with the largest positive correlation sum
    sum(buf[i] * buf[i + lag]) wins and is converted back to Hz.

    Returns:
        Pitch in Hz, or 0.0 when no lag correlates positively (silence or
        unvoiced input).
    """
    buf = np.asarray(samples, dtype=np.float64)
    if buf.size == 0 or sample_rate <= 0:
        return 0.0
    min_lag = int(np.floor(sample_rate / max_hz))
    max_lag = int(np.floor(sample_rate / min_hz))
    best_lag = 0
    best_corr = 0.0
    for lag in range(max(1, min_lag), max_lag + 1, lag_step):
        if lag >= buf.size:
            break
        corr = float(np.dot(buf[:-lag], buf[lag:]))
        if corr > best_corr:
            best_corr = corr
            best_lag = lag
    if best_lag == 0:
        return 0.0
    return float(sample_rate) / best_lag


def pitch_variability(pitches: Sequence[float], scale: float = PITCH_VARIANCE_SCALE) -> float:
    """Variance of the pitch window divided by scale, clamped to [0, 1]."""
    return clamp(variance(pitches) / scale, 0.0, 1.0)


def audio_arousal(rms_norm: float, pitch_var: float) -> float:
    """Unsmoothed arousal proxy from normalized energy and pitch variability."""
    return clamp(AROUSAL_RMS_WEIGHT * rms_norm + AROUSAL_PITCH_VAR_WEIGHT * pitch_var, 0.0, 1.0)


class PitchHistory:
    """Recent pitch estimates used for the variability term."""

    def __init__(self, window: int = PITCH_VARIANCE_WINDOW):
        self._pitches: Deque[float] = deque(maxlen=window)

    def variability(self) -> float:
        return pitch_variability(list(self._pitches))

    def append(self, pitch_hz: float) -> None:
        self._pitches.append(float(pitch_hz))

    def clear(self) -> None:
        self._pitches.clear()


def extract_audio_features(
    samples: Sequence[float],
    sample_rate: float,
    history: Optional[PitchHistory] = None,
) -> Tuple[float, float, float]:
    """
    Compute (rms_norm, pitch_hz, raw_arousal) for one block.

    When a PitchHistory is given, the variability term uses the estimates
    before this block, then the new estimate is appended.
    """
    rms_norm = normalize_rms(compute_rms(samples))
    pitch_hz = estimate_pitch_autocorr(samples, sample_rate)
    pitch_var = history.variability() if history is not None else 0.0
    if history is not None:
        history.append(pitch_hz)
    return rms_norm, pitch_hz, audio_arousal(rms_norm, pitch_var)

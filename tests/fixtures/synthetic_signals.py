"""
Synthetic signal generators for extractor and session tests.

Audio: pure sines, silence and seeded noise as float blocks in [-1, 1].
Face: blendshape score dictionaries for neutral, smiling and tense faces.
Text: short user turns with known lexical scores.
"""

import math
from typing import Dict, List

import numpy as np


def make_sine(freq_hz: float, sample_rate: float = 44100, n: int = 4096, amplitude: float = 0.5) -> np.ndarray:
    """Pure sine block."""
    t = np.arange(n) / float(sample_rate)
    return amplitude * np.sin(2 * math.pi * freq_hz * t)


def make_silence(n: int = 2048) -> np.ndarray:
    return np.zeros(n, dtype=np.float64)


def make_noise(n: int = 2048, amplitude: float = 0.3, seed: int = 7) -> np.ndarray:
    """Seeded uniform noise clipped to [-1, 1]."""
    rng = np.random.default_rng(seed)
    return np.clip(rng.uniform(-amplitude, amplitude, n), -1.0, 1.0)


def neutral_blendshapes() -> Dict[str, float]:
    """Relaxed face: eyes open, mouth closed, no smile."""
    return {
        "mouthSmileLeft": 0.0,
        "mouthSmileRight": 0.0,
        "mouthOpen": 0.0,
        "jawOpen": 0.0,
        "browInnerUp": 0.0,
        "browDownLeft": 0.0,
        "browDownRight": 0.0,
        "eyeBlinkLeft": 0.0,
        "eyeBlinkRight": 0.0,
    }


def smile_blendshapes(strength: float = 0.8) -> Dict[str, float]:
    scores = neutral_blendshapes()
    scores["mouthSmileLeft"] = strength
    scores["mouthSmileRight"] = strength
    scores["jawOpen"] = 0.2
    return scores


def tense_blendshapes() -> Dict[str, float]:
    """Frown, squint, open mouth."""
    scores = neutral_blendshapes()
    scores["browDownLeft"] = 0.9
    scores["browDownRight"] = 0.7
    scores["eyeBlinkLeft"] = 0.6
    scores["eyeBlinkRight"] = 0.4
    scores["mouthOpen"] = 0.7
    return scores


POSITIVE_TURNS: List[str] = [
    "I am happy with my progress",
    "I feel good and proud of this win",
]

NEGATIVE_TURNS: List[str] = [
    "I should stop but I have to keep going, so tired and stuck",
    "bad sad anxious",
]

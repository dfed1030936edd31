"""
Concrete signal sources.

Device-backed sources hold the most recent data pushed by the capture
collaborator (audio blocks, blendshape scores) and run the extractors on it
when the scheduler asks for a reading. Synthetic sources generate slow,
bounded oscillations so downstream fusion keeps producing plausible values
when a device is denied or absent ("noise mode").
"""

import math
import threading
from typing import Mapping, Optional, Sequence

import numpy as np

from utils.audio_features import PitchHistory, extract_audio_features
from utils.face_proxies import FaceProxies, proxies_from_blendshapes
from utils.signal_math import clamp
from utils.signal_source_interface import AudioReading, AudioSignalSource, FaceSignalSource

DEFAULT_SAMPLE_RATE = 44100


class MicrophoneAudioSource(AudioSignalSource):
    """
    Audio source fed with raw sample blocks by the capture collaborator.

    Each pushed block is analyzed once, on the first read after the push;
    reads with no new block return None so the channel keeps its last values.
    """

    def __init__(self, sample_rate: float = DEFAULT_SAMPLE_RATE):
        self.sample_rate = float(sample_rate)
        self._pending: Optional[np.ndarray] = None
        self._lock = threading.Lock()
        self._history = PitchHistory()
        self._available = True

    def push_block(self, samples: Sequence[float], sample_rate: Optional[float] = None) -> None:
        """Hand over a block of float samples in [-1, 1]. Replaces any unread block."""
        block = np.clip(np.nan_to_num(np.asarray(samples, dtype=np.float64)), -1.0, 1.0)
        if block.ndim != 1:
            raise ValueError(f"audio block must be one-dimensional, got shape {block.shape}")
        with self._lock:
            if sample_rate:
                self.sample_rate = float(sample_rate)
            self._pending = block

    def read(self, now_ms: float) -> Optional[AudioReading]:
        with self._lock:
            block, self._pending = self._pending, None
            sample_rate = self.sample_rate
        if block is None:
            return None
        rms_norm, pitch_hz, arousal = extract_audio_features(block, sample_rate, self._history)
        return AudioReading(rms_norm=rms_norm, pitch_hz=pitch_hz, arousal=arousal)

    def set_available(self, available: bool) -> None:
        self._available = bool(available)

    def is_available(self) -> bool:
        return self._available

    def get_name(self) -> str:
        return "microphone"

    def close(self) -> None:
        with self._lock:
            self._pending = None
        self._history.clear()


class BlendshapeFaceSource(FaceSignalSource):
    """
    Face source fed with blendshape score dictionaries.

    Pushing None (the landmarker found nothing or failed) leaves no fresh
    reading for that tick; the channel keeps its last proxies.
    """

    def __init__(self):
        self._pending: Optional[Mapping[str, float]] = None
        self._lock = threading.Lock()
        self._available = True

    def push_scores(self, scores: Optional[Mapping[str, float]]) -> None:
        with self._lock:
            self._pending = dict(scores) if scores else None

    def read(self, now_ms: float) -> Optional[FaceProxies]:
        with self._lock:
            scores, self._pending = self._pending, None
        if not scores:
            return None
        return proxies_from_blendshapes(scores)

    def set_available(self, available: bool) -> None:
        self._available = bool(available)

    def is_available(self) -> bool:
        return self._available

    def get_name(self) -> str:
        return "blendshapes"

    def close(self) -> None:
        with self._lock:
            self._pending = None


class SyntheticAudioSource(AudioSignalSource):
    """Oscillating energy and pitch used when the microphone is unavailable."""

    def read(self, now_ms: float) -> Optional[AudioReading]:
        t = now_ms / 1000.0
        rms = clamp(0.4 + 0.2 * math.sin(t * 1.7))
        pitch = 180.0 + 40.0 * math.sin(t * 0.9)
        arousal = clamp(0.6 * rms + 0.4 * abs(math.cos(t * 0.7)))
        return AudioReading(rms_norm=rms, pitch_hz=pitch, arousal=arousal)

    def is_available(self) -> bool:
        return True

    def get_name(self) -> str:
        return "synthetic_audio"

    @property
    def is_synthetic(self) -> bool:
        return True


class SyntheticFaceSource(FaceSignalSource):
    """Oscillating facial proxies used when the camera or landmarker is unavailable."""

    def read(self, now_ms: float) -> Optional[FaceProxies]:
        t = now_ms / 1000.0
        smile = clamp(0.5 + 0.3 * math.sin(t * 0.8))
        mouth = clamp(0.4 + 0.3 * max(0.0, math.sin(t * 1.2)))
        brow = clamp(0.5 + 0.2 * math.sin(t * 0.6 + 1))
        eye = clamp(0.5 + 0.2 * math.cos(t * 1.1))
        arousal = clamp(0.5 * mouth + 0.3 * smile + 0.2 * (1 - eye))
        return FaceProxies(
            smile_index=smile,
            mouth_open=mouth,
            brow_distance=brow,
            eye_aspect=eye,
            face_arousal=arousal,
        )

    def is_available(self) -> bool:
        return True

    def get_name(self) -> str:
        return "synthetic_face"

    @property
    def is_synthetic(self) -> bool:
        return True

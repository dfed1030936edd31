"""
Per-modality sampling channels.

A channel owns one signal source, smooths its arousal proxy with an EMA, and
records the latest values for fusion and charting. If a device-backed source
stops being available mid-session the channel switches itself to the
synthetic fallback and logs the mode change; nothing is raised to the
scheduler.
"""

import logging
import threading
from typing import Dict, Optional

from utils.face_proxies import FaceProxies
from utils.series_buffer import BoundedSeriesBuffer
from utils.signal_math import SMOOTHING_ALPHA, ema
from utils.signal_source_interface import AudioReading, AudioSignalSource, FaceSignalSource, SignalSource
from utils.signal_sources import SyntheticAudioSource, SyntheticFaceSource
from utils.tick_scheduler import Tickable

logger = logging.getLogger(__name__)


class _Channel(Tickable):
    modality = "signal"

    def __init__(self, source: SignalSource):
        self.source = source
        self._arousal_ema: Optional[float] = None
        self._lock = threading.Lock()
        self.has_reading = False

    @property
    def noise_mode(self) -> bool:
        return self.source.is_synthetic

    @property
    def mode(self) -> str:
        return "synthetic" if self.source.is_synthetic else "device"

    def _fallback_source(self) -> SignalSource:
        raise NotImplementedError

    def switch_to_fallback(self, reason: str) -> None:
        """Replace the current source with the synthetic generator."""
        if self.source.is_synthetic:
            return
        previous = self.source.get_name()
        try:
            self.source.close()
        except Exception as e:
            logger.warning("Closing %s source failed: %s", previous, e)
        self.source = self._fallback_source()
        logger.warning("%s channel: %s -> %s (%s)", self.modality, previous, self.source.get_name(), reason)

    def _smooth(self, raw_arousal: float) -> float:
        self._arousal_ema = ema(self._arousal_ema, raw_arousal, SMOOTHING_ALPHA)
        return self._arousal_ema

    def _read(self, now_ms: float):
        if not self.source.is_available():
            self.switch_to_fallback("source became unavailable")
        try:
            return self.source.read(now_ms)
        except Exception as e:
            logger.warning("%s read failed, keeping last values: %s", self.source.get_name(), e)
            return None

    def close(self) -> None:
        self.source.close()


class AudioChannel(_Channel):
    """
    Audio sampling channel.

    Records normalized RMS and pitch series for charting and exposes the
    smoothed audio arousal used by fusion.
    """
    modality = "audio"

    def __init__(self, source: AudioSignalSource, series_capacity: int = 500):
        super().__init__(source)
        self.rms_series = BoundedSeriesBuffer(series_capacity)
        self.pitch_series = BoundedSeriesBuffer(series_capacity)
        self.rms = 0.0
        self.pitch_hz = 0.0
        self.arousal = 0.0

    def _fallback_source(self) -> SignalSource:
        return SyntheticAudioSource()

    def tick(self, now_ms: float) -> None:
        reading: Optional[AudioReading] = self._read(now_ms)
        if reading is None:
            return
        smoothed = self._smooth(reading.arousal)
        with self._lock:
            self.rms = reading.rms_norm
            self.pitch_hz = reading.pitch_hz
            self.arousal = smoothed
            self.has_reading = True
        self.rms_series.push(now_ms, reading.rms_norm)
        self.pitch_series.push(now_ms, reading.pitch_hz)

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            return {"rms": self.rms, "pitchHz": self.pitch_hz, "arousal": self.arousal}


class FaceChannel(_Channel):
    """Face sampling channel; keeps the latest proxies with smoothed arousal."""
    modality = "face"

    def __init__(self, source: FaceSignalSource):
        super().__init__(source)
        self.proxies = FaceProxies()

    def _fallback_source(self) -> SignalSource:
        return SyntheticFaceSource()

    def tick(self, now_ms: float) -> None:
        raw: Optional[FaceProxies] = self._read(now_ms)
        if raw is None:
            return
        smoothed = self._smooth(raw.face_arousal)
        with self._lock:
            self.proxies = FaceProxies(
                smile_index=raw.smile_index,
                mouth_open=raw.mouth_open,
                brow_distance=raw.brow_distance,
                eye_aspect=raw.eye_aspect,
                face_arousal=smoothed,
            )
            self.has_reading = True

    def snapshot(self) -> FaceProxies:
        with self._lock:
            return self.proxies

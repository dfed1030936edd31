"""
Signal Source Interface Module

This module defines abstract interfaces for per-modality signal sources,
allowing the affect session to work with a device-backed source (fed by the
capture collaborator) or a synthetic fallback source interchangeably.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

from utils.face_proxies import FaceProxies


@dataclass
class AudioReading:
    """
    Standardized audio reading.

    Produced the same way whether the block came from a microphone or from
    the synthetic generator.
    """
    rms_norm: float  # Normalized energy (0-1)
    pitch_hz: float  # Coarse pitch estimate; 0 when unvoiced
    arousal: float  # Unsmoothed arousal proxy (0-1)

    def to_dict(self) -> Dict[str, float]:
        return {"rms": self.rms_norm, "pitchHz": self.pitch_hz, "arousal": self.arousal}


class SignalSource(ABC):
    """
    Abstract interface for signal sources.

    All sources (device-backed, synthetic) must implement this interface.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """
        Check if this source can currently produce readings.

        Returns:
            True if the source can be used, False otherwise
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        """
        Get the name of this source.

        Returns:
            String name (e.g., "microphone", "synthetic_audio")
        """
        pass

    @property
    def is_synthetic(self) -> bool:
        """True for fallback generators that do not reflect the user."""
        return False

    def close(self) -> None:
        """
        Clean up resources. Override if needed.

        Default implementation does nothing.
        """
        pass


class AudioSignalSource(SignalSource):
    """Source of audio readings."""

    @abstractmethod
    def read(self, now_ms: float) -> Optional[AudioReading]:
        """
        Produce the reading for this tick.

        Args:
            now_ms: Tick timestamp in milliseconds

        Returns:
            AudioReading, or None when no fresh data is available
        """
        pass


class FaceSignalSource(SignalSource):
    """Source of facial proxies."""

    @abstractmethod
    def read(self, now_ms: float) -> Optional[FaceProxies]:
        """
        Produce the facial proxies for this tick (face_arousal unsmoothed).

        Args:
            now_ms: Tick timestamp in milliseconds

        Returns:
            FaceProxies, or None when no fresh data is available
        """
        pass

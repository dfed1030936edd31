"""
Signal Capability Module

Decides, per modality, whether the session uses the device-backed source or
the synthetic fallback. The capture collaborator reports what it managed to
acquire (microphone permission, camera permission, landmarker loaded); the
runtime signal-mode preference can force either path.

Modes:
  "auto"      - device source when the device is available, synthetic otherwise
  "device"    - device source even if it never delivers data
  "synthetic" - synthetic source regardless of device availability
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import config

SOURCE_DEVICE = "device"
SOURCE_SYNTHETIC = "synthetic"

VALID_SIGNAL_MODES = ("auto", "device", "synthetic")

_PREFERENCE: Optional[str] = None


@dataclass
class ModalityCapability:
    """What the capture side reported for one session."""
    audio_available: bool = False
    camera_available: bool = False
    landmarker_ready: bool = True

    @property
    def face_available(self) -> bool:
        return self.camera_available and self.landmarker_ready


def get_signal_mode() -> str:
    """Return the current signal mode (preference or config default)."""
    mode = (_PREFERENCE or config.SIGNAL_MODE or "auto").lower()
    return mode if mode in VALID_SIGNAL_MODES else "auto"


def set_signal_mode(mode: str) -> str:
    """
    Set the signal mode. Valid: 'auto', 'device', 'synthetic'.
    Returns the validated mode that was set.
    """
    global _PREFERENCE
    m = (mode or "").strip().lower()
    if m not in VALID_SIGNAL_MODES:
        raise ValueError("mode must be 'auto', 'device', or 'synthetic'")
    _PREFERENCE = m
    return _PREFERENCE


def reset_signal_mode() -> None:
    """Drop the runtime preference and fall back to config.SIGNAL_MODE."""
    global _PREFERENCE
    _PREFERENCE = None


def recommend_source(device_available: bool, mode: Optional[str] = None) -> Tuple[str, str]:
    """
    Recommend "device" or "synthetic" for one modality.

    Returns:
        (source_kind, reason)
    """
    mode = (mode or get_signal_mode()).lower()
    if mode == "synthetic":
        return SOURCE_SYNTHETIC, "signal mode forced to synthetic"
    if mode == "device":
        return SOURCE_DEVICE, "signal mode forced to device"
    if device_available:
        return SOURCE_DEVICE, "device available"
    return SOURCE_SYNTHETIC, "device unavailable; using synthetic fallback"


def evaluate_capability(
    capability: ModalityCapability,
    mode: Optional[str] = None,
) -> Tuple[Tuple[str, str], Tuple[str, str]]:
    """
    Evaluate both modalities.

    Returns:
        ((audio_kind, audio_reason), (face_kind, face_reason))
    """
    audio = recommend_source(capability.audio_available, mode)
    if not capability.camera_available:
        face = recommend_source(False, mode)
    elif not capability.landmarker_ready:
        kind, reason = recommend_source(False, mode)
        face = (kind, "face landmarker unavailable; using synthetic fallback") if kind == SOURCE_SYNTHETIC else (kind, reason)
    else:
        face = recommend_source(True, mode)
    return audio, face

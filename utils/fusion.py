"""
Multimodal VAD fusion.

Combines one Frame of per-modality proxies into a Valence-Arousal-Dominance
estimate in [0, 1]^3:

- V: weighted blend of text valence (rescaled from [-1, 1]) and smile index
- A: weighted blend of audio arousal and facial arousal
- D: text dominance (rescaled), multiplied by its weight

V and A divide by their weight sum, so the weights act as a convex
combination whatever their magnitude. D has a single channel and its weight
is a damping multiplier instead; this asymmetry is kept as-is pending product
clarification.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, Optional

from utils.signal_math import clamp

# Axis value when both weights of a pair are zero (no signal => neutral)
NEUTRAL_AXIS = 0.5


@dataclass(frozen=True)
class Modality:
    """
    A proxy value that may be absent.

    Absent modalities contribute the neutral value (0 on their native scale)
    to fusion; that substitution happens in value_or_neutral() and nowhere
    else.
    """
    present: bool = False
    value: float = 0.0

    @classmethod
    def of(cls, value: Optional[float]) -> "Modality":
        if value is None:
            return cls()
        return cls(present=True, value=float(value))

    @classmethod
    def absent(cls) -> "Modality":
        return cls()

    def value_or_neutral(self, neutral: float = 0.0) -> float:
        if self.present:
            return self.value
        return neutral


@dataclass(frozen=True)
class Frame:
    """One tick's raw modality proxies, prior to fusion. t is in milliseconds."""
    t: float
    face_arousal: Modality = field(default_factory=Modality)
    audio_arousal: Modality = field(default_factory=Modality)
    text_valence: Modality = field(default_factory=Modality)
    text_dominance: Modality = field(default_factory=Modality)
    smile_index: Modality = field(default_factory=Modality)


@dataclass(frozen=True)
class VAD:
    """Fused affect estimate; each axis in [0, 1]."""
    v: float = 0.0
    a: float = 0.0
    d: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"v": self.v, "a": self.a, "d": self.d}


@dataclass(frozen=True)
class FusionWeights:
    """Relative influence of each modality. All weights must be finite and non-negative."""
    valence_rule: float = 0.6
    valence_smile: float = 0.4
    arousal_audio: float = 0.6
    arousal_face: float = 0.4
    dominance_text: float = 1.0

    def __post_init__(self):
        for name, value in self.to_dict().items():
            if not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
                raise ValueError(f"fusion weight {name} must be a finite non-negative number, got {value!r}")

    def to_dict(self) -> Dict[str, float]:
        return {
            "valenceRule": self.valence_rule,
            "valenceSmile": self.valence_smile,
            "arousalAudio": self.arousal_audio,
            "arousalFace": self.arousal_face,
            "dominanceText": self.dominance_text,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, float], base: Optional["FusionWeights"] = None) -> "FusionWeights":
        """Build weights from camelCase keys; missing keys come from base (or defaults)."""
        base = base or cls()
        return cls(
            valence_rule=float(data.get("valenceRule", base.valence_rule)),
            valence_smile=float(data.get("valenceSmile", base.valence_smile)),
            arousal_audio=float(data.get("arousalAudio", base.arousal_audio)),
            arousal_face=float(data.get("arousalFace", base.arousal_face)),
            dominance_text=float(data.get("dominanceText", base.dominance_text)),
        )


DEFAULT_WEIGHTS = FusionWeights()


def _weighted_pair(w1: float, x1: float, w2: float, x2: float) -> float:
    total = w1 + w2
    if total <= 0:
        return NEUTRAL_AXIS
    return clamp((w1 * x1 + w2 * x2) / total)


def fuse_vad(frame: Frame, weights: FusionWeights = DEFAULT_WEIGHTS) -> VAD:
    """
    Fuse a frame into a VAD triple.

    NaN anywhere resolves to 0 through clamp; a zero-sum weight pair yields
    the 0.5 midpoint for that axis.
    """
    # Identity mapping for now; nonlinear smile response would go here
    smile_mapped = clamp(frame.smile_index.value_or_neutral())
    valence_text = frame.text_valence.value_or_neutral() * 0.5 + 0.5
    v = _weighted_pair(weights.valence_rule, valence_text, weights.valence_smile, smile_mapped)
    a = _weighted_pair(
        weights.arousal_audio, frame.audio_arousal.value_or_neutral(),
        weights.arousal_face, frame.face_arousal.value_or_neutral(),
    )
    d = clamp((frame.text_dominance.value_or_neutral() * 0.5 + 0.5) * weights.dominance_text)
    return VAD(v=v, a=a, d=d)

"""
Facial expression proxies from blendshape-style scores.

The face-capture collaborator sends named scores in [0, 1] (MediaPipe
FaceLandmarker category names). These are folded into four bounded proxies
and an unsmoothed facial arousal value:

- smile_index: mean of left/right smile (AU12)
- mouth_open: max of mouth-open and jaw-open (AU25/26)
- brow_distance: 0.5 centered; inner-brow raise (AU1) pushes up, brow lowering (AU4) pushes down
- eye_aspect: eye openness, 1 minus mean blink score
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from utils.signal_math import clamp

# Arousal mix for real blendshapes: mouth activity, smile, eye closure
AROUSAL_MOUTH_WEIGHT = 0.4
AROUSAL_SMILE_WEIGHT = 0.4
AROUSAL_EYE_WEIGHT = 0.2


@dataclass
class FaceProxies:
    """Per-frame facial proxies, each in [0, 1]."""
    smile_index: float = 0.0
    mouth_open: float = 0.0
    brow_distance: float = 0.5
    eye_aspect: float = 0.5
    face_arousal: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "smileIndex": self.smile_index,
            "mouthOpen": self.mouth_open,
            "browDistance": self.brow_distance,
            "eyeAspect": self.eye_aspect,
            "faceArousal": self.face_arousal,
        }


def get_blend(scores: Optional[Mapping[str, float]], name: str) -> float:
    """Clamped score for a blendshape name; 0 when missing or non-numeric."""
    if not scores:
        return 0.0
    value = scores.get(name)
    if not isinstance(value, (int, float)):
        return 0.0
    return clamp(value, 0.0, 1.0)


def proxies_from_blendshapes(scores: Mapping[str, float]) -> FaceProxies:
    """
    Heuristic mapping from blendshape scores to FaceProxies.

    face_arousal is returned unsmoothed; the face channel applies the EMA.
    """
    smile = clamp((get_blend(scores, "mouthSmileLeft") + get_blend(scores, "mouthSmileRight")) / 2)
    mouth = max(get_blend(scores, "mouthOpen"), get_blend(scores, "jawOpen"))
    brow_down = (get_blend(scores, "browDownLeft") + get_blend(scores, "browDownRight")) / 2
    brow = clamp(0.5 + 0.5 * (get_blend(scores, "browInnerUp") - brow_down))
    eye = clamp(1 - (get_blend(scores, "eyeBlinkLeft") + get_blend(scores, "eyeBlinkRight")) / 2)
    arousal = clamp(
        AROUSAL_MOUTH_WEIGHT * mouth
        + AROUSAL_SMILE_WEIGHT * smile
        + AROUSAL_EYE_WEIGHT * (1 - eye)
    )
    return FaceProxies(
        smile_index=smile,
        mouth_open=mouth,
        brow_distance=brow,
        eye_aspect=eye,
        face_arousal=arousal,
    )

"""
Bucket classification and coaching-tip rotation.

A smoothed VAD triple is thresholded into one of four buckets. Each bucket
has a fixed, ordered catalog of three CBT-style tips (non-clinical). Tips
rotate round-robin per bucket; the rotation indices live in a
TipRotationState owned by the caller (one per session), so two sessions
never advance each other's tips.

Thresholds are asymmetric (0.4 low / 0.6 high), leaving a neutral dead zone
between them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List

from utils.fusion import VAD

LOW_VALENCE_THRESHOLD = 0.4
HIGH_VALENCE_THRESHOLD = 0.6
HIGH_AROUSAL_THRESHOLD = 0.6
HIGH_DOMINANCE_THRESHOLD = 0.6


class Bucket(Enum):
    """Discrete affect buckets derived from a VAD triple."""
    LOW_V_HIGH_A = "lowV_highA"
    LOW_V_LOW_A = "lowV_lowA"
    HIGH_V_HIGH_D = "highV_highD"
    NEUTRAL = "neutral"

    @classmethod
    def from_value(cls, value: str) -> "Bucket":
        """Parse a bucket tag such as 'lowV_highA'. Raises ValueError if unknown."""
        for bucket in cls:
            if bucket.value == value:
                return bucket
        raise ValueError(f"unknown bucket {value!r}; expected one of {[b.value for b in cls]}")


@dataclass(frozen=True)
class CbtTip:
    """One coaching suggestion: what we notice, and a small action."""
    bucket: Bucket
    insight: str
    action: str

    def to_dict(self) -> Dict[str, str]:
        return {"bucket": self.bucket.value, "insight": self.insight, "action": self.action}


def bucket_vad(v: float, a: float, d: float) -> Bucket:
    """Classify a VAD triple; rules are checked in order and the first match wins."""
    if v < LOW_VALENCE_THRESHOLD and a > HIGH_AROUSAL_THRESHOLD:
        return Bucket.LOW_V_HIGH_A
    if v < LOW_VALENCE_THRESHOLD and a <= HIGH_AROUSAL_THRESHOLD:
        return Bucket.LOW_V_LOW_A
    if v > HIGH_VALENCE_THRESHOLD and d > HIGH_DOMINANCE_THRESHOLD:
        return Bucket.HIGH_V_HIGH_D
    return Bucket.NEUTRAL


def _tips(bucket: Bucket, *pairs) -> List[CbtTip]:
    return [CbtTip(bucket=bucket, insight=insight, action=action) for insight, action in pairs]


TIPS: Dict[Bucket, List[CbtTip]] = {
    Bucket.LOW_V_HIGH_A: _tips(
        Bucket.LOW_V_HIGH_A,
        ("Noticing high activation with low mood.", "Try 4-7-8 breathing for 60s."),
        ("Thoughts may be racing.", "Write one worry, challenge it once."),
        ("Body signals of stress present.", "Scan body from head to toe, relax shoulders."),
    ),
    Bucket.LOW_V_LOW_A: _tips(
        Bucket.LOW_V_LOW_A,
        ("Low energy and low mood detected.", "Identify one 5-min pleasant activity today."),
        ("Motivation seems low.", "Set a tiny task: 2-min tidy up."),
        ("Slowed pace may appear.", "Step outside for fresh air for 3 mins."),
    ),
    Bucket.HIGH_V_HIGH_D: _tips(
        Bucket.HIGH_V_HIGH_D,
        ("Confidence toward goals detected.", "Break one goal into 3 sub-steps now."),
        ("Sense of agency present.", "Define a next action and a when."),
        ("Momentum available.", "Send a message to request support on your goal."),
    ),
    Bucket.NEUTRAL: _tips(
        Bucket.NEUTRAL,
        ("Balanced state.", "Reflect: what's one helpful thought just now?"),
        ("Stable moment.", "Note one strength you used today."),
        ("Even keel.", "Plan a small reward after this session."),
    ),
}


@dataclass
class TipRotationState:
    """Per-bucket rotation index. Mutated only by next_tip()."""
    indices: Dict[Bucket, int] = field(default_factory=lambda: {b: 0 for b in Bucket})

    def index_for(self, bucket: Bucket) -> int:
        return self.indices.get(bucket, 0)

    def reset(self) -> None:
        for bucket in Bucket:
            self.indices[bucket] = 0


def tips_for_bucket(bucket: Bucket) -> List[CbtTip]:
    """The fixed catalog for a bucket (a copy; the catalog itself is never mutated)."""
    return list(TIPS[bucket])


def next_tip(bucket: Bucket, state: TipRotationState) -> CbtTip:
    """
    Return the tip at the bucket's current index, then advance that index
    modulo the catalog length. Other buckets' indices are untouched.
    """
    catalog = TIPS[bucket]
    idx = state.index_for(bucket) % len(catalog)
    state.indices[bucket] = (idx + 1) % len(catalog)
    return catalog[idx]


def tip_for_vad(vad: VAD, state: TipRotationState) -> CbtTip:
    """Classify a VAD triple and rotate to the next tip for its bucket."""
    return next_tip(bucket_vad(vad.v, vad.a, vad.d), state)

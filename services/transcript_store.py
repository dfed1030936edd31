"""
In-memory store for transcript turns.

Accepts text turns from the transcript collaborator via add_turn(); each turn
is scored with utils.text_affect on arrival. Fusion reads the latest user
turn at or before a tick's timestamp. One store per session.
"""

import threading
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional, Tuple

from utils.text_affect import analyze_text_turn, token_frequencies

SPEAKER_USER = "User"
SPEAKER_COACH = "Coach"
VALID_SPEAKERS = (SPEAKER_USER, SPEAKER_COACH)

# Keep last N turns (a long session is a few hundred turns)
TRANSCRIPT_MAX_TURNS = 500


@dataclass(frozen=True)
class Turn:
    """One transcript turn with its lexical scores (valence, dominance in [-1, 1])."""
    id: str
    speaker: str
    text: str
    t: float
    valence: float
    dominance: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "speaker": self.speaker,
            "text": self.text,
            "t": self.t,
            # Stored on the [0, 1] VAD scale for reporting
            "vad": {"v": (self.valence + 1) / 2, "a": 0.5, "d": (self.dominance + 1) / 2},
        }


class TranscriptStore:
    """Thread-safe transcript for one session."""

    def __init__(self, max_turns: int = TRANSCRIPT_MAX_TURNS):
        self._turns: Deque[Turn] = deque(maxlen=max_turns)
        self._lock = threading.Lock()

    def add_turn(self, speaker: str, text: str, t: float) -> Turn:
        """
        Score and append a turn. Raises ValueError for an unknown speaker.
        """
        if speaker not in VALID_SPEAKERS:
            raise ValueError(f"speaker must be one of {VALID_SPEAKERS}, got {speaker!r}")
        affect = analyze_text_turn(text)
        turn = Turn(
            id=uuid.uuid4().hex[:8],
            speaker=speaker,
            text=text,
            t=float(t),
            valence=affect.valence,
            dominance=affect.dominance,
        )
        with self._lock:
            self._turns.append(turn)
        return turn

    def latest_user_turn_at(self, t: float) -> Optional[Turn]:
        """Most recent user turn with timestamp <= t, or None."""
        with self._lock:
            snap = list(self._turns)
        for turn in reversed(snap):
            if turn.speaker == SPEAKER_USER and turn.t <= t:
                return turn
        return None

    def turns(self) -> List[Turn]:
        with self._lock:
            return list(self._turns)

    def token_frequencies(self, limit: int = 50) -> List[Tuple[str, int]]:
        """Most frequent tokens over user turns."""
        return token_frequencies((tr.text for tr in self.turns() if tr.speaker == SPEAKER_USER), limit)

    def clear(self) -> None:
        with self._lock:
            self._turns.clear()

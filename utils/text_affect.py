"""
Lexical valence and dominance scoring for transcript turns.

Rule-based, not a sentiment model. Valence counts positive vs negative words
and divides by ceil(sqrt(token count)) so a single emotional word in a short
utterance does not saturate the scale. Dominance contrasts first-person
agency ("I", "my") with modal hedging ("should", "might").
"""

import math
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from utils.signal_math import clamp

POSITIVE_WORDS = frozenset({
    "good", "great", "love", "happy", "calm", "glad", "okay",
    "progress", "win", "proud", "thanks", "grateful",
})
NEGATIVE_WORDS = frozenset({
    "bad", "sad", "angry", "anxious", "stress", "worry", "tired",
    "stuck", "fail", "sorry", "fear",
})
FIRST_PERSON_WORDS = frozenset({"i", "i'm", "i've", "i'd", "me", "my", "mine"})
MODAL_WORDS = frozenset({"should", "must", "can't", "won't", "might", "could"})
# Two-token modal phrases, matched on adjacent tokens
MODAL_PHRASES = frozenset({("have", "to"), ("need", "to")})

_NON_WORD = re.compile(r"[^a-z0-9\s']")


@dataclass
class TextAffect:
    """Scores for one text turn: valence and dominance in [-1, 1]."""
    valence: float = 0.0
    dominance: float = 0.0
    tokens: List[str] = field(default_factory=list)


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens; apostrophes are kept so contractions stay whole."""
    return _NON_WORD.sub(" ", (text or "").lower()).split()


def _count_modals(tokens: List[str]) -> int:
    count = sum(1 for tok in tokens if tok in MODAL_WORDS)
    count += sum(1 for pair in zip(tokens, tokens[1:]) if pair in MODAL_PHRASES)
    return count


def analyze_text_turn(text: str) -> TextAffect:
    """
    Score a text turn.

    Returns:
        TextAffect with valence = clamp((pos - neg) / ceil(sqrt(n))) and
        dominance = clamp(first_person / n - modal / n), n = max(1, tokens).
    """
    tokens = tokenize(text)
    pos = sum(1 for tok in tokens if tok in POSITIVE_WORDS)
    neg = sum(1 for tok in tokens if tok in NEGATIVE_WORDS)
    first = sum(1 for tok in tokens if tok in FIRST_PERSON_WORDS)
    modal = _count_modals(tokens)
    total = max(1, len(tokens))
    valence = clamp((pos - neg) / math.ceil(math.sqrt(total)), -1.0, 1.0)
    dominance = clamp(first / total - modal / total, -1.0, 1.0)
    return TextAffect(valence=valence, dominance=dominance, tokens=tokens)


def token_frequencies(texts: Iterable[str], limit: int = 50) -> List[Tuple[str, int]]:
    """Most frequent tokens across texts, highest count first."""
    freq: Counter = Counter()
    for text in texts:
        freq.update(tokenize(text))
    return freq.most_common(limit)

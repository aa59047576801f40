"""
Heuristic confidence scoring for recognized text.

Used when the recognition engine reports no confidence of its own. The score
combines four signals: character mix, word lengths, whitespace ratio and
character repetition. Garbled OCR output tends to be heavy in symbols, made
of very short or very long "words", and full of repeated characters.
"""

import logging
import string
from dataclasses import dataclass
from typing import Dict

logger = logging.getLogger(__name__)

CHAR_WEIGHT = 0.40
WORD_WEIGHT = 0.30
WHITESPACE_WEIGHT = 0.15
REPETITION_WEIGHT = 0.15

MIN_SCORABLE_LENGTH = 5

_ASCII_PUNCTUATION = frozenset(string.punctuation)


@dataclass
class ConfidenceSignal:
    """Sub-scores of the heuristic, each in [0, 1]."""
    char_frequency: float
    word_length: float
    whitespace: float
    repetition: float

    @property
    def combined(self) -> float:
        total = (
            CHAR_WEIGHT * self.char_frequency
            + WORD_WEIGHT * self.word_length
            + WHITESPACE_WEIGHT * self.whitespace
            + REPETITION_WEIGHT * self.repetition
        )
        return min(1.0, max(0.0, total))

    def to_dict(self) -> Dict[str, float]:
        return {
            "char_frequency": self.char_frequency,
            "word_length": self.word_length,
            "whitespace": self.whitespace,
            "repetition": self.repetition,
            "combined": self.combined,
        }


# ============================================================================
# Sub-scores
# ============================================================================

def char_frequency_score(text: str) -> float:
    """Penalize unusual symbols, reward a healthy share of letters."""
    total = len(text)
    if total == 0:
        return 0.0

    special = sum(
        1 for c in text
        if not (c.isalnum() or c.isspace() or c in _ASCII_PUNCTUATION)
    )
    letters = sum(1 for c in text if c.isalpha())

    special_penalty = 1.0 - min(1.0, special / total * 10.0)
    letter_score = min(1.0, letters / total * 1.5)
    return special_penalty * 0.6 + letter_score * 0.4


def word_length_score(text: str) -> float:
    """Score the average word length and penalize runs of one-letter words."""
    words = text.split()
    if not words:
        return 0.5

    avg_length = sum(len(w) for w in words) / len(words)
    if avg_length < 2:
        avg_score = 0.3
    elif avg_length < 4:
        avg_score = 0.7
    elif avg_length <= 8:
        avg_score = 1.0
    elif avg_length <= 12:
        avg_score = 0.8
    else:
        avg_score = 0.4

    single_ratio = sum(1 for w in words if len(w) == 1) / len(words)
    single_penalty = 1.0 - min(0.5, single_ratio * 1.5)
    return avg_score * single_penalty


def whitespace_score(text: str) -> float:
    """Natural prose is roughly 11-25% whitespace."""
    if not text:
        return 0.0

    percent = sum(1 for c in text if c.isspace()) / len(text) * 100.0
    if percent <= 5:
        return 0.5
    if percent <= 10:
        return 0.8
    if percent <= 25:
        return 1.0
    if percent <= 40:
        return 0.7
    return 0.3


def longest_run(text: str) -> int:
    """Length of the longest run of one repeated non-whitespace character."""
    longest = 0
    current = 0
    previous = None
    for c in text:
        if c.isspace():
            current = 0
            previous = None
            continue
        current = current + 1 if c == previous else 1
        previous = c
        longest = max(longest, current)
    return longest


def repetition_score(text: str) -> float:
    """Penalize long runs of the same character (e.g. '|||||||')."""
    run = longest_run(text)
    if run <= 3:
        return 1.0
    if run <= 5:
        return 0.8
    if run <= 10:
        return 0.5
    return 0.2


# ============================================================================
# Scorer
# ============================================================================

class ConfidenceScorer:
    """
    Maps recognized text to a quality score in [0, 1].

    Example:
        scorer = ConfidenceScorer()
        scorer.score("The quick brown fox jumps over the lazy dog.")  # 1.0
    """

    def signal(self, text: str) -> ConfidenceSignal:
        return ConfidenceSignal(
            char_frequency=char_frequency_score(text),
            word_length=word_length_score(text),
            whitespace=whitespace_score(text),
            repetition=repetition_score(text),
        )

    def score(self, text: str) -> float:
        """
        Score recognized text. Never raises.

        Args:
            text: Recognized text

        Returns:
            0.0 for empty text, 0.5 for text too short to judge,
            otherwise the weighted heuristic score
        """
        if not text:
            return 0.0
        if len(text) < MIN_SCORABLE_LENGTH:
            return 0.5

        signal = self.signal(text)
        logger.debug(f"Heuristic confidence signal: {signal.to_dict()}")
        return signal.combined


def score_text(text: str) -> float:
    """Score ``text`` with a default ConfidenceScorer."""
    return ConfidenceScorer().score(text)

"""Rule-based keyword extraction from a transcript.

Tokenizes on whitespace after stripping punctuation, keeps significant words,
records up to two neighbors on each side as context, and ranks co-occurring
keywords per keyword. Also measures how much of a transcript is Bengali
script, which feeds the profile's language ratio.
"""

import re
from datetime import datetime

from persona.engine.lexicon import Lexicon
from persona.shared.models import KeywordEvent

PUNCTUATION_RE = re.compile(r"[।,.?!;:()\[\]{}]")
CONTEXT_RADIUS = 2
MAX_RELATED = 5

BENGALI_START = 0x0980
BENGALI_END = 0x09FF
BENGALI_DOMINANT = 80.0
BENGALI_MINOR = 20.0


def tokenize(text: str) -> list[str]:
    return PUNCTUATION_RE.sub(" ", text).split()


def _is_punctuation(code: int) -> bool:
    return (
        33 <= code <= 47
        or 58 <= code <= 64
        or 91 <= code <= 96
        or 123 <= code <= 126
        or code in (0x0964, 0x0965)  # danda, double danda
    )


def bengali_percentage(text: str) -> float:
    """Share of Bengali-script characters among non-space, non-punctuation ones."""
    total = 0
    bengali = 0
    for char in text:
        code = ord(char)
        if code > 32 and not _is_punctuation(code) and not char.isspace():
            total += 1
            if BENGALI_START <= code <= BENGALI_END:
                bengali += 1
    return bengali / total * 100 if total else 0.0


def detect_language(text: str) -> str:
    """``bn`` when mostly Bengali script, ``other`` when barely any, else ``mixed``."""
    percentage = bengali_percentage(text)
    if percentage >= BENGALI_DOMINANT:
        return "bn"
    if percentage <= BENGALI_MINOR:
        return "other"
    return "mixed"


class KeywordExtractor:
    """Extracts a ``KeywordEvent`` from transcript text using a lexicon."""

    def __init__(self, lexicon: Lexicon):
        self.lexicon = lexicon
        # meal and action words are kept whatever their length
        self.always_significant = lexicon.significant_words.union(lexicon.actions.values(), *lexicon.meals.values())

    def is_significant(self, word: str) -> bool:
        if word in self.lexicon.stop_words or len(word) < 2:
            return False
        if word in self.always_significant:
            return True
        return len(word) > 3

    def extract(self, transcript: str, now: datetime | None = None) -> KeywordEvent:
        now = now or datetime.now()
        tokens = tokenize(transcript)
        frequency: dict[str, int] = {}
        contexts: dict[str, list[str]] = {}

        for i, token in enumerate(tokens):
            if not self.is_significant(token):
                continue
            frequency[token] = frequency.get(token, 0) + 1
            lo = max(0, i - CONTEXT_RADIUS)
            hi = min(len(tokens), i + CONTEXT_RADIUS + 1)
            contexts.setdefault(token, []).extend(tokens[j] for j in range(lo, hi) if j != i)

        return KeywordEvent(
            timestamp=now,
            keywords=frequency,
            contexts=contexts,
            related_keywords=related_keywords(frequency, contexts),
            language_tag=detect_language(transcript),
        )


def related_keywords(frequency: dict[str, int], contexts: dict[str, list[str]]) -> dict[str, list[str]]:
    """Rank, per keyword, the other keywords found in its context.

    Most co-occurrences first, ties in first-seen order, at most five.
    """
    related = {}
    for keyword in frequency:
        context = contexts.get(keyword, [])
        counts = {}
        for other in frequency:
            if other == keyword:
                continue
            count = context.count(other)
            if count:
                counts[other] = count
        ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
        related[keyword] = [word for word, _ in ranked[:MAX_RELATED]]
    return related

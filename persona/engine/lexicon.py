"""Locale lexicons for meal detection, action items and keyword filtering.

A lexicon is a typed table validated when it is loaded. Lookups of words the
table does not know return ``None``; callers treat that as "not a meal word"
or "not an action word".

Two tables ship built in: ``bn`` (Bengali, the primary locale) and ``en``.
Additional locales load from JSON files shaped like ``Lexicon.to_dict()``.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from persona.shared.models import MealType

logger = logging.getLogger(__name__)


class LexiconError(ValueError):
    """Raised when a lexicon table is missing or malformed."""


@dataclass(frozen=True)
class Lexicon:
    """Word tables for one locale."""

    language: str
    meals: dict[MealType, frozenset[str]]
    actions: dict[str, str]  # English action verb -> local word, in priority order
    stop_words: frozenset[str] = field(default_factory=frozenset)
    significant_words: frozenset[str] = field(default_factory=frozenset)

    def meal_words(self, meal: MealType) -> frozenset[str]:
        return self.meals.get(meal, frozenset())

    def meal_for(self, word: str) -> MealType | None:
        for meal in MealType:
            if word in self.meals.get(meal, ()):
                return meal
        return None

    def action_for(self, word: str) -> str | None:
        """English action verb for a local word, or None for unknown words."""
        for action, local in self.actions.items():
            if local == word:
                return action
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "language": self.language,
            "meals": {m.value: sorted(words) for m, words in self.meals.items()},
            "actions": dict(self.actions),
            "stop_words": sorted(self.stop_words),
            "significant_words": sorted(self.significant_words),
        }


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) and v for v in value)


def _is_single_word(value: str) -> bool:
    return len(value.split()) == 1


def validate_lexicon(data: Any) -> list[str]:
    """Validate a raw lexicon dict. Returns list of error strings (empty = valid)."""
    if not isinstance(data, dict):
        return ["Lexicon must be a dict"]

    errors = []
    if not isinstance(data.get("language"), str) or not data.get("language"):
        errors.append("language must be a non-empty string")

    meals = data.get("meals")
    if not isinstance(meals, dict):
        errors.append("meals must be a dict")
    else:
        for meal in MealType:
            words = meals.get(meal.value)
            if not _is_str_list(words) or not words:
                errors.append(f"meals.{meal.value} must be a non-empty list of strings")
            elif not all(_is_single_word(w) for w in words):
                errors.append(f"meals.{meal.value} entries must be single words")
        unknown = set(meals) - {m.value for m in MealType}
        if unknown:
            errors.append(f"unknown meal types: {sorted(unknown)}")

    actions = data.get("actions")
    if not isinstance(actions, dict) or not actions:
        errors.append("actions must be a non-empty dict")
    elif not all(isinstance(k, str) and isinstance(v, str) and k and v for k, v in actions.items()):
        errors.append("actions must map non-empty strings to non-empty strings")
    elif not all(_is_single_word(v) for v in actions.values()):
        errors.append("action words must be single words")

    for key in ("stop_words", "significant_words"):
        value = data.get(key, [])
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            errors.append(f"{key} must be a list of strings")

    return errors


def lexicon_from_dict(data: dict[str, Any]) -> Lexicon:
    errors = validate_lexicon(data)
    if errors:
        raise LexiconError("; ".join(errors))
    return Lexicon(
        language=data["language"],
        meals={MealType(m): frozenset(words) for m, words in data["meals"].items()},
        actions=dict(data["actions"]),
        stop_words=frozenset(data.get("stop_words", [])),
        significant_words=frozenset(data.get("significant_words", [])),
    )


def load_lexicon(path: str | Path) -> Lexicon:
    """Load and validate a lexicon JSON file."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise LexiconError(f"Cannot read lexicon {path}: {e}") from e
    lexicon = lexicon_from_dict(data)
    logger.info(f"Loaded lexicon '{lexicon.language}' from {path}")
    return lexicon


BENGALI = lexicon_from_dict(
    {
        "language": "bn",
        "meals": {
            "breakfast": ["নাস্তা", "নাশতা", "ব্রেকফাস্ট"],
            "lunch": ["দুপুরের", "লাঞ্চ"],
            "dinner": ["রাতের", "ডিনার"],
        },
        "actions": {
            "buy": "কেনা",
            "sell": "বিক্রয়",
            "get": "নেওয়া",
            "book": "বই",
            "appointment": "অ্যাপয়েন্টমেন্ট",
            "meeting": "সভা",
            "call": "কল",
            "deadline": "সময়সীমা",
        },
        "stop_words": [
            "এবং", "তার", "একটি", "একটা", "করে", "হবে", "আছে",
            "তিনি", "আমি", "আমার", "তুমি", "তোমার", "আপনি", "আপনার",
            "তাদের", "আমরা", "আমাদের", "তোমরা", "তোমাদের", "আপনারা",
            "যে", "সে", "যা", "তা", "এই", "এটি", "এটা", "ওই", "ওটি", "ওটা",
        ],
        "significant_words": ["কেনা", "বই", "সভা", "কল", "দুধ", "ভাত", "চা"],
    }
)

ENGLISH = lexicon_from_dict(
    {
        "language": "en",
        "meals": {
            "breakfast": ["breakfast"],
            "lunch": ["lunch"],
            "dinner": ["dinner", "supper"],
        },
        "actions": {
            "buy": "buy",
            "sell": "sell",
            "get": "get",
            "book": "book",
            "appointment": "appointment",
            "meeting": "meeting",
            "call": "call",
            "deadline": "deadline",
        },
        "stop_words": [
            "the", "and", "that", "this", "with", "have", "will", "from",
            "they", "them", "there", "what", "your", "about", "would",
        ],
        "significant_words": ["buy", "get", "call", "book", "milk"],
    }
)

BUILTIN_LEXICONS = {"bn": BENGALI, "en": ENGLISH}


def get_lexicon(locale: str) -> Lexicon:
    try:
        return BUILTIN_LEXICONS[locale]
    except KeyError:
        raise LexiconError(f"No built-in lexicon for locale '{locale}'") from None

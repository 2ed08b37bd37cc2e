"""
String helpers shared by the answer handlers.

Normalization is case-insensitive, whitespace-collapsed and
diacritics-insensitive, so "Árbol " and "arbol" compare equal.
"""

from __future__ import annotations

import re
import unicodedata

# Letter and digit pairs commonly mirrored by young or dyslexic readers
MIRROR_PAIRS = {
    ("b", "d"), ("d", "b"),
    ("p", "q"), ("q", "p"),
    ("m", "w"), ("w", "m"),
    ("n", "u"), ("u", "n"),
    ("6", "9"), ("9", "6"),
}

_WHITESPACE = re.compile(r"\s+")
_EDGE_PUNCTUATION = ".,;:!?¡¿\"'"


def normalize_text(value: str) -> str:
    """Normalize free text for comparison."""
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    collapsed = _WHITESPACE.sub(" ", stripped).strip().casefold()
    return collapsed.strip(_EDGE_PUNCTUATION).strip()


def _token_reversal(answer: str, expected: str) -> bool:
    if answer == expected or not answer or not expected:
        return False

    # Whole token read backwards ("was" / "saw", "21" / "12")
    if len(answer) >= 2 and answer == expected[::-1]:
        return True

    if len(answer) != len(expected):
        return False

    diffs = [i for i, (x, y) in enumerate(zip(answer, expected)) if x != y]

    # Adjacent swap ("form" / "from")
    if len(diffs) == 2 and diffs[1] == diffs[0] + 1:
        i = diffs[0]
        if answer[i] == expected[i + 1] and answer[i + 1] == expected[i]:
            return True

    # Mirrored letters ("bog" / "dog")
    return all((answer[i], expected[i]) in MIRROR_PAIRS for i in diffs)


def is_character_reversal(answer: str, expected: str) -> bool:
    """
    Check if an answer differs from the expected one only by reversals.

    Reversal patterns: a token read backwards, one adjacent-character swap,
    or mirrored letters/digits. Multi-word answers qualify when every
    differing word is itself a reversal.
    """
    if _token_reversal(answer, expected):
        return True

    answer_words = answer.split(" ")
    expected_words = expected.split(" ")
    if len(answer_words) < 2 or len(answer_words) != len(expected_words):
        return False

    differing = [(a, e) for a, e in zip(answer_words, expected_words) if a != e]
    return bool(differing) and all(_token_reversal(a, e) for a, e in differing)


def is_word_transposition(answer: str, expected: str) -> bool:
    """Same words, different order."""
    answer_words = answer.split(" ")
    expected_words = expected.split(" ")
    return (
        len(expected_words) > 1
        and answer_words != expected_words
        and sorted(answer_words) == sorted(expected_words)
    )

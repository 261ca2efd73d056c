"""Title normalization and the cheap lexical prefilter."""

import re
from typing import Set

# Checked in order; the first suffix that leaves a two-letter stem wins.
TURKISH_SUFFIXES = (
    "ler", "lar", "leri", "ları", "de", "da", "den", "dan", "te", "ta",
    "ten", "tan", "e", "a", "ye", "ya", "i", "ı", "u", "ü", "si", "sı",
    "su", "sü", "nin", "nın", "nun", "nün", "in", "ın", "un", "ün",
    "yi", "yı", "yu", "yü", "deki", "daki", "teki", "taki",
    "mek", "mak", "miş", "mış", "muş", "müş", "ecek", "acak",
    "yor", "iyor", "ıyor", "uyor", "üyor", "di", "dı", "du", "dü",
    "ti", "tı", "tu", "tü", "se", "sa", "ise", "ısa",
)

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

MIN_STEM_INPUT = 4
MIN_STEM_LENGTH = 2
MIN_TOKEN_LENGTH = 3


def normalize_title(title: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace."""
    text = _PUNCTUATION.sub("", (title or "").lower())
    return _WHITESPACE.sub(" ", text).strip()


def stem(word: str) -> str:
    if len(word) < MIN_STEM_INPUT:
        return word
    for suffix in TURKISH_SUFFIXES:
        if word.endswith(suffix) and len(word) - len(suffix) >= MIN_STEM_LENGTH:
            return word[: -len(suffix)]
    return word


def title_tokens(title: str) -> Set[str]:
    return {stem(w) for w in normalize_title(title).split() if len(w) >= MIN_TOKEN_LENGTH}


def title_similarity(first: str, second: str) -> float:
    """Jaccard index of stemmed title tokens, 0 when either side is empty."""
    a = title_tokens(first)
    b = title_tokens(second)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)

"""Duplicate detection across sources."""

from .engine import BackfillStats, DeduplicationEngine, SimilarityMatch
from .judge import SimilarityJudge, SimilarityVerdict
from .lexical import normalize_title, stem, title_similarity

__all__ = [
    "BackfillStats",
    "DeduplicationEngine",
    "SimilarityJudge",
    "SimilarityMatch",
    "SimilarityVerdict",
    "normalize_title",
    "stem",
    "title_similarity",
]

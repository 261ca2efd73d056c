"""Watch keyword relevance analysis."""

from .analyzer import RelevanceJudge, RelevanceVerdict, WatchAnalyzer

__all__ = ["RelevanceJudge", "RelevanceVerdict", "WatchAnalyzer"]

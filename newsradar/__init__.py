"""News crawl, deduplication and watch-keyword pipeline."""

__version__ = "0.1.0"

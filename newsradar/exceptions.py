"""Exception hierarchy for the crawl pipeline."""


class NewsRadarError(Exception):
    """Base class for all pipeline errors."""


class FetchError(NewsRadarError):
    """A page could not be fetched by any strategy."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url


class FeedError(NewsRadarError):
    """A feed could not be fetched or parsed."""


class ExtractionError(NewsRadarError):
    """Configured selectors did not produce usable data."""


class LLMResponseError(NewsRadarError):
    """The language model returned an empty or non-JSON answer."""


class DuplicateArticleError(NewsRadarError):
    """An article with the same per-source hash already exists."""


class SourceNotFoundError(NewsRadarError):
    """The referenced source does not exist."""


class SourceNotActiveError(NewsRadarError):
    """The source is paused or in error and cannot be crawled."""

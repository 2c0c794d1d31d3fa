"""
Error taxonomy for feed adapters.

Every error raised while turning one source into items is a FeedError.
They are job-local: the worker logs them with the source and profile ids
and moves on to the next job.
"""


class FeedError(Exception):
    """Base exception for adapter failures."""


class InvalidOptionsError(FeedError):
    """The source does not carry the option field its provider needs."""

    def __init__(self, message: str = "Invalid source options"):
        super().__init__(message)


class FetchFailedError(FeedError):
    """Network failure, timeout or non-success response from a provider."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class InvalidFeedError(FeedError):
    """The fetched payload could not be parsed or has no title."""

    def __init__(self, message: str = "Invalid feed"):
        super().__init__(message)


class InvalidSourceTypeError(FeedError):
    """No adapter is registered for the source type."""

    def __init__(self, source_type: str):
        super().__init__(f"Invalid source type: {source_type!r}")
        self.source_type = source_type

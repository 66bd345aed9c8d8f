"""Application exception hierarchy.

Exception classes support two patterns:
1. No-argument raise: raise MatchingError()
2. Contextual attributes: err = LinkStoreError(key="x"); raise err
"""

from typing import Any


class ApplicationError(Exception):
    """Base exception for all application errors.

    Keyword arguments are stored as attributes for debugging.
    """

    def __init__(self, message: str = "", **kwargs: Any) -> None:
        if not message:
            message = self.__class__.__doc__ or "Application error occurred"
        super().__init__(message)
        for key, value in kwargs.items():
            setattr(self, key, value)


class MatchingError(ApplicationError):
    """Cross-venue matching failed."""


class PipelineNotRegisteredError(MatchingError, LookupError):
    """No pipeline is registered for the requested topic."""

    def __init__(self, topic: str, registered: tuple = ()) -> None:
        listing = ", ".join(str(item) for item in registered) or "none"
        super().__init__(f"No pipeline registered for topic {topic}. Registered: {listing}", topic=topic)


class SignalExtractionError(MatchingError, ValueError):
    """Topic signals could not be extracted from a market."""


class MarketSourceError(ApplicationError):
    """Markets could not be read from the market source."""


class LinkStoreError(ApplicationError):
    """A market link could not be read or written."""


class MarketDecodeError(MarketSourceError, ValueError):
    """A stored market record is malformed."""


# Failures the engine tolerates from pipeline callables; they skip one candidate or one pair.
SIGNAL_ERRORS = (SignalExtractionError, ValueError, KeyError, TypeError, AttributeError)


__all__ = [
    "ApplicationError",
    "LinkStoreError",
    "MarketDecodeError",
    "MarketSourceError",
    "MatchingError",
    "PipelineNotRegisteredError",
    "SIGNAL_ERRORS",
    "SignalExtractionError",
]

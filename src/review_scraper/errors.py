from __future__ import annotations


class ScrapeError(Exception):
    """Base class for failures contained to a single scrape job."""


class TransportError(ScrapeError):
    """The page could not be fetched (network or relay connection failure)."""


class MarkupError(ScrapeError):
    """The fetched body did not have the structure the parser expects."""


class UnsupportedPlatformError(ScrapeError):
    """The job URL belongs to none of the supported review sites."""

"""
Exception hierarchy for TenderWatch.

Stage code raises these; the scheduler and CLI decide whether an
error ends a run or only the current stage.
"""

from __future__ import annotations


class TenderWatchError(Exception):
    """Base class for all TenderWatch errors."""


class SourceError(TenderWatchError):
    """The tender source could not be read."""


class ListingUnavailableError(SourceError):
    """The listing page could not be loaded after all retries."""

    def __init__(self, url: str, attempts: int, cause: BaseException | None = None):
        self.url = url
        self.attempts = attempts
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Listing unavailable after {attempts} attempt(s) at {url}{detail}")


class PipelineAlreadyRunningError(TenderWatchError):
    """A pipeline run was requested while another one holds the guard."""

    def __init__(self, message: str = "Scraper is already running"):
        super().__init__(message)


class DeliveryError(TenderWatchError):
    """The email collaborator rejected or failed a send."""

"""
Backend base classes and data structures.

Defines the interface contract for page-loading backends.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class RequestSpec:
    """Parameters for a page load."""

    url: str
    timeout: float = 30.0
    wait_until: str = "domcontentloaded"  # load, domcontentloaded, networkidle
    wait_for: str | None = None  # selector that must appear before returning
    wait_for_timeout: float | None = None

    # Metadata for logging/debugging
    page_type: str | None = None  # "home", "listing"


@dataclass
class FetchResult:
    """Result of a fetch operation."""

    url: str
    final_url: str  # After redirects
    status_code: int
    html: str
    elapsed_ms: float
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    screenshot_path: str | None = None


class Backend(ABC):
    """Abstract base class for page-loading backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier."""

    @abstractmethod
    async def fetch(self, request: RequestSpec) -> FetchResult:
        """Load a URL and return the resulting document.

        Raises:
            BackendError: On unrecoverable fetch failure
        """

    async def close(self) -> None:
        """Clean up backend resources."""

    async def __aenter__(self) -> "Backend":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


class BackendError(Exception):
    """Base exception for backend errors."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.cause = cause


class BlockedError(BackendError):
    """Request blocked by anti-bot measures."""

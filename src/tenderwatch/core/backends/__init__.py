"""Backend implementations for loading and driving pages."""

from .base import (
    Backend,
    BackendError,
    BlockedError,
    FetchResult,
    RequestSpec,
)
from .playwright_backend import (
    ActionResult,
    BrowserError,
    ElementNotFound,
    NavigationTimeout,
    PlaywrightBackend,
)

__all__ = [
    # Base classes
    "Backend",
    "RequestSpec",
    "FetchResult",
    # Base errors
    "BackendError",
    "BlockedError",
    # Playwright backend
    "PlaywrightBackend",
    "ActionResult",
    "BrowserError",
    "NavigationTimeout",
    "ElementNotFound",
]

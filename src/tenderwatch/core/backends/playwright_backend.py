"""
Playwright Backend implementation for browser automation.

Provides async browser-based page loading with:
- JavaScript rendering
- Stealth mode for bot detection avoidance
- Click-driven pagination helpers
- Screenshot capture on errors
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .base import Backend, BackendError, BlockedError, FetchResult, RequestSpec

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Page, Playwright

logger = logging.getLogger(__name__)


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)


# =============================================================================
# Playwright-specific data structures
# =============================================================================


@dataclass
class ActionResult:
    """Result of a browser action."""

    success: bool
    action: str
    selector: str | None = None
    error: str | None = None
    screenshot_path: str | None = None


# =============================================================================
# Browser Error Classes
# =============================================================================


class BrowserError(BackendError):
    """Base exception for browser errors."""


class NavigationTimeout(BrowserError):
    """Page didn't load in time."""


class ElementNotFound(BrowserError):
    """Selector didn't match any element."""


# =============================================================================
# Stealth Script
# =============================================================================


STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {
    get: () => undefined
});

Object.defineProperty(navigator, 'plugins', {
    get: () => [
        { name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer' },
        { name: 'Chrome PDF Viewer', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai' },
        { name: 'Native Client', filename: 'internal-nacl-plugin' }
    ]
});

Object.defineProperty(navigator, 'languages', {
    get: () => ['en-IN', 'en-US', 'en']
});

window.chrome = {
    runtime: {},
    loadTimes: function() {},
    csi: function() {},
    app: {}
};
"""

# Reads the disabled state of a pagination control and its parent <li>
DISABLED_STATE_SCRIPT = """
(el, disabledClass) => {
    const own = (el.getAttribute('class') || '').split(/\\s+/);
    const parent = el.parentElement ? (el.parentElement.getAttribute('class') || '').split(/\\s+/) : [];
    return own.includes(disabledClass)
        || parent.includes(disabledClass)
        || el.getAttribute('aria-disabled') === 'true';
}
"""

TEXT_CHANGED_SCRIPT = """
([selector, previous]) => {
    const el = document.querySelector(selector);
    return !!el && el.textContent.trim() !== previous;
}
"""


# =============================================================================
# PlaywrightBackend Implementation
# =============================================================================


class PlaywrightBackend(Backend):
    """Playwright-based browser automation backend.

    One browser, one context, one page: the listing is traversed
    sequentially and pagination state lives in the page.
    """

    def __init__(
        self,
        headless: bool = True,
        timeout: float = 30.0,
        browser_type: str = "chromium",
        viewport_width: int = 1920,
        viewport_height: int = 1080,
        user_agent: str | None = None,
        stealth: bool = True,
        screenshots_path: Path | str | None = None,
        screenshots_on_error: bool = True,
    ):
        """Initialize Playwright backend.

        Args:
            headless: Run browser in headless mode
            timeout: Default timeout in seconds
            browser_type: Browser to use (chromium, firefox, webkit)
            viewport_width: Browser viewport width
            viewport_height: Browser viewport height
            user_agent: Custom user agent string
            stealth: Enable stealth mode for bot detection avoidance
            screenshots_path: Directory for error screenshots
            screenshots_on_error: Capture screenshots on errors
        """
        self.headless = headless
        self.timeout = timeout
        self.timeout_ms = int(timeout * 1000)
        self.browser_type = browser_type
        self.viewport_width = viewport_width
        self.viewport_height = viewport_height
        self.stealth = stealth
        self.screenshots_on_error = screenshots_on_error
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.screenshots_path = Path(screenshots_path or "data/screenshots")

        # Playwright objects (initialized on first use)
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def name(self) -> str:
        return "playwright"

    async def _ensure_browser(self) -> None:
        """Initialize browser if not already running."""
        if self._browser is not None and self._browser.is_connected():
            return

        self._playwright = await async_playwright().start()

        if self.browser_type == "firefox":
            browser_launcher = self._playwright.firefox
        elif self.browser_type == "webkit":
            browser_launcher = self._playwright.webkit
        else:
            browser_launcher = self._playwright.chromium

        launch_args: list[str] = []
        if self.stealth and self.browser_type == "chromium":
            launch_args = [
                "--disable-blink-features=AutomationControlled",
                "--disable-dev-shm-usage",
                "--no-sandbox",
                "--disable-setuid-sandbox",
                "--disable-infobars",
                "--disable-extensions",
                f"--window-size={self.viewport_width},{self.viewport_height}",
            ]

        try:
            self._browser = await browser_launcher.launch(headless=self.headless, args=launch_args)
        except PlaywrightError as e:
            raise BrowserError(
                f"Failed to launch {self.browser_type} browser. "
                f"Run: playwright install {self.browser_type}",
                cause=e,
            ) from e

        logger.info("Launched %s browser (headless=%s)", self.browser_type, self.headless)

    async def _ensure_context(self) -> BrowserContext:
        """Get or create the browser context."""
        await self._ensure_browser()

        if self._context is not None:
            return self._context

        assert self._browser is not None
        self._context = await self._browser.new_context(
            viewport={"width": self.viewport_width, "height": self.viewport_height},
            user_agent=self.user_agent,
            locale="en-IN",
            timezone_id="Asia/Kolkata",
            extra_http_headers={"Accept-Language": "en-IN,en;q=0.9"},
        )

        if self.stealth:
            await self._context.add_init_script(STEALTH_SCRIPT)

        return self._context

    async def _get_page(self) -> Page:
        """Get or create the single working page."""
        context = await self._ensure_context()

        if self._page is None or self._page.is_closed():
            self._page = await context.new_page()
            self._page.set_default_timeout(self.timeout_ms)

        return self._page

    async def _capture_screenshot(self, page: Page, prefix: str = "error") -> str | None:
        """Capture screenshot for debugging."""
        if not self.screenshots_on_error:
            return None

        try:
            self.screenshots_path.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filepath = self.screenshots_path / f"{prefix}_{timestamp}.png"
            await page.screenshot(path=str(filepath), full_page=True)
            logger.info("Screenshot saved: %s", filepath)
            return str(filepath)
        except PlaywrightError as e:
            logger.warning("Failed to capture screenshot: %s", e)
            return None

    async def fetch(self, request: RequestSpec) -> FetchResult:
        """Navigate to a URL and return the rendered document.

        Raises:
            NavigationTimeout: Navigation or ``wait_for`` timed out
            BlockedError: The portal answered with a blocking status
            BrowserError: Any other browser failure
        """
        page = await self._get_page()
        start_time = datetime.now()

        try:
            response = await page.goto(
                request.url,
                timeout=int(request.timeout * 1000),
                wait_until=request.wait_until,  # type: ignore[arg-type]
            )

            status_code = response.status if response else 200
            if status_code in {403, 406, 418, 429, 451}:
                await self._capture_screenshot(page, "blocked")
                raise BlockedError(
                    f"Request blocked with status {status_code}",
                    url=request.url,
                    status_code=status_code,
                )

            if request.wait_for:
                wait_timeout = request.wait_for_timeout or request.timeout
                await page.wait_for_selector(request.wait_for, timeout=int(wait_timeout * 1000))

            html = await page.content()
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000

            return FetchResult(
                url=request.url,
                final_url=page.url,
                status_code=status_code,
                html=html,
                elapsed_ms=elapsed_ms,
            )

        except BlockedError:
            raise
        except PlaywrightTimeoutError as e:
            await self._capture_screenshot(page, request.page_type or "timeout")
            raise NavigationTimeout(
                f"Navigation timeout: {request.url}",
                url=request.url,
                cause=e,
            ) from e
        except PlaywrightError as e:
            await self._capture_screenshot(page, request.page_type or "error")
            raise BrowserError(f"Browser error: {e}", url=request.url, cause=e) from e

    async def click(self, selector: str, timeout_ms: int | None = None) -> ActionResult:
        """Click the first element matching ``selector``."""
        page = await self._get_page()
        timeout = timeout_ms or self.timeout_ms

        try:
            await page.click(selector, timeout=timeout)
            return ActionResult(success=True, action="click", selector=selector)
        except PlaywrightError as e:
            screenshot_path = await self._capture_screenshot(page, "click_error")
            return ActionResult(
                success=False,
                action="click",
                selector=selector,
                error=str(e),
                screenshot_path=screenshot_path,
            )

    async def has_element(self, selector: str) -> bool:
        """Whether ``selector`` matches anything on the current page."""
        page = await self._get_page()
        return await page.query_selector(selector) is not None

    async def is_disabled(self, selector: str, disabled_class: str = "disabled") -> bool:
        """Whether the first match (or its parent) is marked disabled.

        Raises:
            ElementNotFound: Nothing matches ``selector``
        """
        page = await self._get_page()
        handle = await page.query_selector(selector)
        if handle is None:
            raise ElementNotFound(f"No element for {selector}", url=page.url)
        return bool(await handle.evaluate(DISABLED_STATE_SCRIPT, disabled_class))

    async def first_text(self, selector: str) -> str | None:
        """Trimmed text of the first match, or None."""
        page = await self._get_page()
        handle = await page.query_selector(selector)
        if handle is None:
            return None
        text = await handle.text_content()
        return text.strip() if text else ""

    async def wait_for_text_change(self, selector: str, previous: str | None, timeout_ms: int) -> bool:
        """Wait until the first match's text differs from ``previous``.

        Returns:
            False if the wait timed out
        """
        page = await self._get_page()
        try:
            await page.wait_for_function(TEXT_CHANGED_SCRIPT, arg=[selector, previous or ""], timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False

    async def sleep(self, ms: int) -> None:
        """Let the page settle for ``ms`` milliseconds."""
        page = await self._get_page()
        await page.wait_for_timeout(ms)

    async def get_page_content(self) -> str:
        """Get current page HTML content."""
        page = await self._get_page()
        return await page.content()

    async def get_page_url(self) -> str:
        """Get current page URL."""
        page = await self._get_page()
        return page.url

    async def close(self) -> None:
        """Close browser and clean up resources."""
        if self._page and not self._page.is_closed():
            await self._page.close()
        self._page = None

        if self._context:
            await self._context.close()
            self._context = None

        if self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

        logger.info("Playwright backend closed")

    async def __aenter__(self) -> "PlaywrightBackend":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

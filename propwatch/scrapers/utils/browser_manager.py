"""Playwright browser lifecycle manager with anti-detection.

Owns one headless Chromium process for the life of the process. Every
fetch gets its own isolated browser context (cookies, storage) that is
closed when the fetch ends, whatever the outcome.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, List, Optional

import structlog
from bs4 import BeautifulSoup
from playwright.async_api import (
    Browser,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)
from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt, wait_incrementing

from propwatch.config import settings
from propwatch.scrapers.utils.user_agents import ACCEPT_HTML, ACCEPT_LANGUAGE, get_random_user_agent

logger = structlog.get_logger(__name__)

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--disable-infobars",
    "--disable-extensions",
    "--window-size=1920,1080",
    "--lang=es-ES",
]

# Tried in order, first visible match is clicked
CONSENT_SELECTORS = [
    "button#didomi-notice-agree-button",
    "#onetrust-accept-btn-handler",
    "[data-testid='accept-cookies']",
    "button[id*='accept']",
    "button[class*='accept']",
    "button:has-text('Aceptar')",
    "button:has-text('Acepto')",
    "button:has-text('Accept')",
    ".didomi-continue-without-agreeing",
]

# Fractions of the page height, then back to the top
SCROLL_STAGES = [0.25, 0.5, 0.75, 1.0]
SCROLL_PAUSE_MS = 500
SCROLL_BOTTOM_PAUSE_MS = 2000
CONSENT_PAUSE_MS = 1000

# Mask automation signals before any page script runs
STEALTH_JS = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['es-ES', 'es', 'en'] });
Object.defineProperty(navigator, 'platform', { get: () => 'Win32' });
window.chrome = { runtime: {} };
delete window.cdc_adoQpoasnfa76pfcZLmcfl_Array;
delete window.cdc_adoQpoasnfa76pfcZLmcfl_Promise;
delete window.cdc_adoQpoasnfa76pfcZLmcfl_Symbol;
"""


class BrowserSessionManager:
    """Manages one shared Chromium process and hands out isolated sessions.

    The browser is launched lazily on first use under a lock, relaunched
    if it disconnects, and closed exactly once by shutdown(). Use it as an
    async context manager to guarantee shutdown on every exit path.
    """

    def __init__(
        self,
        headless: bool = True,
        navigation_timeout_ms: int = 60000,
        settle_ms: int = 5000,
        selector_timeout_ms: int = 10000,
        max_retries: int = 3,
        retry_base_delay: float = 2.0,
        playwright_factory: Callable = async_playwright,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._headless = headless
        self.navigation_timeout_ms = navigation_timeout_ms
        self.settle_ms = settle_ms
        self.selector_timeout_ms = selector_timeout_ms
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._playwright_factory = playwright_factory
        self._sleep = sleep
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "BrowserSessionManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def _ensure_browser(self) -> Browser:
        """Return the shared browser, launching it on first use."""
        if self.is_running:
            return self._browser

        async with self._lock:
            # Another task may have launched it while we waited
            if self.is_running:
                return self._browser

            if self._browser is not None or self._playwright is not None:
                logger.warning("browser_disconnected_relaunching")
                await self._close_locked()

            logger.info("browser_starting", headless=self._headless)
            self._playwright = await self._playwright_factory().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self._headless,
                args=LAUNCH_ARGS,
            )
            logger.info("browser_started")
            return self._browser

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Page]:
        """Borrow a page in a fresh, isolated browser context.

        The context is closed when the block exits, including on errors.
        """
        browser = await self._ensure_browser()
        context = await browser.new_context(
            user_agent=get_random_user_agent(),
            viewport={"width": 1920, "height": 1080},
            locale="es-ES",
            timezone_id="Europe/Madrid",
            java_script_enabled=True,
            extra_http_headers={
                "Accept": ACCEPT_HTML,
                "Accept-Language": ACCEPT_LANGUAGE,
                "Upgrade-Insecure-Requests": "1",
            },
        )
        try:
            await context.add_init_script(STEALTH_JS)
            page = await context.new_page()
            page.set_default_timeout(self.navigation_timeout_ms)
            yield page
        finally:
            try:
                await context.close()
            except PlaywrightError as e:
                logger.warning("browser_context_close_failed", error=str(e))

    async def fetch_page(self, url: str, wait_for: Optional[str] = None) -> Optional[BeautifulSoup]:
        """Render a page and return its parsed HTML.

        Args:
            url: Page to load
            wait_for: Optional comma-separated CSS selectors; the first one to
                appear ends the wait. Missing selectors are logged, not fatal.

        Returns:
            Parsed document, or None if anything went wrong
        """
        try:
            async with self.session() as page:
                logger.debug("navigating", url=url)
                await page.goto(url, wait_until="networkidle", timeout=self.navigation_timeout_ms)

                await self._dismiss_consent(page)
                await page.wait_for_timeout(self.settle_ms)

                if wait_for:
                    await self._wait_for_any(page, wait_for, url)

                await self._scroll(page)
                html = await page.content()

            logger.debug("page_fetched", url=url, html_length=len(html))
            return BeautifulSoup(html, "html.parser")
        except Exception as e:
            logger.error("fetch_page_failed", url=url, error=str(e), exc_info=True)
            return None

    async def fetch_page_with_retry(
        self,
        url: str,
        wait_for: Optional[str] = None,
        max_retries: Optional[int] = None,
    ) -> Optional[BeautifulSoup]:
        """fetch_page() with linear backoff (attempt * base delay) between tries.

        Returns:
            First successful document, or None once retries are exhausted

        Raises:
            ValueError: If max_retries is below 1
        """
        attempts = self.max_retries if max_retries is None else max_retries
        if attempts < 1:
            raise ValueError(f"max_retries must be at least 1, got {attempts}")
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_incrementing(start=self.retry_base_delay, increment=self.retry_base_delay),
            retry=retry_if_result(lambda document: document is None),
            before_sleep=_log_retry(attempts),
            retry_error_callback=_give_up,
            sleep=self._sleep,
        )
        return await retrying(self.fetch_page, url, wait_for)

    async def shutdown(self) -> None:
        """Close the browser and Playwright driver. Safe to call repeatedly."""
        async with self._lock:
            if self._browser is None and self._playwright is None:
                return
            logger.info("browser_stopping")
            await self._close_locked()
            logger.info("browser_stopped")

    async def _close_locked(self) -> None:
        # Caller holds self._lock
        browser, playwright = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        if browser is not None:
            try:
                await browser.close()
            except PlaywrightError as e:
                logger.warning("browser_close_failed", error=str(e))
        if playwright is not None:
            try:
                await playwright.stop()
            except PlaywrightError as e:
                logger.warning("playwright_stop_failed", error=str(e))

    async def _dismiss_consent(self, page: Page) -> None:
        for selector in CONSENT_SELECTORS:
            try:
                button = page.locator(selector).first
                if await button.is_visible():
                    await button.click()
                    logger.debug("consent_dismissed", selector=selector)
                    await page.wait_for_timeout(CONSENT_PAUSE_MS)
                    return
            except PlaywrightError:
                continue
        logger.debug("consent_dialog_not_found")

    async def _wait_for_any(self, page: Page, wait_for: str, url: str) -> None:
        selectors: List[str] = [s.strip() for s in wait_for.split(",") if s.strip()]
        if not selectors:
            return
        try:
            # A CSS selector list matches whichever element shows up first
            await page.wait_for_selector(", ".join(selectors), timeout=self.selector_timeout_ms)
        except PlaywrightTimeoutError:
            logger.warning("wait_selectors_not_found", url=url, selectors=selectors)

    async def _scroll(self, page: Page) -> None:
        """Scroll down in stages and back up to trigger lazy-loaded cards."""
        try:
            for fraction in SCROLL_STAGES:
                await page.evaluate(f"window.scrollTo(0, document.body.scrollHeight * {fraction})")
                pause = SCROLL_BOTTOM_PAUSE_MS if fraction == 1.0 else SCROLL_PAUSE_MS
                await page.wait_for_timeout(pause)
            await page.evaluate("window.scrollTo(0, 0)")
            await page.wait_for_timeout(SCROLL_PAUSE_MS)
        except PlaywrightError as e:
            logger.debug("scroll_failed", error=str(e))


def _log_retry(max_retries: int) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        logger.warning(
            "fetch_retry",
            url=retry_state.args[0] if retry_state.args else None,
            attempt=retry_state.attempt_number,
            max_retries=max_retries,
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        )

    return before_sleep


def _give_up(retry_state: RetryCallState) -> None:
    logger.warning(
        "fetch_gave_up",
        url=retry_state.args[0] if retry_state.args else None,
        attempts=retry_state.attempt_number,
    )
    return None


_browser_manager: Optional[BrowserSessionManager] = None


def get_browser_manager() -> BrowserSessionManager:
    """Get the global BrowserSessionManager singleton."""
    global _browser_manager
    if _browser_manager is None:
        _browser_manager = BrowserSessionManager(
            headless=settings.BROWSER_HEADLESS,
            navigation_timeout_ms=settings.BROWSER_NAVIGATION_TIMEOUT_MS,
            settle_ms=settings.BROWSER_SETTLE_MS,
            selector_timeout_ms=settings.BROWSER_SELECTOR_TIMEOUT_MS,
            max_retries=settings.FETCH_MAX_RETRIES,
            retry_base_delay=settings.FETCH_RETRY_BASE_DELAY_S,
        )
    return _browser_manager

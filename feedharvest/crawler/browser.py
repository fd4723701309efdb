"""
Browser session capability and its Playwright adapter.

The crawl loop and the login flow only talk to ``BrowserSession``; the
Playwright adapter is the one production implementation.
"""

import random
from typing import Any, Optional, Protocol, Sequence

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from feedharvest.core.logging import get_logger

logger = get_logger(__name__)

LAUNCH_ARGS = ("--no-sandbox", "--disable-setuid-sandbox", "--disable-gpu")


class BrowserSession(Protocol):
    """One live browser page."""

    @property
    def url(self) -> str:
        ...

    async def navigate(self, url: str, timeout_ms: int = 45_000) -> None:
        ...

    async def wait_for(self, selector: str, timeout_ms: int = 30_000, visible: bool = False) -> bool:
        ...

    async def type(self, selector: str, text: str) -> None:
        ...

    async def press_enter(self) -> None:
        ...

    async def evaluate(self, script: str) -> Any:
        ...

    async def scroll_by_viewport(self) -> None:
        ...

    async def set_viewport(self, width: int, height: int) -> None:
        ...

    async def pause(self, ms: int) -> None:
        ...

    async def close(self) -> None:
        ...


class PlaywrightBrowserSession:
    """BrowserSession over a Playwright chromium page."""

    def __init__(self, playwright: Playwright, browser: Browser, context: BrowserContext, page: Page):
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self._closed = False

    @classmethod
    async def launch(
        cls,
        headless: bool = True,
        user_agent: Optional[str] = None,
        args: Sequence[str] = LAUNCH_ARGS,
    ) -> "PlaywrightBrowserSession":
        """
        Start chromium and open one page.

        Args:
            headless: Run without a visible window
            user_agent: User agent for the browser context
            args: Extra chromium command line flags
        """
        pw = await async_playwright().start()
        try:
            browser = await pw.chromium.launch(headless=headless, args=list(args))
            context = await browser.new_context(user_agent=user_agent, locale="en-US")
            await context.add_init_script("Object.defineProperty(navigator, 'webdriver', {get: () => undefined});")
            page = await context.new_page()
        except Exception:
            await pw.stop()
            raise
        logger.info(f"Browser launched (headless={headless})")
        return cls(pw, browser, context, page)

    @property
    def url(self) -> str:
        return self._page.url

    async def navigate(self, url: str, timeout_ms: int = 45_000) -> None:
        logger.debug(f"[nav] {url}")
        await self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)

    async def wait_for(self, selector: str, timeout_ms: int = 30_000, visible: bool = False) -> bool:
        """Wait for ``selector``; a timeout degrades to False instead of raising."""
        state = "visible" if visible else "attached"
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms, state=state)
            return True
        except PlaywrightTimeoutError:
            logger.debug(f"Selector not found within {timeout_ms}ms: {selector}")
            return False

    async def type(self, selector: str, text: str) -> None:
        await self._page.type(selector, text, delay=random.randint(40, 90))

    async def press_enter(self) -> None:
        await self._page.keyboard.press("Enter")

    async def evaluate(self, script: str) -> Any:
        return await self._page.evaluate(script)

    async def scroll_by_viewport(self) -> None:
        await self._page.evaluate("() => window.scrollBy(0, window.innerHeight)")

    async def set_viewport(self, width: int, height: int) -> None:
        await self._page.set_viewport_size({"width": width, "height": height})

    async def pause(self, ms: int) -> None:
        await self._page.wait_for_timeout(ms)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for closer in (self._context.close, self._browser.close, self._playwright.stop):
            try:
                await closer()
            except Exception as e:
                # Browser may already be gone after a crash
                logger.debug(f"Ignoring error during browser shutdown: {e}")
        logger.info("Browser closed")

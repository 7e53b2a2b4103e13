"""Attach to an already-running Chromium over CDP.

The browser is started by the user (for example with
``--remote-debugging-port=9222``) and stays theirs: attaching never launches
a browser, and leaving only disconnects.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from playwright.async_api import async_playwright

from problemsnap.common.exceptions import BrowserSetupException

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from playwright.async_api import Browser, BrowserContext, Page

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://localhost:9222"


@asynccontextmanager
async def connect_over_cdp(
    endpoint_url: str = DEFAULT_ENDPOINT,
    timeout: float = 30000,
) -> AsyncIterator[Browser]:
    """Attach to a running browser as an async context manager.

    Args:
        endpoint_url: CDP endpoint of the running browser.
        timeout: Connection timeout in milliseconds.

    Yields:
        The connected Browser.

    Example:
        async with connect_over_cdp("http://localhost:9222") as browser:
            context = first_context(browser, "http://localhost:9222")
    """
    logger.info(f"Connecting to existing browser at: {endpoint_url}")
    playwright = await async_playwright().start()
    try:
        browser = await playwright.chromium.connect_over_cdp(
            endpoint_url, timeout=timeout
        )
        try:
            yield browser
        finally:
            await browser.close()
            logger.info("Disconnected from the browser session.")
    finally:
        await playwright.stop()


def first_context(
    browser: Browser, endpoint_url: str | None = None
) -> BrowserContext:
    """Return the browser's first context (the user's main window).

    Raises:
        BrowserSetupException: If the browser has no context.
    """
    contexts = browser.contexts
    if not contexts:
        raise BrowserSetupException(
            "Could not find an active browser context. Please ensure your "
            "browser is running and has at least one tab open.",
            endpoint_url,
        )
    logger.info("Successfully attached to the main browser context.")
    return contexts[0]


async def first_page(
    context: BrowserContext,
    create: bool = False,
    endpoint_url: str | None = None,
) -> Page:
    """Return the context's first tab, optionally opening one if none exists.

    Args:
        context: The attached browser context.
        create: Open a new page when the context has none.
        endpoint_url: Endpoint for error messages.

    Raises:
        BrowserSetupException: If there is no page and ``create`` is False.
    """
    pages = context.pages
    if pages:
        return pages[0]
    if create:
        return await context.new_page()
    raise BrowserSetupException(
        "No active page found. Make sure a tab is open in Chrome.",
        endpoint_url,
    )


async def attach_inspector(endpoint_url: str = DEFAULT_ENDPOINT) -> None:
    """Attach to the first tab and open the Playwright Inspector.

    Blocks until the Inspector is resumed or closed. Use its "Pick locator"
    button to find selectors for new steps.
    """
    async with connect_over_cdp(endpoint_url) as browser:
        context = first_context(browser, endpoint_url)
        page = await first_page(context, endpoint_url=endpoint_url)
        logger.info("Successfully attached. Opening Playwright Inspector...")
        logger.info(
            'Use the "Pick Locator" button in the Inspector to find elements.'
        )
        await page.pause()

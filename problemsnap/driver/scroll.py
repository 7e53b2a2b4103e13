"""Scroll an infinite list until its loading indicator stays gone.

The problem list has no total-count signal. The only evidence that more
rows are coming is a transient "loading" image that flashes while the next
page of results is fetched. A single "not visible" sample is unreliable
(the indicator flickers), so the list is only considered complete after a
run of consecutive negative samples.

The algorithm itself is written against two async callables so it can be
driven by anything; scroll_page_until_stable() binds it to a Playwright
page.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)

DEFAULT_LOADER_SELECTOR = 'img[alt="loading..."]'

_SCROLL_TO_END_JS = "() => window.scrollTo(0, document.body.scrollHeight)"


class ScrollOutcome(str, Enum):
    """How a scroll loop ended."""

    STABLE = "stable"
    INCONCLUSIVE = "inconclusive"


@dataclass(frozen=True)
class ScrollOptions:
    """Tunables for scroll_until_stable().

    Attributes:
        interval_ms: Delay between samples in milliseconds.
        confirmations_required: Consecutive "not visible" samples needed to
            declare the end of the list.
        verbose: Log every negative confirmation at INFO instead of DEBUG.
        probe_timeout_ms: Upper bound on a single visibility probe. A probe
            that takes longer counts as "not visible".
        max_rounds: Maximum number of samples before giving up with an
            inconclusive outcome. None means no limit.
    """

    interval_ms: int = 10
    confirmations_required: int = 5
    verbose: bool = True
    probe_timeout_ms: int = 50
    max_rounds: int | None = 1000

    def __post_init__(self) -> None:
        if self.confirmations_required < 1:
            raise ValueError("confirmations_required must be at least 1")
        if self.max_rounds is not None and self.max_rounds < 1:
            raise ValueError("max_rounds must be at least 1 or None")


@dataclass(frozen=True)
class ScrollResult:
    """Result of a scroll loop.

    Attributes:
        outcome: STABLE when the confirmation threshold was reached,
            INCONCLUSIVE when max_rounds ran out first.
        samples: Number of visibility samples taken.
        confirmations: Consecutive negative samples at exit.
    """

    outcome: ScrollOutcome
    samples: int
    confirmations: int

    @property
    def is_stable(self) -> bool:
        return self.outcome is ScrollOutcome.STABLE


async def scroll_until_stable(
    scroll_to_end: Callable[[], Awaitable[object]],
    loader_visible: Callable[[], Awaitable[bool]],
    options: ScrollOptions | None = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> ScrollResult:
    """Scroll repeatedly until the loader is absent for enough samples in a row.

    Each round scrolls to the current end of the list, then samples the
    loader. A visible loader resets the confirmation counter to zero; an
    absent loader increments it. The loop ends as soon as the counter
    reaches ``options.confirmations_required``, so a list that is already
    fully loaded exits after exactly that many samples.

    Args:
        scroll_to_end: Scrolls the viewport to its current maximum extent.
        loader_visible: Reports whether the loading indicator is visible.
            Should return promptly; see scroll_page_until_stable() for a
            bounded Playwright probe.
        options: Loop tunables. Defaults to ScrollOptions().
        sleep: Awaitable sleep taking seconds.

    Returns:
        A ScrollResult. The outcome is INCONCLUSIVE if ``max_rounds``
        samples were taken without reaching the threshold.
    """
    opts = options or ScrollOptions()
    log = logger.info if opts.verbose else logger.debug
    required = opts.confirmations_required
    confirmations = 0
    samples = 0

    log(f"[scroll] Starting scroll with {required} confirmations required.")

    while True:
        await scroll_to_end()
        visible = await loader_visible()
        samples += 1

        if visible:
            confirmations = 0
        else:
            confirmations += 1
            log(
                f"[scroll] Round {samples}: loader not visible. "
                f"Confirmations: {confirmations}/{required}"
            )

        if confirmations >= required:
            log(f"[scroll] Confirmed end of list after {samples} samples.")
            return ScrollResult(ScrollOutcome.STABLE, samples, confirmations)

        if opts.max_rounds is not None and samples >= opts.max_rounds:
            logger.warning(
                f"[scroll] Giving up after {samples} samples without "
                f"{required} consecutive confirmations."
            )
            return ScrollResult(
                ScrollOutcome.INCONCLUSIVE, samples, confirmations
            )

        await sleep(opts.interval_ms / 1000.0)


async def scroll_page_until_stable(
    page: Page,
    loader_selector: str = DEFAULT_LOADER_SELECTOR,
    options: ScrollOptions | None = None,
) -> ScrollResult:
    """Run scroll_until_stable() against a live Playwright page.

    Args:
        page: The page showing the infinite list.
        loader_selector: Selector for the loading indicator.
        options: Loop tunables. Defaults to ScrollOptions().

    Returns:
        The ScrollResult of the loop.
    """
    opts = options or ScrollOptions()
    loader = page.locator(loader_selector)

    async def scroll_to_end() -> None:
        await page.evaluate(_SCROLL_TO_END_JS)

    async def loader_visible() -> bool:
        try:
            return await asyncio.wait_for(
                loader.is_visible(), timeout=opts.probe_timeout_ms / 1000.0
            )
        except asyncio.TimeoutError:
            return False

    return await scroll_until_stable(scroll_to_end, loader_visible, opts)

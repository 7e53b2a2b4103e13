"""Best-effort UI steps performed on a problem page before capture.

A step clicks one element and optionally waits for content that the click
reveals. Steps are optional: a page without a "SQL Schema" button is still
worth capturing. Rather than suppressing exceptions inline, run_step()
reports which branch was taken so callers and tests can tell a missing
element from an unexpected failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Literal

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

if TYPE_CHECKING:
    from playwright.async_api import Locator, Page

logger = logging.getLogger(__name__)


class StepOutcome(str, Enum):
    """Which branch a best-effort step took."""

    PERFORMED = "performed"
    SKIPPED_NOT_FOUND = "skipped-not-found"
    FAILED = "failed"


@dataclass(frozen=True)
class WaitForSelector:
    """Wait for a selector after a step's click.

    Attributes:
        selector: CSS selector to wait for.
        state: State to wait for ('attached', 'detached', 'visible', 'hidden').
        timeout: Timeout in milliseconds.
    """

    selector: str
    state: Literal["attached", "detached", "hidden", "visible"] = "visible"
    timeout: int = 10000


@dataclass(frozen=True)
class ClickStep:
    """Click an element, then optionally wait for what it reveals.

    Attributes:
        name: Label used in log lines and results, e.g. "Companies".
        selector: Playwright selector of the element to click.
        pick: Which match to click when the selector matches several
            elements. None requires a unique match.
        timeout: Click timeout in milliseconds.
        wait_for: Optional condition awaited after the click.
    """

    name: str
    selector: str
    pick: Literal["first", "last"] | None = None
    timeout: int = 5000
    wait_for: WaitForSelector | None = None


@dataclass(frozen=True)
class StepResult:
    step: str
    outcome: StepOutcome
    error: str | None = None


SQL_SCHEMA_STEP = ClickStep(
    name="SQL Schema",
    selector='div:has-text("SQL Schema")',
    pick="last",
)

TOPICS_STEP = ClickStep(
    name="Topics",
    selector='div.group:has-text("Topics")',
    wait_for=WaitForSelector('a[href*="/tag/"]'),
)

COMPANIES_STEP = ClickStep(
    name="Companies",
    selector='div.group:has-text("Companies")',
    wait_for=WaitForSelector('a[href*="/company/"]'),
)

DEFAULT_STEPS: tuple[ClickStep, ...] = (SQL_SCHEMA_STEP, COMPANIES_STEP)


def _target(page: Page, step: ClickStep) -> Locator:
    locator = page.locator(step.selector)
    if step.pick == "first":
        return locator.first
    if step.pick == "last":
        return locator.last
    return locator


async def run_step(page: Page, step: ClickStep, label: str) -> StepResult:
    """Perform one best-effort step.

    Args:
        page: The page to act on.
        step: The step to perform.
        label: Identity of the item being processed, for log lines.

    Returns:
        PERFORMED if the click (and wait) succeeded, SKIPPED_NOT_FOUND if an
        element did not show up in time, FAILED for any other Playwright
        error. Non-Playwright exceptions propagate.
    """
    try:
        await _target(page, step).click(timeout=step.timeout)
        logger.info(f'   -> Clicked "{step.name}" for "{label}"')

        if step.wait_for is not None:
            await page.wait_for_selector(
                step.wait_for.selector,
                state=step.wait_for.state,
                timeout=step.wait_for.timeout,
            )
            logger.info(f'   -> "{step.name}" content loaded for "{label}"')

    except PlaywrightTimeoutError as e:
        logger.info(
            f'   -> INFO: "{step.name}" not found or no data loaded for "{label}".'
        )
        return StepResult(step.name, StepOutcome.SKIPPED_NOT_FOUND, str(e))

    except PlaywrightError as e:
        logger.warning(f'   -> "{step.name}" failed for "{label}": {e.message}')
        return StepResult(step.name, StepOutcome.FAILED, e.message)

    return StepResult(step.name, StepOutcome.PERFORMED)


async def run_steps(
    page: Page, steps: tuple[ClickStep, ...] | list[ClickStep], label: str
) -> list[StepResult]:
    """Run steps in order; a skipped or failed step does not stop the rest."""
    return [await run_step(page, step, label) for step in steps]

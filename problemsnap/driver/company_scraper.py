"""Scrape the problem list of every company filter on the problemset page.

For each company the scraper applies the company filter, waits for the
GraphQL response that carries the filtered list, scrolls the infinite list
until its loading indicator stays gone, reads the rendered rows and writes
them to ``<output_dir>/<company>.json``.

The selectors describe the site's current markup. They are collected in
LeetCodeSelectors so a markup change only touches one place.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urljoin

from playwright.async_api import Error as PlaywrightError

from problemsnap.common.paths import company_path
from problemsnap.common.records import ProblemRecord, save_problem_records
from problemsnap.driver.scroll import (
    DEFAULT_LOADER_SELECTOR,
    ScrollOptions,
    scroll_page_until_stable,
)

if TYPE_CHECKING:
    from playwright.async_api import Locator, Page

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeetCodeSelectors:
    """Selectors and URLs for the problemset page."""

    base_url: str = "https://leetcode.com"
    problemset_path: str = "/problemset/"
    filter_button: str = 'button:has(svg[data-icon="filter"])'
    reset_button_name: str = "Reset"
    company_dropdown_text: str = r"^Companiesis$"
    company_dropdown_icon_index: int = 2
    close_filter_link_name: str = "All Topics"
    company_chips: str = (
        "div.flex.flex-wrap > div.inline-flex.cursor-pointer.rounded-xl"
    )
    problem_title: str = "div.ellipsis.line-clamp-1"
    problem_row: str = "xpath=ancestor::a[1]"
    problem_difficulty: str = 'p[class*="text-sd-"]'
    loader: str = DEFAULT_LOADER_SELECTOR
    list_response_marker: str = "graphql"

    @property
    def problemset_url(self) -> str:
        return urljoin(self.base_url, self.problemset_path)


@dataclass
class CompanyReport:
    """Per-company outcome of a scraper run.

    Attributes:
        written: Company name to output file, for companies scraped this run.
        skipped: Companies whose output file already existed.
        failed: Company name to error description.
        inconclusive: Companies whose list never confirmed its end; their
            files hold whatever had rendered.
    """

    written: dict[str, Path] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    inconclusive: list[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"{len(self.written)} companies written, {len(self.skipped)} "
            f"skipped, {len(self.failed)} failed"
        )


def clean_difficulty(text: str) -> str:
    """Normalize a difficulty label such as ``"Med."`` to ``"Med"``."""
    return text.replace(".", "", 1).strip()


class CompanyScraper:
    """Drive the problemset filter UI to collect problems per company.

    Args:
        page: The tab to drive.
        output_dir: Directory for per-company JSON files.
        selectors: Site markup description.
        scroll_options: Tunables for the scroll loop.
        response_timeout: How long to wait for the filtered list response,
            in milliseconds.
        navigation_timeout: Problemset navigation timeout in milliseconds.
        settle_delay: Pause in seconds after closing the filter panel
            during company discovery.
        skip_existing: Skip companies whose output file already exists.
    """

    def __init__(
        self,
        page: Page,
        output_dir: Path,
        selectors: LeetCodeSelectors | None = None,
        scroll_options: ScrollOptions | None = None,
        response_timeout: float = 15000,
        navigation_timeout: float = 60000,
        settle_delay: float = 1.0,
        skip_existing: bool = False,
    ) -> None:
        self.page = page
        self.output_dir = output_dir
        self.selectors = selectors or LeetCodeSelectors()
        self.scroll_options = scroll_options or ScrollOptions()
        self.response_timeout = response_timeout
        self.navigation_timeout = navigation_timeout
        self.settle_delay = settle_delay
        self.skip_existing = skip_existing

    # Locators

    @property
    def filter_button(self) -> Locator:
        return self.page.locator(self.selectors.filter_button)

    @property
    def reset_button(self) -> Locator:
        return self.page.get_by_role(
            "button", name=self.selectors.reset_button_name
        )

    @property
    def company_dropdown(self) -> Locator:
        return (
            self.page.locator("div")
            .filter(has_text=re.compile(self.selectors.company_dropdown_text))
            .locator("svg")
            .nth(self.selectors.company_dropdown_icon_index)
        )

    @property
    def close_filter_button(self) -> Locator:
        return self.page.get_by_role(
            "link", name=self.selectors.close_filter_link_name
        )

    @property
    def company_chips(self) -> Locator:
        return self.page.locator(self.selectors.company_chips)

    # Operations

    async def open_problemset(self) -> None:
        await self.page.goto(
            self.selectors.problemset_url,
            wait_until="domcontentloaded",
            timeout=self.navigation_timeout,
        )
        logger.info("Successfully navigated to problemset.")

    async def _open_company_filter(self) -> None:
        await self.filter_button.click()
        await self.reset_button.click()
        await self.company_dropdown.click()

    async def discover_companies(self) -> list[str]:
        """Read every company label offered by the company filter."""
        logger.info("Fetching the list of all available companies...")
        await self._open_company_filter()

        await self.company_chips.first.wait_for()
        texts = await self.company_chips.all_inner_texts()
        companies = [text.strip() for text in texts if text.strip()]

        logger.info(f"Found {len(companies)} companies to process.")
        await self.close_filter_button.click()
        await asyncio.sleep(self.settle_delay)
        return companies

    async def select_company(self, company: str) -> None:
        """Apply the filter for one company and wait for its list to load."""
        await self._open_company_filter()
        await self.company_chips.get_by_text(company, exact=True).click()
        logger.info(f'   -> Selected "{company}" filter.')

        marker = self.selectors.list_response_marker
        logger.info("   -> Waiting for problems to load...")
        async with self.page.expect_response(
            lambda response: marker in response.url,
            timeout=self.response_timeout,
        ):
            await self.close_filter_button.click()

    async def extract_problems(self) -> list[ProblemRecord]:
        """Read all rendered problem rows."""
        titles = self.page.locator(self.selectors.problem_title)
        count = await titles.count()
        problems: list[ProblemRecord] = []

        for i in range(count):
            title = titles.nth(i)
            row = title.locator(self.selectors.problem_row)
            name = await title.inner_text()
            href = await row.get_attribute("href")
            difficulty = await row.locator(
                self.selectors.problem_difficulty
            ).inner_text()
            problems.append(
                ProblemRecord(
                    name=name.strip(),
                    link=urljoin(self.selectors.base_url, href or ""),
                    difficulty=clean_difficulty(difficulty),
                )
            )

        return problems

    async def scrape_company(
        self, company: str, report: CompanyReport | None = None
    ) -> Path:
        """Scrape one company's problems and write them to its JSON file."""
        await self.select_company(company)

        logger.info("   -> Scrolling to find all problems...")
        scroll = await scroll_page_until_stable(
            self.page, self.selectors.loader, self.scroll_options
        )
        if not scroll.is_stable:
            logger.warning(
                f"   -> End of list not confirmed for {company} after "
                f"{scroll.samples} samples; saving rows rendered so far."
            )
            if report is not None:
                report.inconclusive.append(company)

        problems = await self.extract_problems()
        logger.info(f"   -> Found {len(problems)} problems for {company}.")

        path = company_path(self.output_dir, company)
        save_problem_records(path, problems)
        logger.info(f"   -> Problems for {company} saved to {path}")
        return path

    async def run(self, companies: list[str] | None = None) -> CompanyReport:
        """Scrape every company, discovering the list when none is given.

        A Playwright error while scraping one company is logged and
        recorded; the remaining companies are still scraped.
        """
        report = CompanyReport()
        await self.open_problemset()
        if companies is None:
            companies = await self.discover_companies()

        for company in companies:
            logger.info(f"--- Processing Company: {company} ---")
            if self.skip_existing and company_path(
                self.output_dir, company
            ).exists():
                logger.info(f"   -> SKIPPED: {company} already scraped.")
                report.skipped.append(company)
                continue

            try:
                report.written[company] = await self.scrape_company(
                    company, report
                )
            except PlaywrightError as e:
                logger.error(f"   -> FAILED: {company} - {e.message}")
                report.failed[company] = e.message

        logger.info(report.summary())
        return report

"""Test utilities: in-memory stand-ins for Playwright pages and contexts.

The fakes implement only the calls the drivers make. Behaviour is configured
per URL or per selector, and every call that matters for ordering is
appended to a shared event log so tests can assert on interleaving.
"""

import asyncio
import socket
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager, closing
from typing import Any

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

# Per-selector click behaviour for FakePage
CLICK_OK = "ok"
CLICK_TIMEOUT = "timeout"
CLICK_ERROR = "error"


def find_free_port() -> int:
    """Find a free port on localhost."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


def collect_results_async() -> tuple[
    Callable[[Any], Awaitable[None]], list[Any]
]:
    """Create an async callback that collects results in a list.

    Example:
        callback, results = collect_results_async()
        pipeline = SnapshotPipeline(context, out, on_result=callback)
        await pipeline.run(records)
        assert len(results) == len(records)
    """
    results: list[Any] = []

    async def callback(data: Any) -> None:
        results.append(data)

    return callback, results


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str) -> None:
        self.page = page
        self.selector = selector

    @property
    def first(self) -> "FakeLocator":
        return self

    @property
    def last(self) -> "FakeLocator":
        return self

    async def click(self, timeout: float | None = None) -> None:
        behaviour = self.page.clicks.get(self.selector, CLICK_TIMEOUT)
        self.page.events.append(("click", self.page.url, self.selector))
        if behaviour == CLICK_TIMEOUT:
            raise PlaywrightTimeoutError(
                f"Timeout {timeout}ms exceeded waiting for {self.selector}"
            )
        if behaviour == CLICK_ERROR:
            raise PlaywrightError(f"Element is not attached: {self.selector}")

    async def is_visible(self) -> bool:
        return bool(self.page.visible.pop(0)) if self.page.visible else False


class FakePage:
    """A page whose navigation, clicks and waits follow a script.

    Args:
        context: Owning FakeContext (shares configuration and event log).
    """

    def __init__(self, context: "FakeContext") -> None:
        self.context = context
        self.url = "about:blank"
        self.closed = False
        self.clicks: dict[str, str] = dict(context.clicks)
        self.present: set[str] = set(context.present)
        self.visible: list[bool] = []
        self.evaluations: list[str] = []

    @property
    def events(self) -> list[tuple[str, ...]]:
        return self.context.events

    async def goto(
        self,
        url: str,
        wait_until: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.url = url
        self.events.append(("goto", url))
        delay = self.context.delays.get(url, 0.0)
        if delay:
            await asyncio.sleep(delay)
        if url in self.context.unreachable:
            raise PlaywrightTimeoutError(
                f"page.goto: Timeout {timeout}ms exceeded navigating to {url}"
            )

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    async def wait_for_selector(
        self,
        selector: str,
        state: str = "visible",
        timeout: float | None = None,
    ) -> None:
        if selector not in self.present:
            raise PlaywrightTimeoutError(
                f"Timeout {timeout}ms exceeded waiting for {selector}"
            )

    async def evaluate(self, expression: str) -> None:
        self.evaluations.append(expression)

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        self.closed = True
        self.events.append(("close", self.url))
        self.context.open_pages -= 1


class FakeCDPSession:
    def __init__(self, context: "FakeContext", page: FakePage) -> None:
        self.context = context
        self.page = page
        self.detached = False

    async def send(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        self.context.events.append(("capture", self.page.url))
        if self.page.url in self.context.capture_failures:
            raise PlaywrightError("Protocol error (Page.captureSnapshot)")
        return {
            "data": (
                "From: <Saved by Blink>\r\n"
                f"Snapshot-Content-Location: {self.page.url}\r\n"
                "MIME-Version: 1.0\r\n"
            )
        }

    async def detach(self) -> None:
        self.detached = True
        if self.page.url in self.context.detach_failures:
            raise PlaywrightError("Target page, context or browser has been closed")


class FakeContext:
    """A browser context that hands out FakePages.

    Attributes:
        unreachable: URLs whose navigation times out.
        capture_failures: URLs whose snapshot capture fails.
        detach_failures: URLs whose CDP session detach fails.
        delays: Seconds to sleep during navigation, per URL.
        clicks: Default click behaviour per selector for new pages.
        present: Selectors that wait_for_selector finds on new pages.
        events: Shared, ordered log of page activity.
        pages: Every page ever opened.
        max_open: Highest number of simultaneously open pages.
    """

    def __init__(self) -> None:
        self.unreachable: set[str] = set()
        self.capture_failures: set[str] = set()
        self.detach_failures: set[str] = set()
        self.delays: dict[str, float] = {}
        self.clicks: dict[str, str] = {}
        self.present: set[str] = set()
        self.events: list[tuple[str, ...]] = []
        self.pages: list[FakePage] = []
        self.sessions: list[FakeCDPSession] = []
        self.open_pages = 0
        self.max_open = 0

    async def new_page(self) -> FakePage:
        page = FakePage(self)
        self.pages.append(page)
        self.open_pages += 1
        self.max_open = max(self.max_open, self.open_pages)
        self.events.append(("open",))
        return page

    async def new_cdp_session(self, page: FakePage) -> FakeCDPSession:
        session = FakeCDPSession(self, page)
        self.sessions.append(session)
        return session

    def captures(self) -> list[str]:
        return [event[1] for event in self.events if event[0] == "capture"]


class FakeElement:
    def __init__(
        self,
        text: str = "",
        attrs: dict[str, str] | None = None,
        children: dict[str, list["FakeElement"]] | None = None,
    ) -> None:
        self.text = text
        self.attrs = attrs or {}
        self.children = children or {}


class FakeQuery:
    """A locator over a fixed list of FakeElements.

    ``description`` mirrors the chain of calls that built the locator and is
    what clicks are logged under.
    """

    def __init__(
        self,
        page: "FakeProblemsetPage",
        description: str,
        elements: list[FakeElement] | None = None,
    ) -> None:
        self.page = page
        self.description = description
        self.elements = elements or []

    def _derive(self, suffix: str, elements: list[FakeElement]) -> "FakeQuery":
        return FakeQuery(self.page, f"{self.description} >> {suffix}", elements)

    @property
    def first(self) -> "FakeQuery":
        return self._derive("nth=0", self.elements[:1])

    def nth(self, index: int) -> "FakeQuery":
        return self._derive(f"nth={index}", self.elements[index : index + 1])

    def filter(self, has_text: Any = None) -> "FakeQuery":
        return self._derive("filter", self.elements)

    def locator(self, selector: str) -> "FakeQuery":
        children = [
            child
            for element in self.elements
            for child in element.children.get(selector, [])
        ]
        return self._derive(selector, children)

    def get_by_text(self, text: str, exact: bool = False) -> "FakeQuery":
        matches = [
            e
            for e in self.elements
            if (e.text == text if exact else text in e.text)
        ]
        return self._derive(f"text={text}", matches)

    def _single(self) -> FakeElement:
        if not self.elements:
            raise PlaywrightTimeoutError(
                f"Timeout 30000ms exceeded waiting for {self.description}"
            )
        return self.elements[0]

    async def count(self) -> int:
        return len(self.elements)

    async def wait_for(self, timeout: float | None = None) -> None:
        self._single()

    async def inner_text(self) -> str:
        return self._single().text

    async def all_inner_texts(self) -> list[str]:
        return [e.text for e in self.elements]

    async def get_attribute(self, name: str) -> str | None:
        return self._single().attrs.get(name)

    async def click(self, timeout: float | None = None) -> None:
        self.page.clicks.append(self.description)
        if self.description == self.page.close_description:
            self.page.fired.extend(self.page.list_response_urls)

    async def is_visible(self) -> bool:
        return bool(self.page.visible.pop(0)) if self.page.visible else False


class FakeResponse:
    def __init__(self, url: str) -> None:
        self.url = url


class FakeProblemsetPage:
    """A problemset page with company chips and rendered problem rows.

    Clicking the close-filter link "sends" the requests listed in
    ``list_response_urls``; expect_response only sees requests sent while
    its block is running.

    Args:
        selectors: The LeetCodeSelectors the scraper under test uses.
        rows: (title, href, difficulty) of each rendered problem row.
        chips: Text of each company chip.
    """

    def __init__(
        self,
        selectors: Any,
        rows: list[tuple[str, str | None, str]] | None = None,
        chips: list[str] | None = None,
    ) -> None:
        self.selectors = selectors
        self.url = "about:blank"
        self.clicks: list[str] = []
        self.events: list[tuple[str, ...]] = []
        self.fired: list[str] = []
        self.visible: list[bool] = []
        self.list_response_urls = [
            f"{selectors.base_url}/{selectors.list_response_marker}/"
        ]
        self.close_description = (
            f"role=link[name={selectors.close_filter_link_name}]"
        )
        self.elements: dict[str, list[FakeElement]] = {
            selectors.company_chips: [FakeElement(text) for text in chips or []],
            selectors.problem_title: [
                FakeElement(
                    title,
                    children={
                        selectors.problem_row: [
                            FakeElement(
                                attrs={"href": href} if href is not None else {},
                                children={
                                    selectors.problem_difficulty: [
                                        FakeElement(difficulty)
                                    ]
                                },
                            )
                        ]
                    },
                )
                for title, href, difficulty in rows or []
            ],
        }

    async def goto(
        self,
        url: str,
        wait_until: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.url = url
        self.events.append(("goto", url))

    def locator(self, selector: str) -> FakeQuery:
        return FakeQuery(self, selector, self.elements.get(selector, []))

    def get_by_role(self, role: str, name: str | None = None) -> FakeQuery:
        return FakeQuery(self, f"role={role}[name={name}]")

    async def evaluate(self, expression: str) -> None:
        self.events.append(("evaluate", expression))

    @asynccontextmanager
    async def expect_response(
        self,
        predicate: Callable[[Any], bool],
        timeout: float | None = None,
    ) -> AsyncIterator[None]:
        self.fired.clear()
        self.events.append(("expect_response",))
        yield
        for url in self.fired:
            if predicate(FakeResponse(url)):
                self.events.append(("response", url))
                return
        raise PlaywrightTimeoutError(
            f"Timeout {timeout}ms exceeded while waiting for event \"response\""
        )

"""Bounded-concurrency MHTML snapshot pipeline.

Each problem record becomes one unit of work: open a fresh page, navigate,
run the best-effort UI steps, capture the page as MHTML through a CDP
session and write it to ``<output_dir>/<sanitized name>/index.mhtml``.

Concurrency is bounded in one of two ways:

1. "chunked" (default): records are split into consecutive chunks of
   ``concurrency`` items. All items of a chunk run concurrently and the next
   chunk starts only when every item of the current one has finished.
2. "pool": ``concurrency`` workers drain an asyncio.Queue, so a slow page
   does not hold back the start of later items.

A failure never leaves its item's boundary: it is logged with the
problem name and recorded in the report. Existing output files are skipped,
so re-running the pipeline is the retry mechanism.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Sequence
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from playwright.async_api import Error as PlaywrightError
from typing_extensions import assert_never

from problemsnap.common.exceptions import SnapshotCaptureException
from problemsnap.common.paths import snapshot_path
from problemsnap.common.records import ProblemRecord
from problemsnap.driver.steps import (
    DEFAULT_STEPS,
    ClickStep,
    StepResult,
    run_steps,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from playwright.async_api import BrowserContext, Page

logger = logging.getLogger(__name__)

Strategy = Literal["chunked", "pool"]


class ItemStatus(str, Enum):
    CAPTURED = "captured"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ItemResult:
    """Outcome of one record's unit of work.

    Attributes:
        record: The record that was processed.
        status: CAPTURED, SKIPPED (output already existed) or FAILED.
        path: Where the snapshot lives (or would have been written).
        steps: Results of the best-effort UI steps, in order.
        error: Error description for FAILED items.
    """

    record: ProblemRecord
    status: ItemStatus
    path: Path
    steps: list[StepResult] = field(default_factory=list)
    error: str | None = None


@dataclass
class PipelineReport:
    """Results of a pipeline run, in input order.

    Attributes:
        results: One ItemResult per input record.
        batches: Size of each chunk in the order they ran. Empty for the
            pool strategy, which has no barriers.
    """

    results: list[ItemResult] = field(default_factory=list)
    batches: list[int] = field(default_factory=list)

    def _count(self, status: ItemStatus) -> int:
        return sum(1 for r in self.results if r.status is status)

    @property
    def captured(self) -> int:
        return self._count(ItemStatus.CAPTURED)

    @property
    def skipped(self) -> int:
        return self._count(ItemStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(ItemStatus.FAILED)

    def summary(self) -> str:
        return (
            f"{len(self.results)} problems: {self.captured} captured, "
            f"{self.skipped} skipped, {self.failed} failed"
        )


def chunked(
    records: Sequence[ProblemRecord], size: int
) -> list[Sequence[ProblemRecord]]:
    """Split records into consecutive chunks of ``size`` (last may be smaller)."""
    if size < 1:
        raise ValueError("chunk size must be at least 1")
    return [records[i : i + size] for i in range(0, len(records), size)]


async def capture_mhtml(context: BrowserContext, page: Page) -> str:
    """Capture the full page as MHTML using ``Page.captureSnapshot``.

    Raises:
        SnapshotCaptureException: If the browser returned no data.
    """
    session = await context.new_cdp_session(page)
    try:
        result = await session.send("Page.captureSnapshot", {"format": "mhtml"})
    finally:
        # Detach fails when the page is already gone.
        with suppress(PlaywrightError):
            await session.detach()

    data = result.get("data") if result else None
    if not data:
        raise SnapshotCaptureException(page.url)
    return data


def write_snapshot(path: Path, data: str) -> None:
    """Write a snapshot so that ``path`` only ever holds a complete file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    partial = path.with_name(path.name + ".part")
    partial.write_bytes(data.encode("utf-8"))
    partial.replace(path)


class SnapshotPipeline:
    """Capture MHTML snapshots for a list of problems with bounded concurrency.

    Args:
        context: Shared browser context in which pages are opened.
        output_dir: Root directory for snapshots.
        concurrency: Maximum number of pages open at once.
        steps: Best-effort UI steps run before each capture.
        navigation_timeout: Navigation timeout in milliseconds.
        wait_until: Load state awaited by navigation.
        strategy: "chunked" for barriers between chunks, "pool" for a
            worker pool.
        on_result: Optional async callback invoked with each ItemResult as
            soon as its item finishes.

    Example:
        async with connect_over_cdp(endpoint) as browser:
            pipeline = SnapshotPipeline(first_context(browser), Path("out"))
            report = await pipeline.run(records)
            print(report.summary())
    """

    def __init__(
        self,
        context: BrowserContext,
        output_dir: Path,
        concurrency: int = 20,
        steps: Sequence[ClickStep] = DEFAULT_STEPS,
        navigation_timeout: float = 90000,
        wait_until: Literal[
            "commit", "domcontentloaded", "load", "networkidle"
        ] = "networkidle",
        strategy: Strategy = "chunked",
        on_result: Callable[[ItemResult], Awaitable[None]] | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.context = context
        self.output_dir = output_dir
        self.concurrency = concurrency
        self.steps = list(steps)
        self.navigation_timeout = navigation_timeout
        self.wait_until = wait_until
        self.strategy = strategy
        self.on_result = on_result

    @asynccontextmanager
    async def _open_page(self) -> AsyncIterator[Page]:
        """Open a fresh page that is closed on every exit path."""
        page = await self.context.new_page()
        try:
            yield page
        finally:
            if not page.is_closed():
                await page.close()

    async def process(self, record: ProblemRecord) -> ItemResult:
        """Run the unit of work for one record. Never raises."""
        output_path = snapshot_path(self.output_dir, record.name)

        if output_path.exists():
            logger.info(f'SKIPPED: "{record.name}" already exists.')
            result = ItemResult(record, ItemStatus.SKIPPED, output_path)
            await self._notify(result)
            return result

        step_results: list[StepResult] = []
        try:
            async with self._open_page() as page:
                logger.info(f'STARTING: "{record.name}"')
                await page.goto(
                    record.link,
                    wait_until=self.wait_until,
                    timeout=self.navigation_timeout,
                )
                step_results = await run_steps(page, self.steps, record.name)
                data = await capture_mhtml(self.context, page)
                write_snapshot(output_path, data)

        except Exception as e:
            logger.error(f'FAILED: "{record.name}" - {e}')
            result = ItemResult(
                record,
                ItemStatus.FAILED,
                output_path,
                steps=step_results,
                error=str(e),
            )
        else:
            logger.info(f'FINISHED: "{record.name}"')
            result = ItemResult(
                record, ItemStatus.CAPTURED, output_path, steps=step_results
            )

        await self._notify(result)
        return result

    async def _notify(self, result: ItemResult) -> None:
        if self.on_result is None:
            return
        try:
            await self.on_result(result)
        except Exception:
            logger.exception(
                f'on_result callback failed for "{result.record.name}"'
            )

    async def run(self, records: Sequence[ProblemRecord]) -> PipelineReport:
        """Process every record and return the results in input order."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(
            f"Starting download of {len(records)} problems with a "
            f"concurrency of {self.concurrency} ({self.strategy})..."
        )

        if self.strategy == "chunked":
            report = await self._run_chunked(records)
        elif self.strategy == "pool":
            report = await self._run_pool(records)
        else:
            assert_never(self.strategy)

        logger.info(f"All problems have been processed: {report.summary()}")
        return report

    async def _run_chunked(
        self, records: Sequence[ProblemRecord]
    ) -> PipelineReport:
        report = PipelineReport()
        chunks = chunked(records, self.concurrency)
        total = math.ceil(len(records) / self.concurrency)

        for number, chunk in enumerate(chunks, start=1):
            results = await asyncio.gather(
                *(self.process(record) for record in chunk)
            )
            report.results.extend(results)
            report.batches.append(len(chunk))
            logger.info(f"--- Chunk {number}/{total} completed ---")

        return report

    async def _run_pool(
        self, records: Sequence[ProblemRecord]
    ) -> PipelineReport:
        queue: asyncio.Queue[tuple[int, ProblemRecord]] = asyncio.Queue()
        for index, record in enumerate(records):
            queue.put_nowait((index, record))

        slots: list[ItemResult | None] = [None] * len(records)

        async def worker(worker_id: int) -> None:
            while True:
                try:
                    index, record = queue.get_nowait()
                except asyncio.QueueEmpty:
                    logger.debug(f"Worker {worker_id} finished")
                    return
                try:
                    slots[index] = await self.process(record)
                finally:
                    queue.task_done()

        workers = [
            asyncio.create_task(worker(i))
            for i in range(min(self.concurrency, len(records)))
        ]
        await asyncio.gather(*workers)

        return PipelineReport(
            results=[result for result in slots if result is not None]
        )

"""Run orchestrator: coordinates capture, comparison, aggregation and reporting."""

from __future__ import annotations

import asyncio
import logging
import signal
import time
from pathlib import Path
from typing import Optional

from mockup_diff.capture.capturer import CaptureOrchestrator, SessionFactory, build_tasks
from mockup_diff.compare.engine import ComparisonEngine
from mockup_diff.models.capture import CaptureResult, CaptureTask, TaskState
from mockup_diff.models.comparison import ComparisonOptions
from mockup_diff.models.config import RunConfig
from mockup_diff.models.report import ReportEntry, RunReport
from mockup_diff.reporter.aggregator import aggregate
from mockup_diff.reporter.json_report import generate_capture_report
from mockup_diff.reporter.reporter import Reporter
from mockup_diff.url_utils import file_timestamp

logger = logging.getLogger(__name__)


class Orchestrator:
    """Coordinates the capture -> compare -> report pipeline for one invocation."""

    def __init__(
        self,
        config: RunConfig,
        session_factory: SessionFactory | None = None,
        timestamp: str | None = None,
    ):
        self.config = config
        self.timestamp = timestamp or file_timestamp()
        self.output_dir = Path(config.output_dir)
        self.cancel_event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.capturer = CaptureOrchestrator(
            config, self.output_dir,
            timestamp=self.timestamp,
            session_factory=session_factory,
        )
        self.engine = ComparisonEngine(
            ComparisonOptions(
                threshold=config.diff_threshold,
                include_anti_aliasing=config.include_anti_aliasing,
                pass_threshold=config.pass_threshold,
            ),
            diff_dir=self.output_dir / "diffs",
            timestamp=self.timestamp,
        )

    def select_tasks(self, page_id: str | None = None, viewport_name: str | None = None) -> list[CaptureTask]:
        """Full matrix, or the cells of one page (optionally one viewport)."""
        tasks = build_tasks(self.config)
        if page_id is None:
            return tasks
        if self.config.get_page(page_id) is None:
            raise KeyError(f"Unknown page '{page_id}'")
        if viewport_name is not None and self.config.get_viewport(viewport_name) is None:
            raise KeyError(f"Unknown viewport '{viewport_name}'")
        return [
            t for t in tasks
            if t.page_id == page_id and (viewport_name is None or t.viewport.name == viewport_name)
        ]

    def run(self, page_id: str | None = None, viewport_name: str | None = None) -> tuple[RunReport, dict[str, str]]:
        """Run the comparison pipeline and persist reports. Returns (report, report paths)."""
        tasks = self.select_tasks(page_id, viewport_name)
        return asyncio.run(self._run_pipeline(tasks))

    def run_capture_only(self) -> tuple[list[CaptureResult], str]:
        """Capture the full matrix without comparing. Returns (results, capture report path)."""
        return asyncio.run(self._run_capture_only())

    def cancel(self) -> None:
        """Stop scheduling tasks that have not started yet.

        Safe to call from any thread while a run is in progress. In-flight
        tasks finish and the report is still written.
        """
        loop, event = self._loop, self.cancel_event
        if loop is None or event is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            event.set()
        else:
            loop.call_soon_threadsafe(event.set)

    def _start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self.cancel_event = asyncio.Event()
        try:
            self._loop.add_signal_handler(signal.SIGINT, self._on_interrupt)
        except (NotImplementedError, RuntimeError):
            # Not the main thread, or a platform without loop signal support
            pass

    def _finish(self) -> None:
        try:
            self._loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass
        self._loop = None

    def _on_interrupt(self) -> None:
        # A second Ctrl-C falls through to the default KeyboardInterrupt
        logger.warning("Interrupted: finishing in-flight tasks, press Ctrl-C again to abort")
        self._loop.remove_signal_handler(signal.SIGINT)
        self.cancel_event.set()

    async def _run_pipeline(self, tasks: list[CaptureTask]) -> tuple[RunReport, dict[str, str]]:
        self._start()
        try:
            return await self._pipeline(tasks)
        finally:
            self._finish()

    async def _pipeline(self, tasks: list[CaptureTask]) -> tuple[RunReport, dict[str, str]]:
        start = time.time()
        logger.info("=== Visual comparison of %s: %d cell(s) ===", self.config.base_url, len(tasks))

        # Stage 1: Capture
        logger.info("--- Stage 1: Capture ---")
        stage_start = time.time()
        captures = await self.capturer.run(tasks, cancel_event=self.cancel_event)
        logger.info("--- Stage 1 complete in %.1fs ---", time.time() - stage_start)

        # Stage 2: Compare
        logger.info("--- Stage 2: Compare ---")
        stage_start = time.time()
        results = self._compare(captures)
        logger.info("--- Stage 2 complete in %.1fs ---", time.time() - stage_start)

        # Stage 3: Report
        logger.info("--- Stage 3: Report ---")
        report = aggregate(
            results,
            timestamp=self.timestamp,
            base_url=self.config.base_url,
            pass_threshold=self.config.pass_threshold,
        )
        paths = Reporter(self.output_dir).persist(report)

        logger.info("=== Complete in %.1fs: %d passed, %d failed ===",
                    time.time() - start, report.summary.passed, report.summary.failed)
        return report, paths

    def _compare(self, captures: list[CaptureResult]) -> list[ReportEntry]:
        results: list[ReportEntry] = []
        for capture in captures:
            if not capture.succeeded:
                results.append(capture)
                continue
            self.capturer.set_state(capture.task, TaskState.COMPARING)
            result = self.engine.compare(capture)
            self.capturer.set_state(
                capture.task,
                TaskState.COMPARED if result.compared else TaskState.COMPARISON_FAILED,
            )
            results.append(result)
        return results

    async def _run_capture_only(self) -> tuple[list[CaptureResult], str]:
        self._start()
        try:
            results = await self.capturer.run(cancel_event=self.cancel_event)
        finally:
            self._finish()
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / f"capture-report-{self.timestamp}.json"
        generate_capture_report(results, self.timestamp, path)
        logger.info("Capture report: %s", path)
        return results, str(path)

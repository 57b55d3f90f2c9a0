"""Capture orchestrator: screenshots every (page, viewport) cell of the task matrix."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from mockup_diff.capture.layout_rules import LayoutRule, build_rules, run_rules
from mockup_diff.capture.session import BrowserSession
from mockup_diff.capture.stabilizer import stabilize
from mockup_diff.errors import NavigationError, NavigationTimeout
from mockup_diff.models.capture import (
    CaptureResult,
    CaptureStatus,
    CaptureTask,
    ConsoleMessage,
    FailureCategory,
    TaskState,
)
from mockup_diff.models.config import RunConfig
from mockup_diff.url_utils import file_timestamp, iso_timestamp, join_url, safe_filename_part

logger = logging.getLogger(__name__)

SessionFactory = Callable[..., Awaitable[BrowserSession]]


def build_tasks(config: RunConfig) -> list[CaptureTask]:
    """Expand the configuration into the pages x viewports cross product."""
    tasks = []
    for page in config.pages:
        for viewport in config.viewports:
            reference = page.reference_images.get(viewport.name)
            if reference and config.reference_dir and not Path(reference).is_absolute():
                reference = str(Path(config.reference_dir) / reference)
            tasks.append(CaptureTask(
                page_id=page.id,
                url=join_url(config.base_url, page.path),
                viewport=viewport,
                reference_image_path=reference,
            ))
    return tasks


def sort_results(results: Iterable) -> list:
    """Order results by page then viewport, independent of completion order."""
    return sorted(results, key=lambda r: r.task.key)


class _ConsoleCollector:
    """Console and page-error messages observed on one page during one capture."""

    def __init__(self):
        self.messages: list[ConsoleMessage] = []
        self.page_errors: list[str] = []

    def attach(self, page: Page) -> None:
        page.on("console", self._on_console)
        page.on("pageerror", self._on_page_error)

    def _on_console(self, msg) -> None:
        loc = msg.location
        location = None
        if isinstance(loc, dict) and loc.get("url"):
            location = f"{loc['url']}:{loc.get('lineNumber', 0)}"
        self.messages.append(ConsoleMessage(type=msg.type, text=msg.text, location=location))
        if msg.type == "error":
            logger.debug("Console error: %s", msg.text)

    def _on_page_error(self, error) -> None:
        self.page_errors.append(str(error))
        logger.debug("Page error: %s", error)


class CaptureOrchestrator:
    """Runs the capture matrix through a bounded pool of isolated browser contexts."""

    def __init__(
        self,
        config: RunConfig,
        output_dir: Path,
        timestamp: str | None = None,
        session_factory: SessionFactory | None = None,
        rules: list[LayoutRule] | None = None,
    ):
        self.config = config
        self.output_dir = output_dir
        self.timestamp = timestamp or file_timestamp()
        self.session_factory = session_factory or BrowserSession.launch
        self.rules = rules if rules is not None else build_rules(config.layout_rules)
        self.states: dict[tuple[str, str], TaskState] = {}

    def set_state(self, task: CaptureTask, state: TaskState) -> None:
        self.states[task.key] = state
        logger.debug("%s -> %s", task.label, state.value)

    def screenshot_path(self, task: CaptureTask) -> Path:
        name = f"{safe_filename_part(task.page_id)}-{safe_filename_part(task.viewport.name)}-{self.timestamp}.png"
        return self.output_dir / "screenshots" / name

    async def run(
        self,
        tasks: Optional[Iterable[CaptureTask]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> list[CaptureResult]:
        """Capture every task and return one result per task, sorted by page then viewport.

        Only a failure to launch the browser propagates. Once ``cancel_event``
        is set, tasks that have not started are recorded as cancelled while
        in-flight tasks run to completion or their timeout.
        """
        tasks = list(tasks) if tasks is not None else build_tasks(self.config)
        total = len(tasks)
        for task in tasks:
            self.set_state(task, TaskState.PENDING)
        logger.info("Capturing %d task(s) with up to %d worker(s)", total, self.config.max_workers)

        session = await self.session_factory(headless=self.config.headless)
        try:
            semaphore = asyncio.Semaphore(self.config.max_workers)

            async def _run_one(index: int, task: CaptureTask) -> CaptureResult:
                async with semaphore:
                    if cancel_event is not None and cancel_event.is_set():
                        logger.info("Run cancelled, skipping %s", task.label)
                        result = CaptureResult.failed(
                            task, FailureCategory.CANCELLED, "Run cancelled before the task started",
                        )
                        self.set_state(task, TaskState.CAPTURE_FAILED)
                        return result

                    logger.info("Capturing [%d/%d]: %s (%dx%d)", index + 1, total, task.label,
                                task.viewport.width, task.viewport.height)
                    self.set_state(task, TaskState.CAPTURING)
                    try:
                        result = await asyncio.wait_for(
                            self.capture_one(session, task),
                            timeout=self.config.task_timeout_seconds,
                        )
                    except asyncio.TimeoutError:
                        logger.warning("[%s] abandoned after %.0fs", task.label,
                                       self.config.task_timeout_seconds)
                        result = CaptureResult.failed(
                            task, FailureCategory.TASK_TIMEOUT,
                            f"Task exceeded {self.config.task_timeout_seconds:.0f}s timeout",
                        )
                    self.set_state(
                        task, TaskState.CAPTURED if result.succeeded else TaskState.CAPTURE_FAILED
                    )
                    return result

            results = await asyncio.gather(*(_run_one(i, t) for i, t in enumerate(tasks)))
        finally:
            await session.close()

        failed = sum(1 for r in results if not r.succeeded)
        logger.info("Capture complete: %d captured, %d failed", total - failed, failed)
        return sort_results(results)

    async def capture_one(self, session: BrowserSession, task: CaptureTask) -> CaptureResult:
        """Capture one cell in its own context. Per-task errors become a failed result."""
        captured_at = iso_timestamp()
        collector = _ConsoleCollector()
        context = None

        def _failed(category: FailureCategory, reason: str) -> CaptureResult:
            return CaptureResult.failed(
                task, category, reason, captured_at=captured_at,
                console_messages=collector.messages, page_errors=collector.page_errors,
            )

        try:
            context = await session.new_context(task.viewport)
            page = await context.new_page()
            collector.attach(page)

            await self._navigate(page, task)
            await stabilize(
                page,
                font_timeout_ms=self.config.font_timeout_ms,
                settle_delay_ms=self.config.settle_delay_ms,
            )
            findings = await run_rules(page, task, self.rules)

            path = self.screenshot_path(task)
            path.parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(path), full_page=self.config.full_page, animations="disabled")
            logger.debug("[%s] screenshot saved to %s", task.label, path)

            return CaptureResult(
                task=task,
                status=CaptureStatus.CAPTURED,
                image_path=str(path),
                captured_at=captured_at,
                console_messages=collector.messages,
                page_errors=collector.page_errors,
                layout_findings=findings,
            )
        except NavigationTimeout as e:
            logger.warning("[%s] %s", task.label, e)
            return _failed(FailureCategory.NAVIGATION_TIMEOUT, str(e))
        except NavigationError as e:
            logger.warning("[%s] %s", task.label, e)
            return _failed(FailureCategory.NAVIGATION_ERROR, str(e))
        except Exception as e:
            logger.error("[%s] capture crashed: %s", task.label, e)
            return _failed(FailureCategory.CAPTURE_ERROR, str(e))
        finally:
            if context is not None:
                try:
                    await context.close()
                except Exception as e:
                    logger.debug("Error closing context for %s: %s", task.label, e)

    async def _navigate(self, page: Page, task: CaptureTask) -> None:
        timeout = self.config.navigation_timeout_ms
        try:
            response = await page.goto(task.url, wait_until="networkidle", timeout=timeout)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(f"Timed out after {timeout}ms loading {task.url}") from e
        except PlaywrightError as e:
            raise NavigationError(f"Failed to load {task.url}: {e}") from e

        status = getattr(response, "status", None)
        if isinstance(status, int) and status >= 400:
            logger.warning("[%s] %s responded with HTTP %d", task.label, task.url, status)

"""Tests for reporter module: aggregation, JSON report, HTML report, persistence."""

import json
from pathlib import Path

import pytest

from mockup_diff.models.capture import (
    CaptureResult,
    CaptureTask,
    ConsoleMessage,
    FailureCategory,
    LayoutFinding,
)
from mockup_diff.models.comparison import ComparisonResult, ComparisonStatus
from mockup_diff.models.config import ViewportConfig
from mockup_diff.reporter.aggregator import aggregate, summarize
from mockup_diff.reporter.html_report import _build_result_card, _relative_link, generate_html_report
from mockup_diff.reporter.json_report import generate_capture_report, generate_json_report, result_entry
from mockup_diff.reporter.reporter import Reporter

TS = "2025-01-01T00-00-00"


# ============================================================================
# Helpers
# ============================================================================

def _task(page_id="homepage", viewport="desktop", width=1440, height=900, reference=None) -> CaptureTask:
    return CaptureTask(
        page_id=page_id,
        url=f"http://localhost:8080/{page_id}/",
        viewport=ViewportConfig(name=viewport, width=width, height=height),
        reference_image_path=reference or f"design/{page_id}__{viewport}.png",
    )


def _compared(match, passed, page_id="homepage", viewport="desktop", **kwargs) -> ComparisonResult:
    return ComparisonResult(
        task=_task(page_id, viewport),
        status=ComparisonStatus.COMPARED,
        match_percentage=match,
        mismatched_pixels=int((100 - match) * 10),
        total_pixels=1000,
        width=40,
        height=25,
        passed=passed,
        image_path=f"results/screenshots/{page_id}-{viewport}-{TS}.png",
        diff_image_path=f"results/diffs/{page_id}-{viewport}-diff-{TS}.png",
        compared_at="2025-01-01T00:00:05Z",
        **kwargs,
    )


def _reference_missing(page_id="contact", viewport="desktop") -> ComparisonResult:
    return ComparisonResult(
        task=_task(page_id, viewport),
        status=ComparisonStatus.COMPARISON_FAILED,
        image_path=f"results/screenshots/{page_id}-{viewport}-{TS}.png",
        failure_category=FailureCategory.REFERENCE_MISSING,
        failure_reason=f"Reference image not found: design/{page_id}__{viewport}.png",
    )


def _capture_failed(page_id="meet-our-team", viewport="mobile") -> CaptureResult:
    return CaptureResult.failed(
        _task(page_id, viewport, 375, 812),
        FailureCategory.NAVIGATION_TIMEOUT,
        "Timed out after 30000ms loading http://localhost:8080/meet-our-team/",
        captured_at="2025-01-01T00:00:01Z",
        console_messages=[ConsoleMessage(type="error", text="Failed to load resource: 404")],
    )


# ============================================================================
# Aggregation
# ============================================================================


class TestSummarize:

    def test_counts_and_average(self):
        summary = summarize([_compared(100.0, True), _compared(80.0, False, viewport="mobile")])
        assert summary.total_comparisons == 2
        assert summary.passed == 1
        assert summary.failed == 1
        assert summary.average_match_percentage == 90.0

    def test_failures_excluded_from_average(self):
        results = [
            _compared(100.0, True),
            _compared(80.0, False, viewport="mobile"),
            _capture_failed(),
            _reference_missing(),
        ]
        summary = summarize(results)
        assert summary.total_comparisons == 4
        assert summary.passed == 1
        assert summary.failed == 3
        assert summary.average_match_percentage == 90.0

    def test_no_comparisons_has_no_average(self):
        summary = summarize([_capture_failed()])
        assert summary.average_match_percentage is None
        assert summary.failed == 1

    def test_empty(self):
        summary = summarize([])
        assert summary.total_comparisons == 0
        assert summary.average_match_percentage is None

    def test_average_is_rounded(self):
        results = [_compared(v, True, viewport=name) for v, name in ((99.99, "a"), (99.98, "b"), (99.98, "c"))]
        assert summarize(results).average_match_percentage == 99.98


class TestAggregate:

    def test_results_ordered_by_page_then_viewport(self):
        report = aggregate(
            [
                _compared(99.0, True, page_id="meet-our-team", viewport="desktop"),
                _compared(99.0, True, page_id="homepage", viewport="mobile"),
                _reference_missing("contact", "desktop"),
                _compared(99.0, True, page_id="homepage", viewport="desktop"),
            ],
            timestamp=TS,
            base_url="http://localhost:8080",
        )
        assert [r.task.key for r in report.results] == [
            ("contact", "desktop"),
            ("homepage", "desktop"),
            ("homepage", "mobile"),
            ("meet-our-team", "desktop"),
        ]

    def test_exit_code(self):
        assert aggregate([_compared(100.0, True)], timestamp=TS).exit_code == 0
        assert aggregate([_compared(100.0, True), _capture_failed()], timestamp=TS).exit_code == 1

    def test_empty_run_exits_cleanly(self):
        assert aggregate([], timestamp=TS).exit_code == 0


# ============================================================================
# JSON report
# ============================================================================


class TestJsonReport:

    def test_compared_entry(self):
        entry = result_entry(_compared(87.5, False))
        assert entry["page"] == "homepage"
        assert entry["viewport"] == "desktop"
        assert entry["viewportSize"] == {"width": 1440, "height": 900}
        assert entry["mockupPath"] == "design/homepage__desktop.png"
        assert entry["status"] == "compared"
        assert entry["passed"] is False
        assert entry["matchPercentage"] == 87.5
        assert entry["totalPixels"] == 1000
        assert entry["diffImagePath"].endswith(f"homepage-desktop-diff-{TS}.png")
        assert entry["error"] is None

    def test_failed_capture_entry_has_no_match(self):
        entry = result_entry(_capture_failed())
        assert entry["status"] == "capture_failed"
        assert entry["failureCategory"] == "navigation_timeout"
        assert entry["matchPercentage"] is None
        assert entry["diffImagePath"] is None
        assert entry["screenshotPath"] is None
        assert entry["consoleErrors"] == ["Failed to load resource: 404"]
        assert "30000ms" in entry["error"]

    def test_reference_missing_entry(self):
        entry = result_entry(_reference_missing())
        assert entry["failureCategory"] == "reference_missing"
        assert entry["matchPercentage"] is None
        assert entry["screenshotPath"] is not None

    def test_generate_json_report(self, tmp_path):
        report = aggregate(
            [_compared(100.0, True), _compared(80.0, False, viewport="mobile"), _capture_failed()],
            timestamp=TS, base_url="http://localhost:8080", pass_threshold=85.0,
        )
        path = tmp_path / "report.json"
        generate_json_report(report, path)

        data = json.loads(path.read_text())
        assert data["timestamp"] == TS
        assert data["baseUrl"] == "http://localhost:8080"
        assert data["passThreshold"] == 85.0
        assert data["totalComparisons"] == 3
        assert data["passed"] == 1
        assert data["failed"] == 2
        assert data["averageMatch"] == 90.0
        assert len(data["results"]) == 3

    def test_capture_report(self, tmp_path):
        ok = CaptureResult(
            task=_task(),
            status="captured",
            image_path=f"results/screenshots/homepage-desktop-{TS}.png",
            captured_at="2025-01-01T00:00:00Z",
            console_messages=[ConsoleMessage(type="log", text="ready")],
            layout_findings=[LayoutFinding(rule_id="horizontal-overflow", message="too wide")],
        )
        path = tmp_path / "capture.json"
        generate_capture_report([ok, _capture_failed()], TS, path)

        data = json.loads(path.read_text())
        assert [s["page"] for s in data["screenshots"]] == ["homepage"]
        assert data["screenshots"][0]["dimensions"] == {"name": "desktop", "width": 1440, "height": 900}
        assert data["errors"][0]["category"] == "navigation_timeout"
        assert len(data["consoleMessages"]) == 2
        assert data["layoutFindings"][0]["rule_id"] == "horizontal-overflow"


# ============================================================================
# HTML report
# ============================================================================


class TestHtmlReport:

    def test_passing_card(self, tmp_path):
        card = _build_result_card(_compared(99.5, True), tmp_path)
        assert "PASSED" in card
        assert 'data-status="pass"' in card
        assert "99.50%" in card
        assert "homepage__desktop.png" in card

    def test_failed_comparison_card_links_diff(self, tmp_path):
        card = _build_result_card(_compared(80.0, False), tmp_path)
        assert "FAILED" in card
        assert "View diff image" in card
        assert "diff-thumb" in card

    def test_error_card(self, tmp_path):
        card = _build_result_card(_capture_failed(), tmp_path)
        assert "ERROR" in card
        assert "navigation_timeout" in card
        assert "Failed to load resource: 404" in card
        assert "View diff image" not in card

    def test_card_escapes_html(self, tmp_path):
        result = _compared(
            90.0, False,
            page_errors=["<script>alert(1)</script>"],
            layout_findings=[LayoutFinding(rule_id="touch-targets", message='a "<b>" is 10x10px')],
        )
        card = _build_result_card(result, tmp_path)
        assert "<script>alert(1)</script>" not in card
        assert "&lt;script&gt;" in card
        assert "touch-targets" in card

    def test_relative_link(self, tmp_path):
        diff = tmp_path / "diffs" / "a-diff.png"
        assert _relative_link(str(diff), tmp_path) == "diffs/a-diff.png"
        assert _relative_link(None, tmp_path) == ""

    def test_generate_html_report(self, tmp_path):
        report = aggregate(
            [_compared(100.0, True), _reference_missing()],
            timestamp=TS, base_url="http://localhost:8080",
        )
        path = tmp_path / f"comparison-report-{TS}.html"
        generate_html_report(report, path)

        content = path.read_text()
        assert "<!DOCTYPE html>" in content
        assert "Visual Comparison Report" in content
        assert "http://localhost:8080" in content
        assert f"comparison-report-{TS}.json" in content
        assert "reference_missing" in content
        assert "100.00%" in content

    def test_no_average_rendered_as_na(self, tmp_path):
        report = aggregate([_capture_failed()], timestamp=TS)
        path = tmp_path / "report.html"
        generate_html_report(report, path)
        assert "n/a" in path.read_text()


# ============================================================================
# Reporter
# ============================================================================


class TestReporter:

    def test_persist_writes_both_formats(self, tmp_path):
        report = aggregate([_compared(100.0, True)], timestamp=TS)
        out = tmp_path / "results"

        paths = Reporter(out).persist(report)

        assert paths["json"] == str(out / f"comparison-report-{TS}.json")
        assert paths["html"] == str(out / f"comparison-report-{TS}.html")
        assert Path(paths["json"]).exists()
        assert Path(paths["html"]).exists()

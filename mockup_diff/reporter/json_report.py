"""JSON report output."""

from __future__ import annotations

import json
from pathlib import Path

from mockup_diff.models.capture import CaptureResult
from mockup_diff.models.comparison import ComparisonResult
from mockup_diff.models.report import ReportEntry, RunReport


def _enum_value(value):
    return value.value if value is not None else None


def result_entry(result: ReportEntry) -> dict:
    """Flatten one result into the report's per-cell record."""
    task = result.task
    entry = {
        "page": task.page_id,
        "viewport": task.viewport.name,
        "viewportSize": {"width": task.viewport.width, "height": task.viewport.height},
        "mockupPath": task.reference_image_path,
        "url": task.url,
        "status": result.status.value,
        "passed": result.passed,
        "matchPercentage": None,
        "mismatchedPixels": None,
        "totalPixels": None,
        "diffImagePath": None,
        "screenshotPath": result.image_path,
        "failureCategory": _enum_value(result.failure_category),
        "error": result.failure_reason,
        "consoleErrors": result.console_errors,
        "pageErrors": result.page_errors,
        "layoutFindings": [f.model_dump() for f in result.layout_findings],
        "timestamp": result.captured_at if isinstance(result, CaptureResult) else result.compared_at,
    }
    if isinstance(result, ComparisonResult) and result.compared:
        entry.update({
            "matchPercentage": result.match_percentage,
            "mismatchedPixels": result.mismatched_pixels,
            "totalPixels": result.total_pixels,
            "diffImagePath": result.diff_image_path,
        })
    return entry


def generate_json_report(report: RunReport, output_path: Path) -> None:
    """Write a machine-readable JSON report."""
    data = {
        "timestamp": report.timestamp,
        "baseUrl": report.base_url,
        "passThreshold": report.pass_threshold,
        "totalComparisons": report.summary.total_comparisons,
        "passed": report.summary.passed,
        "failed": report.summary.failed,
        "averageMatch": report.summary.average_match_percentage,
        "results": [result_entry(r) for r in report.results],
    }
    with open(output_path, "w") as f:
        json.dump(data, f, indent=2, default=str)


def generate_capture_report(results: list[CaptureResult], timestamp: str, output_path: Path) -> None:
    """Write the capture-only report listing screenshots, console output and failures."""
    data = {
        "timestamp": timestamp,
        "screenshots": [
            {
                "page": r.task.page_id,
                "viewport": r.task.viewport.name,
                "dimensions": r.task.viewport.model_dump(),
                "url": r.task.url,
                "path": r.image_path,
                "capturedAt": r.captured_at,
            }
            for r in results if r.succeeded
        ],
        "errors": [
            {
                "page": r.task.page_id,
                "viewport": r.task.viewport.name,
                "category": _enum_value(r.failure_category),
                "error": r.failure_reason,
            }
            for r in results if not r.succeeded
        ],
        "consoleMessages": [
            {"page": r.task.page_id, "viewport": r.task.viewport.name, **m.model_dump()}
            for r in results for m in r.console_messages
        ],
        "pageErrors": [
            {"page": r.task.page_id, "viewport": r.task.viewport.name, "message": e}
            for r in results for e in r.page_errors
        ],
        "layoutFindings": [
            {"page": r.task.page_id, "viewport": r.task.viewport.name, **f.model_dump()}
            for r in results for f in r.layout_findings
        ],
    }
    with open(output_path, "w") as f:
        json.dump(data, f, indent=2, default=str)

"""Folds per-cell results into one run report."""

from __future__ import annotations

import logging
from typing import Iterable

from mockup_diff.compare.engine import round_percentage
from mockup_diff.models.comparison import ComparisonResult
from mockup_diff.models.report import ReportEntry, RunReport, RunSummary

logger = logging.getLogger(__name__)


def summarize(results: list[ReportEntry]) -> RunSummary:
    """Count passes and failures and average the match of results that were compared.

    Failed captures and failed comparisons count as failures but carry no
    match value, so they are left out of the average rather than counted as 0.
    """
    matches = [
        r.match_percentage for r in results
        if isinstance(r, ComparisonResult) and r.compared
    ]
    passed = sum(1 for r in results if r.passed)
    average = round_percentage(sum(matches) / len(matches)) if matches else None
    return RunSummary(
        total_comparisons=len(results),
        passed=passed,
        failed=len(results) - passed,
        average_match_percentage=average,
    )


def aggregate(
    results: Iterable[ReportEntry],
    timestamp: str,
    base_url: str = "",
    pass_threshold: float = 95.0,
) -> RunReport:
    """Build the run report, ordered by page then viewport."""
    ordered = sorted(results, key=lambda r: r.task.key)
    summary = summarize(ordered)
    logger.debug("Aggregated %d results: %d passed, %d failed",
                 summary.total_comparisons, summary.passed, summary.failed)
    return RunReport(
        timestamp=timestamp,
        base_url=base_url,
        pass_threshold=pass_threshold,
        results=ordered,
        summary=summary,
    )

"""Report persistence."""

from __future__ import annotations

import logging
from pathlib import Path

from mockup_diff.models.report import RunReport

from .html_report import generate_html_report
from .json_report import generate_json_report

logger = logging.getLogger(__name__)


class Reporter:
    """Writes the JSON and HTML documents for a run report."""

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir

    def persist(self, report: RunReport) -> dict[str, str]:
        """Write both report formats. Returns format -> file path."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        stem = f"comparison-report-{report.timestamp}"

        json_path = self.output_dir / f"{stem}.json"
        logger.debug("Generating JSON report...")
        generate_json_report(report, json_path)
        logger.info("JSON report: %s", json_path)

        html_path = self.output_dir / f"{stem}.html"
        logger.debug("Generating HTML report...")
        generate_html_report(report, html_path)
        logger.info("HTML report: %s", html_path)

        return {"json": str(json_path), "html": str(html_path)}

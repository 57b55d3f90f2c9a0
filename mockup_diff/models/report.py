"""Run-level report data structures."""

from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, Field

from mockup_diff.models.capture import CaptureResult
from mockup_diff.models.comparison import ComparisonResult

# Failed captures never reach the comparison stage and are reported as-is
ReportEntry = Union[ComparisonResult, CaptureResult]


class RunSummary(BaseModel):
    total_comparisons: int = 0
    passed: int = 0
    failed: int = 0
    average_match_percentage: Optional[float] = None


class RunReport(BaseModel):
    timestamp: str
    base_url: str = ""
    pass_threshold: float = 95.0
    results: list[ReportEntry] = Field(default_factory=list)
    summary: RunSummary = Field(default_factory=RunSummary)

    @property
    def exit_code(self) -> int:
        return 1 if self.summary.failed > 0 else 0

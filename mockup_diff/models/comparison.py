"""Comparison result data structures produced by the comparison engine."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mockup_diff.models.capture import CaptureTask, FailureCategory, LayoutFinding


class ComparisonStatus(str, Enum):
    COMPARED = "compared"
    COMPARISON_FAILED = "comparison_failed"


class ComparisonOptions(BaseModel):
    """Tuning knobs for the pixel comparison."""
    threshold: float = Field(default=0.1, ge=0.0, le=1.0)  # per-pixel perceptual threshold
    include_anti_aliasing: bool = False
    pass_threshold: float = Field(default=95.0, ge=0.0, le=100.0)
    alpha: float = Field(default=0.1, ge=0.0, le=1.0)  # opacity of unchanged pixels in the diff
    diff_color: tuple[int, int, int] = (255, 0, 0)
    diff_color_alt: Optional[tuple[int, int, int]] = (0, 255, 0)
    aa_color: tuple[int, int, int] = (255, 255, 0)


class ComparisonResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    task: CaptureTask
    status: ComparisonStatus
    match_percentage: float = 0.0
    mismatched_pixels: int = 0
    total_pixels: int = 0
    width: int = 0
    height: int = 0
    passed: bool = False
    image_path: Optional[str] = None
    diff_image_path: Optional[str] = None
    compared_at: str = ""
    failure_category: Optional[FailureCategory] = None
    failure_reason: Optional[str] = None
    # Evidence carried over from the capture
    console_errors: list[str] = Field(default_factory=list)
    page_errors: list[str] = Field(default_factory=list)
    layout_findings: list[LayoutFinding] = Field(default_factory=list)

    @field_validator("match_percentage")
    @classmethod
    def _in_range(cls, v: float) -> float:
        if not 0.0 <= v <= 100.0:
            raise ValueError(f"match_percentage out of range: {v}")
        return v

    @property
    def compared(self) -> bool:
        return self.status == ComparisonStatus.COMPARED

"""Capture task and result data structures produced by the capture orchestrator."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from mockup_diff.models.config import ViewportConfig


class TaskState(str, Enum):
    """Lifecycle of a single matrix cell. Only terminal states reach the report."""
    PENDING = "pending"
    CAPTURING = "capturing"
    CAPTURED = "captured"
    CAPTURE_FAILED = "capture_failed"
    COMPARING = "comparing"
    COMPARED = "compared"
    COMPARISON_FAILED = "comparison_failed"


class FailureCategory(str, Enum):
    REFERENCE_MISSING = "reference_missing"
    IMAGE_DECODE_ERROR = "image_decode_error"
    NAVIGATION_TIMEOUT = "navigation_timeout"
    NAVIGATION_ERROR = "navigation_error"
    CAPTURE_ERROR = "capture_error"
    TASK_TIMEOUT = "task_timeout"
    CANCELLED = "cancelled"
    COMPARISON_ERROR = "comparison_error"


class CaptureStatus(str, Enum):
    CAPTURED = "captured"
    CAPTURE_FAILED = "capture_failed"


class CaptureTask(BaseModel):
    """One (page, viewport) cell of the task matrix."""
    model_config = ConfigDict(frozen=True)

    page_id: str
    url: str
    viewport: ViewportConfig
    reference_image_path: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.page_id, self.viewport.name)

    @property
    def label(self) -> str:
        return f"{self.page_id}/{self.viewport.name}"


class ConsoleMessage(BaseModel):
    type: str
    text: str
    location: Optional[str] = None


class LayoutFinding(BaseModel):
    rule_id: str
    severity: str = "warning"  # info, warning, error
    message: str


class CaptureResult(BaseModel):
    task: CaptureTask
    status: CaptureStatus
    image_path: Optional[str] = None
    captured_at: str = ""
    console_messages: list[ConsoleMessage] = Field(default_factory=list)
    page_errors: list[str] = Field(default_factory=list)
    layout_findings: list[LayoutFinding] = Field(default_factory=list)
    failure_category: Optional[FailureCategory] = None
    failure_reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == CaptureStatus.CAPTURED

    @property
    def passed(self) -> bool:
        # A capture on its own never passes; only a comparison can
        return False

    @property
    def console_errors(self) -> list[str]:
        return [m.text for m in self.console_messages if m.type == "error"]

    @classmethod
    def failed(
        cls,
        task: CaptureTask,
        category: FailureCategory,
        reason: str,
        captured_at: str = "",
        console_messages: list[ConsoleMessage] | None = None,
        page_errors: list[str] | None = None,
    ) -> "CaptureResult":
        return cls(
            task=task,
            status=CaptureStatus.CAPTURE_FAILED,
            captured_at=captured_at,
            console_messages=console_messages or [],
            page_errors=page_errors or [],
            failure_category=category,
            failure_reason=reason,
        )

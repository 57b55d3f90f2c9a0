"""Pytest configuration and shared fixtures."""

from pathlib import Path
from typing import Optional
from unittest.mock import AsyncMock, Mock

import pytest
from PIL import Image

from mockup_diff.models.capture import CaptureResult, CaptureStatus, CaptureTask
from mockup_diff.models.config import PageConfig, RunConfig, ViewportConfig


# ============================================================================
# Image helpers
# ============================================================================


def make_png(
    path: Path,
    size: tuple[int, int],
    color: tuple = (255, 255, 255, 255),
    pixels: Optional[dict[tuple[int, int], tuple]] = None,
) -> Path:
    """Write a solid RGBA PNG, optionally recolouring individual (x, y) pixels."""
    if len(color) == 3:
        color = (*color, 255)
    img = Image.new("RGBA", size, color)
    for (x, y), value in (pixels or {}).items():
        img.putpixel((x, y), value if len(value) == 4 else (*value, 255))
    path.parent.mkdir(parents=True, exist_ok=True)
    img.save(path, format="PNG")
    return path


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def desktop() -> ViewportConfig:
    return ViewportConfig(name="desktop", width=1440, height=900)


@pytest.fixture
def mobile() -> ViewportConfig:
    return ViewportConfig(name="mobile", width=375, height=812)


@pytest.fixture
def run_config(tmp_path: Path, desktop: ViewportConfig, mobile: ViewportConfig) -> RunConfig:
    """Three pages x two viewports with every reference image configured."""
    design = tmp_path / "design"
    return RunConfig(
        base_url="http://localhost:8080",
        pages=[
            PageConfig(id="homepage", path="/", reference_images={
                "desktop": str(design / "home__desktop.png"),
                "mobile": str(design / "home__mobile.png"),
            }),
            PageConfig(id="meet-our-team", path="/meet-our-team/", reference_images={
                "desktop": str(design / "meet__desktop.png"),
                "mobile": str(design / "meet__mobile.png"),
            }),
            PageConfig(id="contact", path="/contact-us/", reference_images={
                "desktop": str(design / "contact__desktop.png"),
                "mobile": str(design / "contact__mobile.png"),
            }),
        ],
        viewports=[desktop, mobile],
        output_dir=str(tmp_path / "results"),
        settle_delay_ms=0,
    )


@pytest.fixture
def task(desktop: ViewportConfig, tmp_path: Path) -> CaptureTask:
    return CaptureTask(
        page_id="homepage",
        url="http://localhost:8080/",
        viewport=desktop,
        reference_image_path=str(tmp_path / "design" / "home__desktop.png"),
    )


@pytest.fixture
def make_capture():
    """Build a successful CaptureResult pointing at an image on disk."""
    def _make(task: CaptureTask, image_path: Path) -> CaptureResult:
        return CaptureResult(
            task=task,
            status=CaptureStatus.CAPTURED,
            image_path=str(image_path),
            captured_at="2025-01-01T00:00:00Z",
        )
    return _make


# ============================================================================
# Playwright Fixtures
# ============================================================================


@pytest.fixture
def mock_page() -> AsyncMock:
    """AsyncMock page with sync event registration."""
    page = AsyncMock()
    page.url = "http://localhost:8080/"
    page.on = Mock()
    return page


@pytest.fixture
def mock_session(mock_page: AsyncMock) -> Mock:
    """Browser session whose contexts all hand out ``mock_page``."""
    context = AsyncMock()
    context.new_page = AsyncMock(return_value=mock_page)
    session = Mock()
    session.new_context = AsyncMock(return_value=context)
    session.close = AsyncMock()
    session.context = context
    return session

"""Image comparison engine: scores a captured screenshot against its reference mock-up."""

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from mockup_diff.compare.pixel_diff import pixel_diff
from mockup_diff.errors import ImageDecodeError, ReferenceMissing
from mockup_diff.models.capture import CaptureResult, FailureCategory
from mockup_diff.models.comparison import ComparisonOptions, ComparisonResult, ComparisonStatus
from mockup_diff.url_utils import file_timestamp, iso_timestamp, safe_filename_part

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, str, Path, Image.Image]

# Padding colour for the part of the canvas a smaller image does not cover
CANVAS_FILL = (255, 255, 255, 255)


@dataclass
class ImageComparison:
    """Outcome of comparing two decoded images on a reconciled canvas."""
    width: int
    height: int
    total_pixels: int
    mismatched_pixels: int
    match_percentage: float
    passed: bool
    diff_image: Image.Image
    anti_aliased_pixels: int = 0


def round_percentage(value: float) -> float:
    """Round half up to two decimal places."""
    return math.floor(value * 100 + 0.5) / 100


def is_passing(match_percentage: float, pass_threshold: float) -> bool:
    return match_percentage >= pass_threshold


def load_image(source: ImageSource) -> Image.Image:
    """Decode an image from bytes, a path or an already open PIL image into RGBA."""
    if isinstance(source, Image.Image):
        return source.convert("RGBA")
    try:
        if isinstance(source, bytes):
            img = Image.open(io.BytesIO(source))
        else:
            img = Image.open(source)
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Cannot decode image: {e}") from e
    if img.width == 0 or img.height == 0:
        raise ImageDecodeError("Image has no pixels")
    return img.convert("RGBA")


def reconcile(img: Image.Image, width: int, height: int) -> Image.Image:
    """Place an image at the top-left of a white canvas of the given size. No scaling."""
    if img.size == (width, height):
        return img
    canvas = Image.new("RGBA", (width, height), CANVAS_FILL)
    canvas.paste(img, (0, 0))
    return canvas


def compare_images(
    captured: ImageSource,
    reference: ImageSource,
    options: ComparisonOptions | None = None,
) -> ImageComparison:
    """Compare a captured image against a reference image.

    Images of different size are both extended to the larger width and height
    and padded with opaque white, so a pure size difference only counts where
    the larger image is not white.
    """
    options = options or ComparisonOptions()
    img1 = load_image(captured)
    img2 = load_image(reference)

    width = max(img1.width, img2.width)
    height = max(img1.height, img2.height)
    buf1 = np.asarray(reconcile(img1, width, height), dtype=np.uint8)
    buf2 = np.asarray(reconcile(img2, width, height), dtype=np.uint8)

    diff = pixel_diff(
        buf1, buf2,
        threshold=options.threshold,
        include_aa=options.include_anti_aliasing,
        alpha=options.alpha,
        diff_color=options.diff_color,
        diff_color_alt=options.diff_color_alt,
        aa_color=options.aa_color,
    )

    total = width * height
    match = round_percentage((total - diff.mismatched) * 100 / total)
    return ImageComparison(
        width=width,
        height=height,
        total_pixels=total,
        mismatched_pixels=diff.mismatched,
        match_percentage=match,
        passed=is_passing(match, options.pass_threshold),
        diff_image=Image.fromarray(diff.output),
        anti_aliased_pixels=diff.anti_aliased,
    )


class ComparisonEngine:
    """Turns successful captures into comparison results and writes diff images."""

    def __init__(self, options: ComparisonOptions, diff_dir: Path, timestamp: str | None = None):
        self.options = options
        self.diff_dir = diff_dir
        self.timestamp = timestamp or file_timestamp()

    def diff_path(self, page_id: str, viewport_name: str) -> Path:
        name = f"{safe_filename_part(page_id)}-{safe_filename_part(viewport_name)}-diff-{self.timestamp}.png"
        return self.diff_dir / name

    def compare(self, capture: CaptureResult) -> ComparisonResult:
        """Compare one capture against its reference. Never raises for per-task problems."""
        task = capture.task
        evidence = {
            "console_errors": capture.console_errors,
            "page_errors": capture.page_errors,
            "layout_findings": capture.layout_findings,
            "image_path": capture.image_path,
        }

        try:
            reference = self._read_reference(task.reference_image_path)
            if not capture.image_path:
                raise ImageDecodeError("Capture produced no screenshot")
            result = compare_images(capture.image_path, reference, self.options)
            diff_path = self.diff_path(task.page_id, task.viewport.name)
            diff_path.parent.mkdir(parents=True, exist_ok=True)
            result.diff_image.save(diff_path, format="PNG")
        except ReferenceMissing as e:
            logger.warning("[%s] %s", task.label, e)
            return self._failed(capture, FailureCategory.REFERENCE_MISSING, str(e), evidence)
        except ImageDecodeError as e:
            logger.warning("[%s] %s", task.label, e)
            return self._failed(capture, FailureCategory.IMAGE_DECODE_ERROR, str(e), evidence)
        except Exception as e:
            logger.error("[%s] comparison crashed: %s", task.label, e)
            return self._failed(
                capture, FailureCategory.COMPARISON_ERROR, f"{type(e).__name__}: {e}", evidence,
            )

        logger.info(
            "[%s] %s match %.2f%% (%d/%d pixels differ)",
            "PASS" if result.passed else "FAIL", task.label,
            result.match_percentage, result.mismatched_pixels, result.total_pixels,
        )
        return ComparisonResult(
            task=task,
            status=ComparisonStatus.COMPARED,
            match_percentage=result.match_percentage,
            mismatched_pixels=result.mismatched_pixels,
            total_pixels=result.total_pixels,
            width=result.width,
            height=result.height,
            passed=result.passed,
            diff_image_path=str(diff_path),
            compared_at=iso_timestamp(),
            **evidence,
        )

    @staticmethod
    def _read_reference(path: str | None) -> bytes:
        if not path:
            raise ReferenceMissing("No reference image configured")
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise ReferenceMissing(f"Reference image not readable: {path} ({e.strerror or e})") from e

    @staticmethod
    def _failed(
        capture: CaptureResult, category: FailureCategory, reason: str, evidence: dict,
    ) -> ComparisonResult:
        return ComparisonResult(
            task=capture.task,
            status=ComparisonStatus.COMPARISON_FAILED,
            compared_at=iso_timestamp(),
            failure_category=category,
            failure_reason=reason,
            **evidence,
        )

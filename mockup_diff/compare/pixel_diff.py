"""Pixel-level image difference with perceptual colour distance and anti-aliasing detection.

Follows the pixelmatch approach: colours are compared in YIQ space after
blending semi-transparent pixels against white, and a pixel that differs is
ignored when it looks like an anti-aliased edge in either image.

All arrays are ``(height, width, 4)`` RGBA ``uint8`` buffers of equal shape.
Colour maths runs in ``float32`` over bands of rows, and the anti-aliasing
test only looks at the pixels that differ, so memory stays proportional to a
band rather than to the whole (possibly very tall) page. Only element-wise
IEEE arithmetic is used, so identical inputs always give identical outputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

# Maximum possible YIQ delta between two colours
MAX_YIQ_DELTA = 35215

# Rows processed at once
BAND_ROWS = 256

# Neighbour offsets (dx, dy), x outer / y inner, in the order the
# anti-aliasing scan visits them. The order decides ties for min/max.
_NEIGHBOURS = [(dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1) if (dx, dy) != (0, 0)]


@dataclass
class PixelDiff:
    mismatched: int
    output: np.ndarray  # diff image, RGBA uint8
    anti_aliased: int = 0


def _rgb2y(r, g, b):
    return r * np.float32(0.29889531) + g * np.float32(0.58662247) + b * np.float32(0.11448223)


def _rgb2i(r, g, b):
    return r * np.float32(0.59597799) - g * np.float32(0.27417610) - b * np.float32(0.32180189)


def _rgb2q(r, g, b):
    return r * np.float32(0.21147017) - g * np.float32(0.52261711) + b * np.float32(0.31114694)


def _blend(c, a):
    return np.float32(255) + (c - np.float32(255)) * a


def _blended(px: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """RGB channels of ``(..., 4)`` pixels as float32, blended with white according to alpha."""
    rgb = px[..., :3].astype(np.float32)
    translucent = px[..., 3] < 255
    if translucent.any():
        a = (px[..., 3].astype(np.float32) / np.float32(255))[..., None]
        rgb = np.where(translucent[..., None], _blend(rgb, a), rgb)
    return rgb[..., 0], rgb[..., 1], rgb[..., 2]


def color_delta(px1: np.ndarray, px2: np.ndarray) -> np.ndarray:
    """Signed squared YIQ distance per pixel.

    The sign is negative where the first image is brighter than the second,
    which selects the alternative diff colour.
    """
    r1, g1, b1 = _blended(px1)
    r2, g2, b2 = _blended(px2)
    y1 = _rgb2y(r1, g1, b1)
    y2 = _rgb2y(r2, g2, b2)
    y = y1 - y2
    i = _rgb2i(r1, g1, b1) - _rgb2i(r2, g2, b2)
    q = _rgb2q(r1, g1, b1) - _rgb2q(r2, g2, b2)
    delta = np.float32(0.5053) * y * y + np.float32(0.299) * i * i + np.float32(0.1957) * q * q
    delta = np.where(y1 > y2, -delta, delta)
    identical = np.all(px1 == px2, axis=-1)
    return np.where(identical, np.float32(0), delta)


def luminance(px: np.ndarray) -> np.ndarray:
    r, g, b = _blended(px)
    return _rgb2y(r, g, b)


def _on_edge(ys: np.ndarray, xs: np.ndarray, height: int, width: int) -> np.ndarray:
    return ((ys == 0) | (ys == height - 1) | (xs == 0) | (xs == width - 1)).astype(np.int32)


def _neighbour(ys: np.ndarray, xs: np.ndarray, dx: int, dy: int, height: int, width: int):
    """In-bounds mask and clipped coordinates of the (dx, dy) neighbour of each point."""
    nx = xs + dx
    ny = ys + dy
    valid = (nx >= 0) & (nx < width) & (ny >= 0) & (ny < height)
    return valid, np.clip(ny, 0, height - 1), np.clip(nx, 0, width - 1)


def many_siblings(img: np.ndarray, ys: np.ndarray, xs: np.ndarray) -> np.ndarray:
    """True where the pixel at ``(ys, xs)`` has more than two identical neighbours.

    Image borders count as one identical neighbour.
    """
    height, width = img.shape[:2]
    centre = img[ys, xs]
    zeroes = _on_edge(ys, xs, height, width)
    for dx, dy in _NEIGHBOURS:
        valid, ny, nx = _neighbour(ys, xs, dx, dy, height, width)
        zeroes += valid & np.all(img[ny, nx] == centre, axis=-1)
    return zeroes > 2


def antialiased(img: np.ndarray, other: np.ndarray, ys: np.ndarray, xs: np.ndarray) -> np.ndarray:
    """Anti-aliasing test for the pixels at ``(ys, xs)`` of ``img``.

    A pixel is anti-aliased when it sits between a darker and a brighter
    neighbour, has at most two neighbours of equal brightness, and the darkest
    or brightest neighbour lies in a flat region of both images.
    """
    height, width = img.shape[:2]
    centre = luminance(img[ys, xs])
    zeroes = _on_edge(ys, xs, height, width)
    min_delta = np.zeros(len(ys), dtype=np.float32)
    max_delta = np.zeros(len(ys), dtype=np.float32)
    min_x, min_y = xs.copy(), ys.copy()
    max_x, max_y = xs.copy(), ys.copy()

    for dx, dy in _NEIGHBOURS:
        valid, ny, nx = _neighbour(ys, xs, dx, dy, height, width)
        delta = centre - luminance(img[ny, nx])

        zero = valid & (delta == 0)
        zeroes += zero
        lower = valid & ~zero & (delta < min_delta)
        higher = valid & ~zero & (delta > max_delta)
        min_delta = np.where(lower, delta, min_delta)
        min_x = np.where(lower, nx, min_x)
        min_y = np.where(lower, ny, min_y)
        max_delta = np.where(higher, delta, max_delta)
        max_x = np.where(higher, nx, max_x)
        max_y = np.where(higher, ny, max_y)

    result = (zeroes <= 2) & (min_delta < 0) & (max_delta > 0)
    if not result.any():
        return result
    min_flat = many_siblings(img, min_y, min_x) & many_siblings(other, min_y, min_x)
    max_flat = many_siblings(img, max_y, max_x) & many_siblings(other, max_y, max_x)
    return result & (min_flat | max_flat)


def _gray_background(px: np.ndarray, alpha: float) -> np.ndarray:
    """Faded greyscale rendering of ``px`` used for the unchanged part of the diff."""
    rgb = px[..., :3].astype(np.float32)
    y = _rgb2y(rgb[..., 0], rgb[..., 1], rgb[..., 2])
    del rgb
    a = np.float32(alpha) * px[..., 3].astype(np.float32) / np.float32(255)
    val = np.clip(np.floor(_blend(y, a)), 0, 255).astype(np.uint8)
    out = np.empty(px.shape, dtype=np.uint8)
    out[..., :3] = val[..., None]
    out[..., 3] = 255
    return out


def pixel_diff(
    img1: np.ndarray,
    img2: np.ndarray,
    threshold: float = 0.1,
    include_aa: bool = False,
    alpha: float = 0.1,
    diff_color: tuple[int, int, int] = (255, 0, 0),
    diff_color_alt: Optional[tuple[int, int, int]] = None,
    aa_color: tuple[int, int, int] = (255, 255, 0),
) -> PixelDiff:
    """Count mismatched pixels between two equally sized RGBA buffers."""
    if img1.shape != img2.shape:
        raise ValueError(f"Image sizes do not match: {img1.shape} vs {img2.shape}")
    if img1.ndim != 3 or img1.shape[2] != 4:
        raise ValueError("Expected RGBA buffers of shape (height, width, 4)")

    height = img1.shape[0]
    output = np.empty(img1.shape, dtype=np.uint8)
    identical = np.array_equal(img1, img2)
    max_delta = MAX_YIQ_DELTA * threshold * threshold
    mismatched = 0
    anti_aliased = 0

    for start in range(0, height, BAND_ROWS):
        band1 = img1[start:start + BAND_ROWS]
        band2 = img2[start:start + BAND_ROWS]
        out = output[start:start + BAND_ROWS]
        out[...] = _gray_background(band1, alpha)
        if identical:
            continue

        delta = color_delta(band1, band2)
        rows, xs = np.nonzero(np.abs(delta) > max_delta)
        if not len(rows):
            continue
        brighter = delta[rows, xs] < 0
        del delta

        if include_aa:
            aa = np.zeros(len(rows), dtype=bool)
        else:
            ys = rows + start
            aa = antialiased(img1, img2, ys, xs) | antialiased(img2, img1, ys, xs)
        out[rows[aa], xs[aa], :3] = aa_color

        rows, xs, brighter = rows[~aa], xs[~aa], brighter[~aa]
        if diff_color_alt is not None:
            out[rows[brighter], xs[brighter], :3] = diff_color_alt
            out[rows[~brighter], xs[~brighter], :3] = diff_color
        else:
            out[rows, xs, :3] = diff_color

        mismatched += len(rows)
        anti_aliased += int(aa.sum())

    return PixelDiff(mismatched=mismatched, output=output, anti_aliased=anti_aliased)

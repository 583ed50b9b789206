"""Mask morphology: invert, grow, shrink, feather, and selection queries.

Every transform returns a new mask and leaves its input untouched, so a
caller can compare before and after and decide whether to keep the result.
A mask byte above 127 counts as selected.
"""
from typing import Optional

import numpy as np
from scipy.ndimage import binary_dilation, binary_erosion, correlate, generate_binary_structure

from pixelseg.raster_ingest import as_pixel_buffer, check_mask
from pixelseg.types import Bounds, InvalidDimensionsError, Mask, PixelBuffer, SELECTED_THRESHOLD

_EIGHT_CONNECTED = generate_binary_structure(2, 2)
_FOUR_CONNECTED = generate_binary_structure(2, 1)


def invert(mask: Mask) -> Mask:
    """Flip selection strength: 255 - value per pixel."""
    return (255 - _as_mask(mask)).astype(np.uint8)


def grow(mask: Mask, iterations: int = 1) -> Mask:
    """
    Dilate the selection.

    Each iteration selects (255) every unselected pixel that has a
    selected pixel among its 8 neighbors. Pixels beyond the border count
    as unselected.

    Args:
        mask: Input mask
        iterations: Number of one-pixel steps (0 returns a copy)

    Returns:
        New mask
    """
    _check_iterations(iterations)
    result = _as_mask(mask).copy()
    for _ in range(iterations):
        selected = result > SELECTED_THRESHOLD
        touching = binary_dilation(selected, structure=_EIGHT_CONNECTED)
        result[~selected & touching] = 255
    return result


def shrink(mask: Mask, iterations: int = 1) -> Mask:
    """
    Erode the selection.

    Each iteration clears (0) every selected pixel that has an
    unselected pixel among its 4 orthogonal neighbors. Pixels beyond the
    border count as unselected, so selections touching the edge erode
    from it as well.

    Args:
        mask: Input mask
        iterations: Number of one-pixel steps (0 returns a copy)

    Returns:
        New mask
    """
    _check_iterations(iterations)
    result = _as_mask(mask).copy()
    for _ in range(iterations):
        selected = result > SELECTED_THRESHOLD
        kept = binary_erosion(selected, structure=_FOUR_CONNECTED, border_value=0)
        result[selected & ~kept] = 0
    return result


def feather(mask: Mask, radius: int = 3) -> Mask:
    """
    Soften selection edges with a Gaussian blur.

    The kernel is (2 * radius + 1) square with sigma = radius / 3. Near
    the border the kernel is truncated and renormalized by the in-bounds
    weight, so edges keep their strength instead of fading toward zero.

    Args:
        mask: Input mask
        radius: Kernel radius in pixels; 0 or less returns a copy

    Returns:
        New mask
    """
    mask = _as_mask(mask)
    radius = int(radius)
    if radius <= 0 or mask.size == 0:
        return mask.copy()

    kernel = gaussian_kernel(radius)
    total = correlate(mask.astype(np.float64), kernel, mode='constant', cval=0.0)
    weight = correlate(np.ones(mask.shape, dtype=np.float64), kernel, mode='constant', cval=0.0)

    # Round half up to match integer pixel arithmetic
    return np.clip(np.floor(total / weight + 0.5), 0, 255).astype(np.uint8)


def gaussian_kernel(radius: int) -> np.ndarray:
    """Unnormalized (2r+1)x(2r+1) Gaussian kernel with sigma = r / 3."""
    sigma = radius / 3
    offsets = np.arange(-radius, radius + 1, dtype=np.float64)
    dx, dy = np.meshgrid(offsets, offsets)
    return np.exp(-(dx * dx + dy * dy) / (2 * sigma * sigma))


def bounds(mask: Mask) -> Optional[Bounds]:
    """Bounding box of selected (>127) pixels, or None when nothing is selected."""
    ys, xs = np.nonzero(_as_mask(mask) > SELECTED_THRESHOLD)
    if len(xs) == 0:
        return None
    return Bounds(int(xs.min()), int(ys.min()), int(xs.max()), int(ys.max()))


def has_selection(mask: Optional[Mask]) -> bool:
    """True if any pixel has non-zero strength."""
    if mask is None:
        return False
    return bool(np.any(np.asarray(mask) > 0))


def apply_mask(buffer: PixelBuffer, mask: Mask) -> PixelBuffer:
    """
    Cut the selection out of an image.

    Returns a copy whose alpha is reduced by the mask strength
    (255 = fully removed).

    Raises:
        InvalidDimensionsError: If mask and buffer sizes differ
    """
    buffer = as_pixel_buffer(buffer)
    mask = check_mask(mask, buffer)
    result = buffer.copy()
    alpha = result[..., 3].astype(np.int16) - mask.astype(np.int16)
    result[..., 3] = np.clip(alpha, 0, 255).astype(np.uint8)
    return result


def _as_mask(mask: Mask) -> Mask:
    mask = np.asarray(mask)
    if mask.ndim != 2:
        raise InvalidDimensionsError(f"Mask must be 2D, got {mask.ndim}D")
    if mask.dtype == bool:
        mask = mask.astype(np.uint8) * 255
    elif mask.dtype != np.uint8:
        mask = np.clip(mask, 0, 255).astype(np.uint8)
    return mask


def _check_iterations(iterations: int) -> None:
    if iterations < 0:
        raise ValueError(f"iterations must be >= 0, got {iterations}")

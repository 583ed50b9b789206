"""Nearest-palette-color classification of pixels."""
import logging

import numpy as np

from pixelseg.raster_ingest import as_pixel_buffer
from pixelseg.types import Classification, OPACITY_THRESHOLD, Palette, PixelBuffer, TRANSPARENT

logger = logging.getLogger(__name__)


def classify(buffer: PixelBuffer, palette: Palette, chunk_rows: int = 256) -> Classification:
    """
    Assign every pixel to its nearest palette color.

    Pixels with alpha below 128 get TRANSPARENT. Opaque pixels get the
    index of the palette entry with the smallest RGB Euclidean distance;
    ties go to the lowest index.

    Rows are processed in chunks so the (pixels x palette) distance table
    stays bounded on large images.

    Args:
        buffer: RGBA pixel buffer
        palette: Palette to classify against (may be empty)
        chunk_rows: Number of image rows per batch

    Returns:
        (H, W) uint16 array of palette indices or TRANSPARENT
    """
    buffer = as_pixel_buffer(buffer)
    h, w = buffer.shape[:2]
    result = np.full((h, w), TRANSPARENT, dtype=np.uint16)

    if len(palette) == 0 or h == 0 or w == 0:
        return result

    colors = palette.as_array()[:, :3].astype(np.int32)
    chunk_rows = max(1, int(chunk_rows))

    for y0 in range(0, h, chunk_rows):
        chunk = buffer[y0:y0 + chunk_rows]
        opaque = chunk[..., 3] >= OPACITY_THRESHOLD
        if not np.any(opaque):
            continue

        rgb = chunk[opaque][:, :3].astype(np.int32)
        diff = rgb[:, None, :] - colors[None, :, :]
        # Squared distance preserves the arg-min of the Euclidean distance
        dist2 = np.einsum('ijk,ijk->ij', diff, diff)
        # argmin returns the first minimum, i.e. the lowest index on ties
        nearest = np.argmin(dist2, axis=1).astype(np.uint16)

        out = result[y0:y0 + chunk_rows]
        out[opaque] = nearest

    logger.debug(f"Classified {h}x{w} pixels against {len(palette)} colors")
    return result

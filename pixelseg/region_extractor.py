"""Connected same-color region extraction from a pixel classification."""
import logging
from typing import List

import numpy as np
from scipy.ndimage import generate_binary_structure, label

from pixelseg.types import (
    Bounds,
    Classification,
    InvalidDimensionsError,
    Palette,
    Region,
    SegmentationError,
    TRANSPARENT,
)

logger = logging.getLogger(__name__)

# Orthogonal neighbors only
FOUR_CONNECTED = generate_binary_structure(2, 1)


def segment(classification: Classification, palette: Palette, min_area: int = 2) -> List[Region]:
    """
    Split a classification into 4-connected regions of one palette color.

    Components are labelled per palette index with scipy's two-pass
    labelling (no recursion, so large uniform areas are safe). Regions
    are discovered in row-major order of their first pixel, those
    smaller than `min_area` are dropped as noise, and the rest are
    stably sorted by descending pixel count so large background shapes
    come before the detail drawn on top of them.

    Args:
        classification: (H, W) array of palette indices or TRANSPARENT
        palette: Palette the classification was built with
        min_area: Minimum pixel count for a region to be kept

    Returns:
        Regions, largest first

    Raises:
        InvalidDimensionsError: If the classification is not 2D
        SegmentationError: If an index is outside the palette
    """
    classification = np.asarray(classification)
    if classification.ndim != 2:
        raise InvalidDimensionsError(f"Classification must be 2D, got {classification.ndim}D")

    h, w = classification.shape
    found = []

    indices = np.unique(classification[classification != TRANSPARENT])
    for color_index in indices:
        color_index = int(color_index)
        if color_index >= len(palette):
            raise SegmentationError(
                f"Classification index {color_index} outside palette of {len(palette)} colors"
            )

        labeled, num_features = label(classification == color_index, structure=FOUR_CONNECTED)
        flat = labeled.ravel()

        # Group flat indices by label; the stable sort keeps each group row-major
        order = np.argsort(flat, kind='stable')
        counts = np.bincount(flat, minlength=num_features + 1)
        ends = np.cumsum(counts)

        for component in range(1, num_features + 1):
            if counts[component] < min_area:
                continue
            members = order[ends[component - 1]:ends[component]]
            ys, xs = np.divmod(members, w)
            pixels = np.stack([xs, ys], axis=1).astype(np.int64)
            bounds = Bounds(
                min_x=int(xs.min()),
                min_y=int(ys.min()),
                max_x=int(xs.max()),
                max_y=int(ys.max()),
            )
            region = Region(
                color_index=color_index,
                color=palette[color_index],
                pixels=pixels,
                bounds=bounds,
            )
            found.append((int(members[0]), region))

    found.sort(key=lambda item: item[0])
    regions = [region for _, region in found]
    regions.sort(key=lambda r: r.area, reverse=True)

    logger.info(f"Extracted {len(regions)} regions from {h}x{w} classification")
    return regions


def label_regions(regions: List[Region], width: int, height: int) -> np.ndarray:
    """
    Paint regions into an (H, W) label image.

    Pixel value is the region's position in `regions` plus one; pixels
    in no region are 0.
    """
    labels = np.zeros((height, width), dtype=np.int32)
    for i, region in enumerate(regions, start=1):
        labels[region.pixels[:, 1], region.pixels[:, 0]] = i
    return labels

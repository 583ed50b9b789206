"""Seeded flood fill over a boolean candidate map."""
from typing import Tuple

import numpy as np
from scipy.ndimage import label

from pixelseg.region_extractor import FOUR_CONNECTED


def flood_fill(candidates: np.ndarray, seed: Tuple[int, int]) -> np.ndarray:
    """
    Collect the 4-connected component of `candidates` containing `seed`.

    Uses scipy's two-pass labelling, so region size is bounded by
    memory rather than the interpreter's recursion limit.

    Args:
        candidates: (H, W) boolean array of pixels the fill may enter
        seed: (x, y) start pixel

    Returns:
        (H, W) boolean array of reached pixels; all False when the seed
        is off the grid or not a candidate
    """
    candidates = np.asarray(candidates, dtype=bool)
    h, w = candidates.shape
    x, y = seed

    if not (0 <= x < w and 0 <= y < h) or not candidates[y, x]:
        return np.zeros((h, w), dtype=bool)

    labeled, _ = label(candidates, structure=FOUR_CONNECTED)
    return labeled == labeled[y, x]

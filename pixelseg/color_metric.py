"""Color distance metrics shared by palette building, classification and selection."""
from typing import Callable, Dict, Sequence
import numpy as np
from skimage.color import deltaE_ciede2000, rgb2lab

ColorLike = Sequence[int]


def distance(a: ColorLike, b: ColorLike, weighted: bool = False) -> float:
    """
    Euclidean distance between two RGBA colors.

    Args:
        a: First color (r, g, b[, a])
        b: Second color (r, g, b[, a])
        weighted: Include alpha with double weight, so transparency
            dominates the comparison

    Returns:
        Distance in 0-255 channel units
    """
    dr = int(a[0]) - int(b[0])
    dg = int(a[1]) - int(b[1])
    db = int(a[2]) - int(b[2])
    total = dr * dr + dg * dg + db * db
    if weighted:
        da = (_alpha(a) - _alpha(b)) * 2
        total += da * da
    return float(np.sqrt(total))


def distances(pixels: np.ndarray, color: ColorLike, weighted: bool = False) -> np.ndarray:
    """
    Vectorized `distance` from every pixel to one color.

    Args:
        pixels: Array of shape (..., 3) or (..., 4)
        color: Reference color
        weighted: Include alpha with double weight

    Returns:
        Float array with the pixels' leading shape
    """
    diff = pixels[..., :3].astype(np.int32) - np.asarray(color[:3], dtype=np.int32)
    total = np.sum(diff * diff, axis=-1)
    if weighted:
        pixel_alpha = pixels[..., 3].astype(np.int32) if pixels.shape[-1] > 3 else 255
        da = (pixel_alpha - _alpha(color)) * 2
        total = total + da * da
    return np.sqrt(total)


def perceptual_distance(a: ColorLike, b: ColorLike) -> float:
    """Weighted RGB distance ("redmean") approximating human perception."""
    rmean = (int(a[0]) + int(b[0])) / 2
    dr = int(a[0]) - int(b[0])
    dg = int(a[1]) - int(b[1])
    db = int(a[2]) - int(b[2])
    weight_r = 2 + rmean / 256
    weight_b = 2 + (255 - rmean) / 256
    return float(np.sqrt(weight_r * dr * dr + 4 * dg * dg + weight_b * db * db))


def ciede2000_distance(a: ColorLike, b: ColorLike) -> float:
    """
    CIEDE2000 difference scaled by 2.55 to sit on the same 0-255 scale
    as the RGB metrics, so one tolerance works for all of them.
    """
    rgb = np.array([[a[:3], b[:3]]], dtype=np.float64) / 255.0
    lab = rgb2lab(rgb)
    return float(deltaE_ciede2000(lab[0, 0], lab[0, 1])) * 2.55


def _alpha(color: ColorLike) -> int:
    return int(color[3]) if len(color) > 3 else 255


METRICS: Dict[str, Callable[[ColorLike, ColorLike], float]] = {
    "euclidean": distance,
    "redmean": perceptual_distance,
    "ciede2000": ciede2000_distance,
}


def get_metric(name: str) -> Callable[[ColorLike, ColorLike], float]:
    """Look up a distance function by name."""
    try:
        return METRICS[name]
    except KeyError:
        raise ValueError(f"Unknown color metric: {name}. Use one of {sorted(METRICS)}") from None

"""Palette construction: color histograms, median cut, and fixed-palette snapping."""
import colorsys
import logging
import re
from typing import Dict, List, NamedTuple, Optional, Sequence, Union

import numpy as np
from sklearn.cluster import KMeans

from pixelseg.color_metric import get_metric
from pixelseg.raster_ingest import as_pixel_buffer
from pixelseg.types import Color, OPACITY_THRESHOLD, Palette, PixelBuffer

logger = logging.getLogger(__name__)

# Channel step used to merge near-identical anti-aliased shades
HISTOGRAM_STEP = 8

Histogram = Dict[Color, int]


def build_histogram(buffer: PixelBuffer) -> Histogram:
    """
    Count coarsely quantized opaque colors in an image.

    Each channel is snapped to a multiple of 8 (rounding half up, clamped
    to 255). Pixels with alpha below 128 are skipped and every counted
    color is made fully opaque.

    Args:
        buffer: RGBA pixel buffer

    Returns:
        Mapping of quantized color to pixel count, ordered by first
        occurrence in row-major scan
    """
    pixels = as_pixel_buffer(buffer).reshape(-1, 4)
    opaque = pixels[pixels[:, 3] >= OPACITY_THRESHOLD, :3].astype(np.int32)

    if opaque.shape[0] == 0:
        return {}

    quantized = (opaque + HISTOGRAM_STEP // 2) // HISTOGRAM_STEP * HISTOGRAM_STEP
    quantized = np.minimum(quantized, 255)

    unique, first_index, counts = np.unique(
        quantized, axis=0, return_index=True, return_counts=True
    )
    order = np.argsort(first_index, kind='stable')

    return {
        Color(int(unique[i, 0]), int(unique[i, 1]), int(unique[i, 2]), 255): int(counts[i])
        for i in order
    }


def quantize(histogram: Histogram, max_colors: int) -> Palette:
    """
    Reduce a histogram to at most `max_colors` colors with median cut.

    The bucket with the widest single-channel range (r, g or b) is split
    at its median along that channel until `max_colors` buckets exist or
    no bucket has any range left. Ties go to the first bucket found, then
    to the lowest channel index. Each bucket becomes its count-weighted
    mean color.

    Args:
        histogram: Color counts from `build_histogram`
        max_colors: Upper bound on palette size

    Returns:
        Opaque palette; the histogram colors themselves when there are
        already few enough

    Raises:
        ValueError: If max_colors < 1
    """
    if max_colors < 1:
        raise ValueError(f"max_colors must be >= 1, got {max_colors}")

    if len(histogram) <= max_colors:
        return Palette.from_colors(list(histogram))

    entries = np.array(
        [(c.r, c.g, c.b, count) for c, count in histogram.items()], dtype=np.int64
    )
    buckets: List[np.ndarray] = [entries]

    while len(buckets) < max_colors:
        max_range = -1
        split_idx = 0
        split_channel = 0

        for i, bucket in enumerate(buckets):
            if len(bucket) < 2:
                continue
            ranges = bucket[:, :3].max(axis=0) - bucket[:, :3].min(axis=0)
            for channel in range(3):
                if ranges[channel] > max_range:
                    max_range = int(ranges[channel])
                    split_idx = i
                    split_channel = channel

        if max_range <= 0:
            break

        bucket = buckets[split_idx]
        bucket = bucket[np.argsort(bucket[:, split_channel], kind='stable')]
        mid = len(bucket) // 2
        buckets[split_idx:split_idx + 1] = [bucket[:mid], bucket[mid:]]

    colors = []
    for bucket in buckets:
        weights = bucket[:, 3].astype(np.float64)
        mean = (bucket[:, :3] * weights[:, None]).sum(axis=0) / weights.sum()
        colors.append(Color.clamped(mean[0], mean[1], mean[2], 255))

    palette = Palette.from_colors(colors)
    logger.debug(f"Median cut reduced {len(histogram)} colors to {len(palette)}")
    return palette


def snap_to_palette(
    histogram: Histogram,
    fixed_palette: Sequence[Sequence[int]],
    tolerance: float,
    metric: str = "euclidean",
) -> Palette:
    """
    Select the fixed-palette colors that the image actually uses.

    Every histogram color is matched to its nearest fixed color; that
    color is kept only when the distance is within `tolerance`.

    Args:
        histogram: Color counts from `build_histogram`
        fixed_palette: Candidate colors, e.g. exact brand colors
        tolerance: Maximum distance for a match
        metric: Name of the distance function (see `color_metric.METRICS`)

    Returns:
        Subset of `fixed_palette` in order of first use
    """
    fixed = [_as_color(c) for c in fixed_palette]
    if not fixed or not histogram:
        return Palette()

    measure = get_metric(metric)
    used: Dict[int, None] = {}

    for color in histogram:
        min_dist = float('inf')
        closest = -1
        for i, candidate in enumerate(fixed):
            dist = measure(color, candidate)
            if dist < min_dist:
                min_dist = dist
                closest = i
        if closest >= 0 and min_dist <= tolerance:
            used.setdefault(closest, None)

    return Palette.from_colors([fixed[i] for i in used])


class SnapResult(NamedTuple):
    color: Color
    distance: float
    matched: bool


def snap_color(
    color: Sequence[int],
    palette: Sequence[Sequence[int]],
    tolerance: float,
    metric: str = "euclidean",
) -> SnapResult:
    """Snap one color to its nearest palette entry when within tolerance."""
    color = _as_color(color)
    if not palette:
        return SnapResult(color, 0.0, False)

    measure = get_metric(metric)
    min_dist = float('inf')
    closest = color
    for candidate in palette:
        candidate = _as_color(candidate)
        dist = measure(color, candidate)
        if dist < min_dist:
            min_dist = dist
            closest = candidate

    matched = min_dist <= tolerance
    return SnapResult(closest if matched else color, min_dist, matched)


def reduce_palette(colors: Sequence[Sequence[int]], target_count: int, random_state: int = 42) -> Palette:
    """
    Reduce a list of colors to `target_count` representatives with K-means.

    Args:
        colors: Colors to reduce
        target_count: Number of colors to keep (must be >= 1)
        random_state: Random seed for reproducibility

    Returns:
        Opaque palette of cluster centers
    """
    if target_count < 1:
        raise ValueError(f"target_count must be >= 1, got {target_count}")

    palette = Palette.from_colors([_as_color(c) for c in colors])
    if len(palette) <= target_count:
        return palette

    pixels = np.float32(palette.as_array()[:, :3])
    kmeans = KMeans(n_clusters=target_count, random_state=random_state, n_init=10)
    kmeans.fit(pixels)

    return Palette.from_colors(
        [Color.clamped(c[0], c[1], c[2], 255) for c in kmeans.cluster_centers_]
    )


def sort_by_luminance(palette: Palette) -> Palette:
    """Order colors dark to light (Rec. 601 luma)."""
    return Palette(tuple(sorted(palette, key=lambda c: 0.299 * c.r + 0.587 * c.g + 0.114 * c.b)))


def sort_by_hue(palette: Palette) -> Palette:
    """Order colors by hue angle; grays sort first."""
    return Palette(tuple(sorted(palette, key=lambda c: colorsys.rgb_to_hsv(c.r / 255, c.g / 255, c.b / 255)[0])))


_HEX_RE = re.compile(r"^#?([0-9a-f]{3}|[0-9a-f]{6}|[0-9a-f]{8})$")
_RGB_RE = re.compile(r"^rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*(?:,\s*([\d.]+)\s*)?\)$")


def parse_color(value: Union[str, Sequence[int]]) -> Color:
    """
    Parse a color from a hex string, an rgb()/rgba() string, or a tuple.

    Raises:
        ValueError: If the value is not a recognizable color
    """
    if not isinstance(value, str):
        return _as_color(value)

    text = value.strip().lower()

    match = _HEX_RE.match(text)
    if match:
        digits = match.group(1)
        if len(digits) == 3:
            digits = "".join(ch * 2 for ch in digits)
        channels = [int(digits[i:i + 2], 16) for i in range(0, len(digits), 2)]
        return Color(*channels)

    match = _RGB_RE.match(text)
    if match:
        r, g, b = (int(match.group(i)) for i in range(1, 4))
        alpha = match.group(4)
        a = 255 if alpha is None else float(alpha) * 255 if float(alpha) <= 1 else float(alpha)
        return Color.clamped(r, g, b, a)

    raise ValueError(f"Unrecognized color: {value!r}")


def parse_palette(value: Union[str, Sequence]) -> Palette:
    """Parse a comma-separated string or a list of colors into a palette."""
    if isinstance(value, str):
        parts = [p for p in re.split(r",(?![^(]*\))", value) if p.strip()]
        return Palette.from_colors([parse_color(p) for p in parts])
    return Palette.from_colors([parse_color(v) for v in value])


def _as_color(value: Sequence[int]) -> Color:
    if isinstance(value, Color):
        return value
    channels = [int(v) for v in value]
    if len(channels) not in (3, 4):
        raise ValueError(f"Expected 3 or 4 channels, got {len(channels)}")
    return Color.clamped(*channels)


NAMED_PALETTES: Dict[str, Palette] = {
    "web-safe": Palette.from_colors([
        (0, 0, 0), (255, 255, 255), (255, 0, 0), (0, 255, 0),
        (0, 0, 255), (255, 255, 0), (255, 0, 255), (0, 255, 255),
        (128, 128, 128), (255, 165, 0), (128, 0, 128), (165, 42, 42),
    ]),
    "material": Palette.from_colors([
        (244, 67, 54), (233, 30, 99), (156, 39, 176), (103, 58, 183),
        (63, 81, 181), (33, 150, 243), (3, 169, 244), (0, 188, 212),
        (0, 150, 136), (76, 175, 80), (139, 195, 74), (205, 220, 57),
        (255, 235, 59), (255, 193, 7), (255, 152, 0), (255, 87, 34),
        (121, 85, 72), (158, 158, 158), (96, 125, 139), (0, 0, 0),
        (255, 255, 255),
    ]),
    # 0, 16, ..., 240, 255
    "grayscale": Palette.from_colors([(min(255, i * 16),) * 3 for i in range(17)]),
    "pantone": Palette.from_colors([
        (0, 82, 147), (155, 35, 53), (221, 65, 36), (136, 176, 75),
        (91, 94, 166), (187, 38, 73), (255, 190, 152),
    ]),
}


def get_palette(name: str) -> Optional[Palette]:
    """Return a predefined palette by name, or None."""
    return NAMED_PALETTES.get(name)

"""Batch color segmentation: prepare an image for vector tracing."""
import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
from scipy.ndimage import gaussian_filter

from pixelseg.classifier import classify
from pixelseg.palette import build_histogram, quantize, snap_to_palette
from pixelseg.raster_ingest import as_pixel_buffer, load_pixel_buffer
from pixelseg.region_extractor import segment
from pixelseg.types import PixelBuffer, SegmentationResult, SegmenterConfig

logger = logging.getLogger(__name__)


class ColorSegmenter:
    """Palette reduction, pixel classification and region extraction in one pass."""

    def __init__(self, config: Optional[SegmenterConfig] = None):
        """Initialize segmenter with configuration.

        Args:
            config: Segmenter configuration. Uses defaults if None.
        """
        self.config = config or SegmenterConfig()

    def segment(self, buffer: PixelBuffer) -> SegmentationResult:
        """
        Segment a pixel buffer into flat color regions.

        Steps:
            1. Optional Gaussian blur of the color channels
            2. Histogram of coarsely quantized opaque colors
            3. Palette by median cut, or by snapping to the configured palette
            4. Nearest-palette classification of every pixel
            5. 4-connected regions, largest first

        Args:
            buffer: RGBA pixel buffer (not modified)

        Returns:
            SegmentationResult with palette, classification and regions
        """
        config = self.config
        buffer = as_pixel_buffer(buffer)
        height, width = buffer.shape[:2]

        smoothed = self._smooth(buffer)
        histogram = build_histogram(smoothed)

        if config.palette is not None and len(config.palette) > 0:
            palette = snap_to_palette(histogram, config.palette, config.palette_tolerance)
            logger.info(f"Snapped to {len(palette)} colors from predefined palette")
        else:
            palette = quantize(histogram, config.max_colors)
            logger.info(f"Quantized {len(histogram)} colors to {len(palette)}")

        classification = classify(smoothed, palette, chunk_rows=config.chunk_rows)
        regions = segment(classification, palette, min_area=config.min_area)

        return SegmentationResult(
            width=width,
            height=height,
            palette=palette,
            classification=classification,
            regions=regions,
        )

    def segment_file(self, path: Union[str, Path]) -> SegmentationResult:
        """Load an image file and segment it."""
        return self.segment(load_pixel_buffer(path))

    def _smooth(self, buffer: PixelBuffer) -> PixelBuffer:
        """Blur the color channels to soften anti-aliased fringes; alpha is kept."""
        sigma = self.config.blur_sigma
        if sigma <= 0:
            return buffer

        rgb = buffer[..., :3].astype(np.float32)
        blurred = gaussian_filter(rgb, sigma=(sigma, sigma, 0), mode='nearest')

        result = buffer.copy()
        result[..., :3] = np.clip(np.floor(blurred + 0.5), 0, 255).astype(np.uint8)
        return result

"""Pixel color segmentation and selection engine."""
from pixelseg.types import (
    Bounds,
    BrushMode,
    Color,
    InvalidDimensionsError,
    Palette,
    Region,
    SegmentationError,
    SegmentationResult,
    SegmenterConfig,
    SelectionOp,
    SessionClosedError,
    SessionState,
    TRANSPARENT,
)
from pixelseg.segmenter import ColorSegmenter
from pixelseg.selection import SelectionEngine

__version__ = "0.1.0"

__all__ = [
    "Bounds",
    "BrushMode",
    "Color",
    "ColorSegmenter",
    "InvalidDimensionsError",
    "Palette",
    "Region",
    "SegmentationError",
    "SegmentationResult",
    "SegmenterConfig",
    "SelectionEngine",
    "SelectionOp",
    "SessionClosedError",
    "SessionState",
    "TRANSPARENT",
]

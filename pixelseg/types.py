"""Core types for the segmentation and selection engine."""
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Iterator, List, NamedTuple, Optional, Sequence, Tuple
import numpy as np

# Type aliases
PixelBuffer = np.ndarray  # (H, W, 4) uint8 RGBA
Mask = np.ndarray  # (H, W) uint8 selection strength
Classification = np.ndarray  # (H, W) uint16 palette indices
Point = Tuple[float, float]

# Palette index sentinel for pixels below the opacity threshold
TRANSPARENT = 0xFFFF

# Pixels with alpha below this carry no color signal
OPACITY_THRESHOLD = 128

# Mask bytes above this count as selected
SELECTED_THRESHOLD = 127

DEFAULT_UNDO_LIMIT = 20
LARGE_IMAGE_UNDO_LIMIT = 10
LARGE_IMAGE_THRESHOLD = 2048 * 2048


class Color(NamedTuple):
    """RGBA color with 0-255 channels."""
    r: int
    g: int
    b: int
    a: int = 255

    @classmethod
    def clamped(cls, r: float, g: float, b: float, a: float = 255) -> "Color":
        """Build a color from arbitrary numbers, rounding and clamping to 0-255."""
        return cls(*(int(min(255, max(0, np.floor(v + 0.5)))) for v in (r, g, b, a)))

    @property
    def rgb(self) -> Tuple[int, int, int]:
        return (self.r, self.g, self.b)

    def to_hex(self) -> str:
        if self.a == 255:
            return f"#{self.r:02x}{self.g:02x}{self.b:02x}"
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}{self.a:02x}"


@dataclass(frozen=True)
class Palette:
    """Ordered, deduplicated set of representative colors."""
    colors: Tuple[Color, ...] = ()

    @classmethod
    def from_colors(cls, colors: Sequence[Sequence[int]]) -> "Palette":
        """Create a palette, dropping repeated colors but keeping first-seen order."""
        seen = {}
        for c in colors:
            color = c if isinstance(c, Color) else Color(*(int(v) for v in c))
            seen.setdefault(color, None)
        return cls(tuple(seen))

    def __len__(self) -> int:
        return len(self.colors)

    def __getitem__(self, index: int) -> Color:
        return self.colors[index]

    def __iter__(self) -> Iterator[Color]:
        return iter(self.colors)

    def as_array(self) -> np.ndarray:
        """Palette as a (K, 4) uint8 array."""
        if not self.colors:
            return np.zeros((0, 4), dtype=np.uint8)
        return np.array(self.colors, dtype=np.uint8)


@dataclass(frozen=True)
class Bounds:
    """Inclusive pixel bounding box."""
    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1


@dataclass(frozen=True)
class Region:
    """Maximal 4-connected set of pixels sharing one palette color."""
    color_index: int
    color: Color
    pixels: np.ndarray  # (N, 2) int array of (x, y), row-major order
    bounds: Bounds

    @property
    def area(self) -> int:
        return int(self.pixels.shape[0])

    def to_mask(self, width: int, height: int) -> np.ndarray:
        """Rasterize the region into a boolean (H, W) mask."""
        mask = np.zeros((height, width), dtype=bool)
        mask[self.pixels[:, 1], self.pixels[:, 0]] = True
        return mask


@dataclass
class SegmentationResult:
    """Output of the batch segmentation path."""
    width: int
    height: int
    palette: Palette
    classification: Classification
    regions: List[Region] = field(default_factory=list)


@dataclass
class SegmenterConfig:
    """Configuration for the batch color segmentation pipeline."""
    # Palette construction
    max_colors: int = 256
    palette: Optional[Palette] = None  # Snap to these colors instead of median cut
    palette_tolerance: float = 30.0

    # Pre-quantization smoothing of anti-aliased edges (0 disables)
    blur_sigma: float = 0.7

    # Region extraction
    min_area: int = 2

    # Rows classified per batch
    chunk_rows: int = 256

    def __post_init__(self):
        if self.max_colors < 1:
            raise ValueError(f"max_colors must be >= 1, got {self.max_colors}")
        if self.min_area < 1:
            raise ValueError(f"min_area must be >= 1, got {self.min_area}")
        if self.blur_sigma < 0:
            raise ValueError(f"blur_sigma must be >= 0, got {self.blur_sigma}")
        if self.palette_tolerance < 0:
            raise ValueError(f"palette_tolerance must be >= 0, got {self.palette_tolerance}")
        if self.chunk_rows < 1:
            raise ValueError(f"chunk_rows must be >= 1, got {self.chunk_rows}")


class SelectionOp(Enum):
    """How a magic wand result combines with the current mask."""
    REPLACE = auto()
    ADD = auto()
    SUBTRACT = auto()


class BrushMode(Enum):
    PAINT = auto()
    ERASE = auto()


class SessionState(Enum):
    """Lifecycle of an interactive selection session."""
    IDLE = auto()
    SELECTING = auto()
    PREVIEWING = auto()
    COMMITTED = auto()
    CANCELLED = auto()


class SegmentationError(Exception):
    """Base exception for segmentation errors."""
    pass


class InvalidDimensionsError(SegmentationError, ValueError):
    """Raised when buffer, mask or classification shapes do not agree."""
    pass


class SessionClosedError(SegmentationError):
    """Raised when a committed or cancelled session is mutated."""
    pass


class ImageLoadError(SegmentationError):
    """Raised when an image file cannot be decoded."""
    pass

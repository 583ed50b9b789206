"""Interactive pixel selection: magic wand, erasers, brush and lasso.

A `SelectionEngine` is one editing session. It owns its mask, its undo
history and a working copy of the pixel buffer; the caller's buffer is
written only by `commit`. Gestures that land off the canvas, and lassos
with fewer than three points, are ignored rather than reported.
"""
import logging
import math
from typing import Optional, Sequence

import cv2
import numpy as np

from pixelseg import morphology
from pixelseg.color_metric import distances
from pixelseg.fill import flood_fill
from pixelseg.raster_ingest import as_pixel_buffer, check_mask
from pixelseg.types import (
    Bounds,
    BrushMode,
    Mask,
    PixelBuffer,
    Point,
    SelectionOp,
    SessionClosedError,
    SessionState,
)
from pixelseg.undo import SnapshotKind, UndoStack

logger = logging.getLogger(__name__)


class SelectionEngine:
    """Selection tools over one pixel buffer with a bounded undo history."""

    def __init__(
        self,
        buffer: PixelBuffer,
        mask: Optional[Mask] = None,
        history: Optional[UndoStack] = None,
    ):
        """
        Start a session.

        Args:
            buffer: RGBA pixel buffer. An (H, W, 4) uint8 array receives
                the edits in place on `commit`; other layouts are
                converted to a new array first.
            mask: Optional starting selection, copied
            history: Optional undo stack; sized from the image by default
        """
        self.target = as_pixel_buffer(buffer)
        # Erasers and undo work here until commit
        self.buffer = self.target.copy()
        h, w = self.buffer.shape[:2]

        if mask is None:
            self.mask = np.zeros((h, w), dtype=np.uint8)
        else:
            self.mask = check_mask(mask, self.buffer).astype(np.uint8, copy=True)

        self.history = history if history is not None else UndoStack.for_image(w, h)
        self.state = SessionState.IDLE

    @property
    def width(self) -> int:
        return self.buffer.shape[1]

    @property
    def height(self) -> int:
        return self.buffer.shape[0]

    @property
    def closed(self) -> bool:
        return self.state in (SessionState.COMMITTED, SessionState.CANCELLED)

    def has_selection(self) -> bool:
        return morphology.has_selection(self.mask)

    def selection_bounds(self) -> Optional[Bounds]:
        return morphology.bounds(self.mask)

    # Selection tools

    def magic_wand(
        self,
        seed: Point,
        tolerance: float,
        contiguous: bool = True,
        op: SelectionOp = SelectionOp.REPLACE,
    ) -> int:
        """
        Select pixels whose RGB color is within `tolerance` of the seed's.

        Args:
            seed: (x, y) canvas position of the click
            tolerance: Maximum RGB Euclidean distance from the seed color
            contiguous: Only select pixels 4-connected to the seed;
                otherwise match across the whole image
            op: Replace the selection, add to it, or subtract from it

        Returns:
            Number of matched pixels (0 for an off-canvas seed)
        """
        self._ensure_open()
        _check_tolerance(tolerance)
        pos = self._pixel_at(seed)
        if pos is None:
            return 0
        x, y = pos

        seed_color = self.buffer[y, x]
        matches = distances(self.buffer, seed_color) <= tolerance
        if contiguous:
            matches = flood_fill(matches, (x, y))

        self._record(SnapshotKind.MASK)
        if op is SelectionOp.REPLACE:
            self.mask[...] = 0
            self.mask[matches] = 255
        elif op is SelectionOp.ADD:
            self.mask[matches] = 255
        else:
            self.mask[matches] = 0

        count = int(np.count_nonzero(matches))
        logger.debug(f"Magic wand at ({x}, {y}) {op.name.lower()} {count} pixels")
        return count

    def brush_stroke(
        self,
        start: Point,
        end: Point,
        radius: float,
        hardness: float = 100,
        mode: BrushMode = BrushMode.PAINT,
        record_undo: bool = True,
    ) -> bool:
        """
        Paint or erase a round brush segment into the mask.

        Circles are stamped from `start` to `end` every max(1, radius / 4)
        pixels so fast drags leave no gaps. Below 100 hardness the stamp
        fades linearly toward its rim:
        255 * max(0, 1 - (dist / radius) * (1 - hardness / 100)).
        Paint keeps the stronger of old and new strength; erase subtracts.

        Args:
            start: (x, y) previous pointer sample (same as `end` for a dab)
            end: (x, y) current pointer sample
            radius: Brush radius in pixels
            hardness: 0-100 edge hardness
            mode: PAINT or ERASE
            record_undo: Snapshot the mask first; pass False for the
                pointer-move samples that continue one gesture

        Returns:
            True if any pixel on the canvas was touched
        """
        self._ensure_open()
        if radius <= 0:
            raise ValueError(f"radius must be > 0, got {radius}")
        hardness = min(100.0, max(0.0, float(hardness)))

        footprint = np.zeros(self.mask.shape, dtype=np.uint8)
        stamp = _brush_stamp(radius, hardness)
        for cx, cy in _stroke_points(start, end, radius):
            _stamp_max(footprint, stamp, int(math.floor(cx)), int(math.floor(cy)))

        if not footprint.any():
            return False

        if record_undo:
            self._record(SnapshotKind.MASK)
        else:
            self._touch()

        if mode is BrushMode.PAINT:
            np.maximum(self.mask, footprint, out=self.mask)
        else:
            remaining = self.mask.astype(np.int16) - footprint
            self.mask[...] = np.clip(remaining, 0, 255).astype(np.uint8)
        return True

    def lasso_close(self, points: Sequence[Point]) -> bool:
        """
        Fill a closed freehand polygon into the selection.

        Args:
            points: Polygon vertices as (x, y); closed implicitly

        Returns:
            True if the polygon covered any canvas pixel; lassos with
            fewer than three points are ignored
        """
        self._ensure_open()
        if len(points) < 3:
            return False

        polygon = np.round(np.asarray(points, dtype=np.float64)).astype(np.int32)
        filled = np.zeros(self.mask.shape, dtype=np.uint8)
        cv2.fillPoly(filled, [polygon.reshape(-1, 1, 2)], 255)

        if not filled.any():
            return False

        self._record(SnapshotKind.MASK)
        self.mask[filled > 0] = 255
        return True

    # Direct pixel erasers

    def bulk_color_erase(self, target_color: Sequence[int], tolerance: float) -> int:
        """
        Make every pixel near `target_color` fully transparent.

        Matching is global and alpha-aware (alpha counts double), so
        separate patches of the same color all disappear. Already
        transparent pixels are left alone.

        Args:
            target_color: (r, g, b[, a]) picked color; alpha defaults to 255
            tolerance: Maximum weighted distance

        Returns:
            Number of pixels erased
        """
        self._ensure_open()
        _check_tolerance(tolerance)

        alpha = self.buffer[..., 3]
        hits = (alpha > 0) & (distances(self.buffer, target_color, weighted=True) <= tolerance)

        self._record(SnapshotKind.PIXELS)
        alpha[hits] = 0

        count = int(np.count_nonzero(hits))
        logger.debug(f"Bulk erase removed {count} pixels")
        return count

    def flood_erase(self, seed: Point, tolerance: float) -> int:
        """
        Make the seed pixel and its similar 4-connected neighbors transparent.

        Args:
            seed: (x, y) canvas position of the click
            tolerance: Maximum weighted RGBA distance from the seed color

        Returns:
            Number of pixels erased (0 off-canvas or on a transparent seed)
        """
        self._ensure_open()
        _check_tolerance(tolerance)
        pos = self._pixel_at(seed)
        if pos is None:
            return 0
        x, y = pos

        seed_color = self.buffer[y, x].copy()
        if seed_color[3] == 0:
            return 0

        matches = distances(self.buffer, seed_color, weighted=True) <= tolerance
        region = flood_fill(matches, (x, y))

        self._record(SnapshotKind.PIXELS)
        self.buffer[..., 3][region] = 0
        return int(np.count_nonzero(region))

    # Selection morphology

    def invert_selection(self) -> None:
        self._ensure_open()
        self._record(SnapshotKind.MASK)
        self.mask[...] = morphology.invert(self.mask)

    def grow_selection(self, iterations: int = 2) -> bool:
        return self._transform(morphology.grow, iterations)

    def shrink_selection(self, iterations: int = 2) -> bool:
        return self._transform(morphology.shrink, iterations)

    def feather_selection(self, radius: int = 3) -> bool:
        return self._transform(morphology.feather, radius)

    def clear_selection(self) -> bool:
        self._ensure_open()
        if not self.has_selection():
            return False
        self._record(SnapshotKind.MASK)
        self.mask[...] = 0
        return True

    # History and session lifecycle

    def undo(self) -> bool:
        """
        Restore the state before the most recent action.

        Returns:
            False when there is nothing to undo
        """
        self._ensure_open()
        snapshot = self.history.pop()
        if snapshot is None:
            return False

        if snapshot.kind is SnapshotKind.MASK:
            np.copyto(self.mask, snapshot.data)
        else:
            np.copyto(self.buffer, snapshot.data)
        return True

    def preview(self) -> PixelBuffer:
        """Return a scratch copy of the image with the selection cut out."""
        self._ensure_open()
        self.state = SessionState.PREVIEWING
        return morphology.apply_mask(self.buffer, self.mask)

    def commit(self) -> PixelBuffer:
        """
        Write erasures and the cut-out selection to the caller's buffer.

        Ends the session.

        Returns:
            The caller's buffer, now edited
        """
        self._ensure_open()
        np.copyto(self.buffer, morphology.apply_mask(self.buffer, self.mask))
        np.copyto(self.target, self.buffer)
        self.state = SessionState.COMMITTED
        self.history.clear()
        logger.info(f"Committed selection on {self.width}x{self.height} image")
        return self.target

    def cancel(self) -> None:
        """Discard the selection and every erasure; the caller's buffer is untouched."""
        self._ensure_open()
        np.copyto(self.buffer, self.target)
        self.mask[...] = 0
        self.state = SessionState.CANCELLED
        self.history.clear()

    def _transform(self, func, amount: int) -> bool:
        self._ensure_open()
        if not self.has_selection():
            return False
        result = func(self.mask, amount)
        self._record(SnapshotKind.MASK)
        self.mask[...] = result
        return True

    def _record(self, kind: SnapshotKind) -> None:
        self.history.push(kind, self.mask if kind is SnapshotKind.MASK else self.buffer)
        self._touch()

    def _touch(self) -> None:
        self.state = SessionState.SELECTING

    def _ensure_open(self) -> None:
        if self.closed:
            raise SessionClosedError(f"Session already {self.state.name.lower()}")

    def _pixel_at(self, point: Point) -> Optional[tuple]:
        x = int(math.floor(point[0]))
        y = int(math.floor(point[1]))
        if 0 <= x < self.width and 0 <= y < self.height:
            return x, y
        return None


def _check_tolerance(tolerance: float) -> None:
    if tolerance < 0:
        raise ValueError(f"tolerance must be >= 0, got {tolerance}")


def _stroke_points(start: Point, end: Point, radius: float):
    """Stamp centers from start to end, inclusive, spaced max(1, radius / 4)."""
    dx = end[0] - start[0]
    dy = end[1] - start[1]
    length = math.hypot(dx, dy)
    step = max(1.0, radius / 4)
    steps = int(math.ceil(length / step))
    if steps == 0:
        return [end]
    return [(start[0] + dx * i / steps, start[1] + dy * i / steps) for i in range(steps + 1)]


def _brush_stamp(radius: float, hardness: float) -> np.ndarray:
    """Square uint8 opacity kernel for one brush dab, centered on its middle pixel."""
    reach = int(math.ceil(radius))
    offsets = np.arange(-reach, reach + 1, dtype=np.float64)
    dx, dy = np.meshgrid(offsets, offsets)
    dist = np.sqrt(dx * dx + dy * dy)

    if hardness >= 100:
        opacity = np.full(dist.shape, 255.0)
    else:
        falloff = 1 - (dist / radius) * (1 - hardness / 100)
        opacity = np.floor(255 * np.maximum(0.0, falloff))

    opacity[dist > radius] = 0
    return opacity.astype(np.uint8)


def _stamp_max(target: np.ndarray, stamp: np.ndarray, cx: int, cy: int) -> None:
    """Max-combine `stamp` into `target` centered at (cx, cy), clipped to the canvas."""
    h, w = target.shape
    reach = stamp.shape[0] // 2
    x0, y0 = cx - reach, cy - reach
    x1, y1 = x0 + stamp.shape[1], y0 + stamp.shape[0]

    tx0, ty0 = max(0, x0), max(0, y0)
    tx1, ty1 = min(w, x1), min(h, y1)
    if tx0 >= tx1 or ty0 >= ty1:
        return

    patch = stamp[ty0 - y0:ty1 - y0, tx0 - x0:tx1 - x0]
    view = target[ty0:ty1, tx0:tx1]
    np.maximum(view, patch, out=view)

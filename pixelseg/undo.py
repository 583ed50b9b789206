"""Bounded undo history for interactive editing sessions."""
from collections import deque
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

import numpy as np

from pixelseg.types import DEFAULT_UNDO_LIMIT, LARGE_IMAGE_THRESHOLD, LARGE_IMAGE_UNDO_LIMIT


class SnapshotKind(Enum):
    MASK = auto()
    PIXELS = auto()


@dataclass(frozen=True)
class Snapshot:
    """Copy of a mask or pixel buffer taken before a mutation."""
    kind: SnapshotKind
    data: np.ndarray


def undo_limit(width: int, height: int) -> int:
    """History depth for an image size; big images keep fewer snapshots."""
    if width * height > LARGE_IMAGE_THRESHOLD:
        return LARGE_IMAGE_UNDO_LIMIT
    return DEFAULT_UNDO_LIMIT


class UndoStack:
    """
    Newest-last stack of snapshots with a fixed capacity.

    Pushing onto a full stack evicts the oldest snapshot.
    """

    def __init__(self, capacity: int = DEFAULT_UNDO_LIMIT):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._items = deque(maxlen=capacity)

    @classmethod
    def for_image(cls, width: int, height: int) -> "UndoStack":
        return cls(undo_limit(width, height))

    @property
    def capacity(self) -> int:
        return self._items.maxlen

    def push(self, kind: SnapshotKind, data: np.ndarray) -> None:
        """Store a copy of `data`, so later in-place edits don't leak in."""
        self._items.append(Snapshot(kind, np.array(data, copy=True)))

    def pop(self) -> Optional[Snapshot]:
        """Remove and return the newest snapshot, or None when empty."""
        if not self._items:
            return None
        return self._items.pop()

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

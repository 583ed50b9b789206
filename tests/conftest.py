"""Pytest configuration and fixtures."""

import numpy as np
import pytest

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)
WHITE = (255, 255, 255, 255)


def solid_image(height: int, width: int, color=RED) -> np.ndarray:
    """Create an (H, W, 4) uint8 image filled with one color."""
    image = np.zeros((height, width, 4), dtype=np.uint8)
    image[:, :] = color
    return image


@pytest.fixture
def red_with_hole():
    """4x4 pure red image with one transparent pixel at (2, 2)."""
    image = solid_image(4, 4, RED)
    image[2, 2] = (0, 0, 0, 0)
    return image


@pytest.fixture
def checkerboard():
    """8x8 image of 2x2 cells alternating red and blue."""
    image = np.zeros((8, 8, 4), dtype=np.uint8)
    for y in range(8):
        for x in range(8):
            image[y, x] = RED if ((x // 2) + (y // 2)) % 2 == 0 else BLUE
    return image


@pytest.fixture
def two_patches():
    """20x20 white image with two separate 4x4 red patches."""
    image = solid_image(20, 20, WHITE)
    image[2:6, 2:6] = RED
    image[12:16, 12:16] = RED
    return image

"""Raster image ingestion and export for pixel buffers and masks."""
from pathlib import Path
from typing import Union
import numpy as np
from PIL import Image
from PIL import ImageOps

from pixelseg.types import ImageLoadError, InvalidDimensionsError, Mask, PixelBuffer


def as_pixel_buffer(image: np.ndarray) -> PixelBuffer:
    """
    Normalize an array into an (H, W, 4) uint8 RGBA pixel buffer.

    Grayscale input is expanded to RGB and RGB input gains an opaque
    alpha channel. An existing RGBA uint8 array is returned as-is.

    Args:
        image: Array of shape (H, W), (H, W, 3) or (H, W, 4)

    Returns:
        RGBA pixel buffer

    Raises:
        InvalidDimensionsError: If the array cannot be read as an image
    """
    image = np.asarray(image)

    if image.ndim == 2:
        image = np.stack([image] * 3, axis=-1)

    if image.ndim != 3:
        raise InvalidDimensionsError(f"Expected 2D or 3D array, got {image.ndim}D")

    if image.shape[2] not in (3, 4):
        raise InvalidDimensionsError(f"Expected 3 or 4 channels, got {image.shape[2]}")

    if image.dtype != np.uint8:
        if np.issubdtype(image.dtype, np.floating) and image.size and image.max() <= 1.0:
            image = image * 255.0
        image = np.clip(np.floor(image + 0.5), 0, 255).astype(np.uint8)

    if image.shape[2] == 3:
        alpha = np.full(image.shape[:2] + (1,), 255, dtype=np.uint8)
        image = np.concatenate([image, alpha], axis=-1)

    return image


def check_mask(mask: np.ndarray, buffer: PixelBuffer) -> Mask:
    """
    Verify a mask matches a buffer's dimensions.

    Raises:
        InvalidDimensionsError: If shapes differ or the mask is not 2D
    """
    mask = np.asarray(mask)
    if mask.ndim != 2:
        raise InvalidDimensionsError(f"Mask must be 2D, got {mask.ndim}D")
    if mask.shape != buffer.shape[:2]:
        raise InvalidDimensionsError(
            f"Mask shape {mask.shape} does not match image shape {buffer.shape[:2]}"
        )
    return mask


def pixel_buffer_from_image(img: Image.Image) -> PixelBuffer:
    """Convert a PIL image to an RGBA pixel buffer."""
    if img.mode != 'RGBA':
        img = img.convert('RGBA')
    return np.array(img, dtype=np.uint8)


def pixel_buffer_to_image(buffer: PixelBuffer) -> Image.Image:
    """Convert an RGBA pixel buffer to a PIL image."""
    return Image.fromarray(as_pixel_buffer(buffer))


def mask_to_image(mask: Mask) -> Image.Image:
    """Render a mask as a grayscale image (255 = fully selected)."""
    return Image.fromarray(np.asarray(mask, dtype=np.uint8))


def load_pixel_buffer(path: Union[str, Path]) -> PixelBuffer:
    """
    Load an image file as an RGBA pixel buffer.

    Args:
        path: Path to image file

    Returns:
        (H, W, 4) uint8 pixel buffer

    Raises:
        FileNotFoundError: If file doesn't exist
        ImageLoadError: If file cannot be decoded
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {path}")

    if not path.is_file():
        raise ImageLoadError(f"Path is not a file: {path}")

    try:
        with Image.open(path) as img:
            # Apply EXIF orientation transformation to handle rotation
            img = ImageOps.exif_transpose(img)
            return pixel_buffer_from_image(img)
    except (IOError, OSError) as e:
        raise ImageLoadError(f"Failed to load image {path}: {e}") from e


def save_pixel_buffer(buffer: PixelBuffer, path: Union[str, Path]) -> Path:
    """Write a pixel buffer to disk; format follows the file extension."""
    path = Path(path)
    pixel_buffer_to_image(buffer).save(path)
    return path

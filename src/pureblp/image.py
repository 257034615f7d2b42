"""Decoded image container"""
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from .headers import BLP1_HEADER


@dataclass
class DecodedImage:
    """RGBA8 raster produced by the decoder, plus metadata for round-tripping"""
    width: int
    height: int
    rgba: np.ndarray  # (height, width, 4) uint8, A = 255 where the file has no alpha
    palette: Optional[np.ndarray] = None  # (count, 4) BGRA entries for DIRECT files
    header: Optional[BLP1_HEADER] = None  # Header the image was decoded from
    mipmap_level: int = 0

    def tobytes(self) -> bytes:
        """Interleaved RGBA bytes, row-major top to bottom"""
        return self.rgba.tobytes()

    def has_alpha(self) -> bool:
        """True if any pixel is not fully opaque"""
        return bool((self.rgba[:, :, 3] != 255).any())


def as_rgba(image: Union[DecodedImage, np.ndarray]) -> np.ndarray:
    """
    Normalise an encoder input to a contiguous (height, width, 4) uint8 array

    Accepts a DecodedImage, an RGBA array, an RGB array (alpha filled with
    255) or a 2-D greyscale array.
    """
    if isinstance(image, DecodedImage):
        image = image.rgba
    array = np.asarray(image)
    if array.dtype != np.uint8:
        raise ValueError(f"Expected uint8 pixel data, got {array.dtype}")

    if array.ndim == 2:
        array = np.repeat(array[:, :, None], 3, axis=2)
    if array.ndim != 3 or array.shape[2] not in (3, 4):
        raise ValueError(f"Expected an array of shape (height, width, 3|4), got {array.shape}")
    if array.shape[0] < 1 or array.shape[1] < 1:
        raise ValueError(f"Invalid image dimensions: {array.shape[1]}x{array.shape[0]}")

    if array.shape[2] == 3:
        rgba = np.empty(array.shape[:2] + (4,), dtype=np.uint8)
        rgba[:, :, :3] = array
        rgba[:, :, 3] = 255
        return rgba
    return np.ascontiguousarray(array)

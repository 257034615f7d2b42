"""Mipmap pyramid generation"""
from typing import List, Tuple

import numpy as np
from numba import jit

from .enums import MAX_MIPMAPS


def mipmap_dimensions(width: int, height: int, max_levels: int = MAX_MIPMAPS) -> List[Tuple[int, int]]:
    """
    Dimensions of every level in the mip chain

    Each level halves the previous one (rounding down, never below 1). The
    chain ends with the first 1x1 level or after `max_levels` levels,
    whichever comes first.

    Examples:
        mipmap_dimensions(5, 3) -> [(5, 3), (2, 1), (1, 1)]
    """
    if width < 1 or height < 1:
        raise ValueError(f"Invalid image dimensions: {width}x{height}")
    max_levels = min(max_levels, MAX_MIPMAPS)

    dimensions = [(width, height)]
    while len(dimensions) < max_levels and (width, height) != (1, 1):
        width = max(1, width // 2)
        height = max(1, height // 2)
        dimensions.append((width, height))
    return dimensions


@jit(nopython=True, cache=True)
def _box_downsample_jit(src, dst):
    """JIT-compiled area box filter; each channel is averaged independently"""
    src_height = src.shape[0]
    src_width = src.shape[1]
    dst_height = dst.shape[0]
    dst_width = dst.shape[1]

    for y in range(dst_height):
        y_start = (y * src_height) // dst_height
        y_end = ((y + 1) * src_height) // dst_height
        if y_end <= y_start:
            y_end = y_start + 1
        if y_end > src_height:
            y_end = src_height

        for x in range(dst_width):
            x_start = (x * src_width) // dst_width
            x_end = ((x + 1) * src_width) // dst_width
            if x_end <= x_start:
                x_end = x_start + 1
            if x_end > src_width:
                x_end = src_width

            count = (y_end - y_start) * (x_end - x_start)
            for c in range(4):
                total = 0
                for sy in range(y_start, y_end):
                    for sx in range(x_start, x_end):
                        total += src[sy, sx, c]
                dst[y, x, c] = total // count


def downsample(rgba: np.ndarray, width: int, height: int) -> np.ndarray:
    """
    Box-average an RGBA8 raster down to width x height

    Returns:
        numpy array of shape (height, width, 4) with dtype uint8
    """
    output = np.zeros((height, width, 4), dtype=np.uint8)
    _box_downsample_jit(np.ascontiguousarray(rgba, dtype=np.uint8), output)
    return output


def generate_mipmaps(rgba: np.ndarray, max_levels: int = MAX_MIPMAPS) -> List[np.ndarray]:
    """
    Build the mip pyramid starting from the level 0 raster

    Each level is box-averaged from the level before it.

    Args:
        rgba: Level 0 raster, numpy array of shape (height, width, 4) with dtype uint8
        max_levels: Upper bound on the number of levels (1..16)

    Returns:
        List of RGBA8 rasters, level 0 first
    """
    height, width = rgba.shape[:2]
    levels = [rgba]
    for level_width, level_height in mipmap_dimensions(width, height, max_levels)[1:]:
        levels.append(downsample(levels[-1], level_width, level_height))
    return levels

"""Packed alpha plane expansion and packing"""
import numpy as np

from ..enums import AlphaBits
from ..errors import MalformedFileError, UnsupportedFormatError


def alpha_plane_size(pixel_count: int, alpha_bits: int) -> int:
    """Size in bytes of a packed alpha plane: ceil(pixels * bits / 8)"""
    return (pixel_count * alpha_bits + 7) // 8


def unpack_alpha(packed: bytes, pixel_count: int, alpha_bits: int) -> np.ndarray:
    """
    Expand a packed alpha plane into one 8-bit alpha value per pixel

    Bit layouts:
    - 1 bit: LSB-first within each byte, 1 -> 255
    - 4 bits: even pixel in the high nibble, odd pixel in the low nibble, v -> v * 0x11
    - 8 bits: one byte per pixel

    Args:
        packed: Packed alpha bytes
        pixel_count: Number of pixels (width * height)
        alpha_bits: 0, 1, 4 or 8

    Returns:
        numpy array of shape (pixel_count,) with dtype uint8
    """
    if alpha_bits == AlphaBits.NONE:
        return np.full(pixel_count, 255, dtype=np.uint8)
    if alpha_bits not in tuple(AlphaBits):
        raise UnsupportedFormatError(f"Unsupported alpha bit depth: {alpha_bits}")

    expected = alpha_plane_size(pixel_count, alpha_bits)
    if len(packed) < expected:
        raise MalformedFileError(f"Alpha plane too small: expected {expected} bytes, got {len(packed)}")
    data = np.frombuffer(packed, dtype=np.uint8, count=expected)

    if alpha_bits == AlphaBits.ONE:
        bits = np.unpackbits(data, bitorder='little')[:pixel_count]
        return bits * np.uint8(255)

    if alpha_bits == AlphaBits.FOUR:
        nibbles = np.empty(data.size * 2, dtype=np.uint8)
        nibbles[0::2] = data >> 4
        nibbles[1::2] = data & 0x0F
        nibbles = nibbles[:pixel_count]
        return (nibbles << 4) | nibbles

    return data.copy()


def pack_alpha(alpha: np.ndarray, alpha_bits: int) -> bytes:
    """
    Pack 8-bit alpha values into a plane of the given depth

    1-bit alpha thresholds at 128; 4-bit alpha keeps the high nibble of each value.
    """
    alpha = np.ascontiguousarray(alpha, dtype=np.uint8).reshape(-1)

    if alpha_bits == AlphaBits.NONE:
        return b''
    if alpha_bits == AlphaBits.ONE:
        return np.packbits(alpha >= 128, bitorder='little').tobytes()
    if alpha_bits == AlphaBits.FOUR:
        nibbles = alpha >> 4
        if nibbles.size % 2:
            nibbles = np.append(nibbles, np.uint8(0))
        return ((nibbles[0::2] << 4) | nibbles[1::2]).astype(np.uint8).tobytes()
    if alpha_bits == AlphaBits.EIGHT:
        return alpha.tobytes()
    raise UnsupportedFormatError(f"Unsupported alpha bit depth: {alpha_bits}")

"""Palette + index (DIRECT mode) codec"""
import logging

import numpy as np
from numba import jit
from PIL import Image

from ..cursor import ByteCursor
from ..enums import HEADER_SIZE, MAX_PALETTE_ENTRIES, PALETTE_ENTRY_SIZE
from ..errors import MalformedFileError, UnsupportedFormatError
from ..headers import BLP1_HEADER
from .alpha import alpha_plane_size, pack_alpha, unpack_alpha
from .base import TextureCodec

logger = logging.getLogger(__name__)


def palette_entry_count(header: BLP1_HEADER) -> int:
    """
    Number of palette entries stored between the header and level 0

    The palette has no explicit length field; it fills the gap up to offsets[0].
    """
    if header.offsets[0] < HEADER_SIZE:
        raise MalformedFileError(
            f"Palette size is negative: level 0 offset {header.offsets[0]} is inside the header"
        )
    count = (header.offsets[0] - HEADER_SIZE) // PALETTE_ENTRY_SIZE
    if count > MAX_PALETTE_ENTRIES:
        logger.warning("Palette area holds %d entries, using the first %d", count, MAX_PALETTE_ENTRIES)
        count = MAX_PALETTE_ENTRIES
    return count


def read_palette(cursor: ByteCursor, header: BLP1_HEADER) -> np.ndarray:
    """
    Read the palette that follows the header

    Returns:
        numpy array of shape (count, 4) with dtype uint8 (B, G, R, unused)
    """
    count = palette_entry_count(header)
    cursor.seek(HEADER_SIZE)
    data = cursor.read(count * PALETTE_ENTRY_SIZE)
    logger.debug("Read %d palette entries", count)
    return np.frombuffer(data, dtype=np.uint8).reshape(count, PALETTE_ENTRY_SIZE).copy()


def build_palette(rgba: np.ndarray) -> np.ndarray:
    """
    Build a palette holding the distinct colours of an RGBA raster

    Rasters with more than 256 colours are reduced with median-cut quantisation.

    Returns:
        numpy array of shape (count, 4) with dtype uint8 (B, G, R, 255)
    """
    height, width = rgba.shape[:2]
    rgb = np.ascontiguousarray(rgba[:, :, :3])
    colors = np.unique(rgb.reshape(-1, 3), axis=0)

    if len(colors) > MAX_PALETTE_ENTRIES:
        logger.warning("Image has %d colours, quantising to %d", len(colors), MAX_PALETTE_ENTRIES)
        image = Image.frombytes('RGB', (width, height), rgb.tobytes())
        quantized = image.quantize(colors=MAX_PALETTE_ENTRIES, method=Image.Quantize.MEDIANCUT)
        quantized_palette = np.array(quantized.getpalette(), dtype=np.uint8).reshape(-1, 3)
        used = np.unique(np.asarray(quantized))
        colors = quantized_palette[used]

    palette = np.empty((len(colors), PALETTE_ENTRY_SIZE), dtype=np.uint8)
    palette[:, 0] = colors[:, 2]
    palette[:, 1] = colors[:, 1]
    palette[:, 2] = colors[:, 0]
    palette[:, 3] = 255
    return palette


class PaletteCodec(TextureCodec):
    """
    DIRECT mode codec - palette lookup + packed alpha plane

    A level payload is width*height palette indices followed by the packed
    alpha plane of ceil(width*height*alpha_bits/8) bytes.
    """

    def __init__(self, palette: np.ndarray, alpha_bits: int):
        """
        Args:
            palette: numpy array of shape (count, 4) with BGRA entries, count <= 256
            alpha_bits: Depth of the packed alpha plane (0, 1, 4 or 8)
        """
        if len(palette) > MAX_PALETTE_ENTRIES:
            raise UnsupportedFormatError(f"Palette has {len(palette)} entries, maximum is {MAX_PALETTE_ENTRIES}")
        self.palette = np.ascontiguousarray(palette, dtype=np.uint8)
        self.alpha_bits = alpha_bits

        # RGB lookup table padded to 256 entries so any stored index resolves
        self.lut = np.zeros((MAX_PALETTE_ENTRIES, 3), dtype=np.uint8)
        self.lut[:len(palette), 0] = self.palette[:, 2]
        self.lut[:len(palette), 1] = self.palette[:, 1]
        self.lut[:len(palette), 2] = self.palette[:, 0]

    def payload_size(self, width: int, height: int) -> int:
        pixel_count = width * height
        return pixel_count + alpha_plane_size(pixel_count, self.alpha_bits)

    @staticmethod
    @jit(nopython=True, cache=True)
    def _map_to_palette_jit(pixels, palette, out):
        """JIT-compiled nearest palette colour search (palette is BGRA)"""
        for i in range(pixels.shape[0]):
            r = np.int64(pixels[i, 0])
            g = np.int64(pixels[i, 1])
            b = np.int64(pixels[i, 2])

            best_index = 0
            best_distance = 1 << 30
            for j in range(palette.shape[0]):
                dr = r - np.int64(palette[j, 2])
                dg = g - np.int64(palette[j, 1])
                db = b - np.int64(palette[j, 0])
                distance = dr * dr + dg * dg + db * db
                if distance < best_distance:
                    best_distance = distance
                    best_index = j
                    if distance == 0:
                        break
            out[i] = best_index

    def decompress(self, data: bytes, width: int, height: int) -> np.ndarray:
        """Compose RGBA from the index plane, the palette and the alpha plane"""
        pixel_count = width * height
        if len(data) < pixel_count:
            raise MalformedFileError(f"Index plane too small: expected {pixel_count} bytes, got {len(data)}")

        indices = np.frombuffer(data, dtype=np.uint8, count=pixel_count)

        output = np.empty((pixel_count, 4), dtype=np.uint8)
        output[:, :3] = self.lut[indices]
        output[:, 3] = unpack_alpha(data[pixel_count:], pixel_count, self.alpha_bits)
        return output.reshape(height, width, 4)

    def compress(self, rgba: np.ndarray) -> bytes:
        """Map each pixel to its nearest palette entry and append the packed alpha"""
        if len(self.palette) == 0:
            raise UnsupportedFormatError("Cannot encode with an empty palette")
        pixels = np.ascontiguousarray(rgba[:, :, :3]).reshape(-1, 3)
        indices = np.empty(len(pixels), dtype=np.uint8)
        self._map_to_palette_jit(pixels, self.palette, indices)
        return indices.tobytes() + pack_alpha(rgba[:, :, 3], self.alpha_bits)

"""JPEG mode codec - raw BGRA stored in the four CMYK component slots"""
import io
import logging
import struct
from typing import Iterator, Tuple

import numpy as np
from PIL import Image

from ..enums import DEFAULT_JPEG_QUALITY
from ..errors import CodecFailureError, UnsupportedFormatError
from .base import TextureCodec

logger = logging.getLogger(__name__)

SOI = b'\xff\xd8'
EOI = b'\xff\xd9'
SOS = 0xDA
APP0 = 0xE0
APP14 = 0xEE

# Markers that stand alone without a length field
_STANDALONE_MARKERS = {0x01, 0xD8, 0xD9} | set(range(0xD0, 0xD8))

# Errors Pillow raises for corrupt or unsupported JPEG data
_PILLOW_ERRORS = (OSError, SyntaxError, ValueError, EOFError, Image.DecompressionBombError)


def iter_segments(bitstream: bytes) -> Iterator[Tuple[int, int, int]]:
    """
    Walk the marker segments of a JPEG bitstream up to and including SOS

    Yields:
        (marker, start, end) where bitstream[start:end] is the whole segment
        including its 0xFF marker prefix. Iteration stops after the SOS segment.
    """
    position = 0
    length = len(bitstream)
    while position < length:
        if bitstream[position] != 0xFF:
            raise CodecFailureError(f"Expected a JPEG marker at offset {position}")
        # Any number of 0xFF fill bytes may precede a marker code
        code_position = position + 1
        while code_position < length and bitstream[code_position] == 0xFF:
            code_position += 1
        if code_position >= length:
            return
        marker = bitstream[code_position]
        if marker in _STANDALONE_MARKERS:
            yield marker, position, code_position + 1
            position = code_position + 1
            continue
        if code_position + 3 > length:
            raise CodecFailureError(f"Truncated JPEG segment header at offset {position}")
        (segment_length,) = struct.unpack('>H', bitstream[code_position + 1:code_position + 3])
        end = code_position + 1 + segment_length
        yield marker, position, end
        if marker == SOS:
            return
        position = end


def strip_markers(bitstream: bytes) -> bytes:
    """Remove JFIF APP0 and Adobe APP14 segments, leaving a bare JPEG bitstream"""
    kept = []
    last_end = 0
    for marker, start, end in iter_segments(bitstream):
        payload = bitstream[start + 4:end]
        if (marker == APP0 and payload.startswith(b'JFIF\x00')) or \
                (marker == APP14 and payload.startswith(b'Adobe')):
            continue
        kept.append(bitstream[start:end])
        last_end = end
    # Entropy-coded data and EOI follow the SOS header verbatim
    kept.append(bitstream[last_end:])
    return b''.join(kept)


class JpegCodec(TextureCodec):
    """
    JPEG codec for BLP1 levels

    BLP1 JPEG payloads keep raw B, G, R, A samples in the C, M, Y, K slots.
    Decoding forces the declared and output colour space of four-component
    frames to plain CMYK so no YCCK conversion or Adobe inversion takes place,
    then swaps components 0 and 2. Encoding mirrors this and emits a bitstream
    without JFIF or Adobe markers.
    """

    def __init__(self, quality: int = DEFAULT_JPEG_QUALITY):
        if not 1 <= quality <= 100:
            raise ValueError(f"JPEG quality must be between 1 and 100, got {quality}")
        self.quality = quality

    def decompress(self, data: bytes, width: int, height: int) -> np.ndarray:
        """
        Decode a complete JPEG bitstream (shared header + level body) to RGBA8

        The output always has the requested dimensions; a frame of a different
        size is cropped or padded with zeros.
        """
        if not data.endswith(EOI):
            # Terminate truncated streams so the decoder finishes cleanly
            data = data + EOI

        try:
            with Image.open(io.BytesIO(data), formats=['JPEG']) as image:
                if image.mode == 'CMYK':
                    decoder_name, extents, offset, args = image.tile[0]
                    # (rawmode, jpegmode): raw CMYK out, CMYK declared in the frame
                    image.tile = [(decoder_name, extents, offset, ('CMYK', 'CMYK'))]
                    image.load()
                    decoded = np.asarray(image, dtype=np.uint8)[:, :, [2, 1, 0, 3]]
                elif image.mode in ('RGB', 'L'):
                    rgb = np.asarray(image.convert('RGB'), dtype=np.uint8)
                    decoded = np.empty(rgb.shape[:2] + (4,), dtype=np.uint8)
                    decoded[:, :, :3] = rgb
                    decoded[:, :, 3] = 255
                else:
                    raise UnsupportedFormatError(f"Unsupported JPEG colour mode: {image.mode}")
        except _PILLOW_ERRORS as e:
            if isinstance(e, UnsupportedFormatError):
                raise
            raise CodecFailureError(f"JPEG decoding failed: {e}") from e

        frame_height, frame_width = decoded.shape[:2]
        if (frame_width, frame_height) == (width, height):
            return np.ascontiguousarray(decoded)

        logger.warning(
            "JPEG frame is %dx%d but the level is %dx%d; cropping/padding",
            frame_width, frame_height, width, height,
        )
        output = np.zeros((height, width, 4), dtype=np.uint8)
        copy_height = min(height, frame_height)
        copy_width = min(width, frame_width)
        output[:copy_height, :copy_width] = decoded[:copy_height, :copy_width]
        return output

    def compress(self, rgba: np.ndarray) -> bytes:
        """
        Encode an RGBA8 level as a bare baseline JPEG with (B, G, R, A) components
        """
        height, width = rgba.shape[:2]
        bgra = np.ascontiguousarray(rgba[:, :, [2, 1, 0, 3]], dtype=np.uint8)

        # Pillow writes CMYK inverted (Adobe convention); pre-invert so raw samples land in the file
        image = Image.frombytes('CMYK', (width, height), (255 - bgra).tobytes())
        output = io.BytesIO()
        try:
            image.save(
                output,
                format='JPEG',
                quality=self.quality,
                subsampling=0,
                optimize=False,
                progressive=False,
            )
        except _PILLOW_ERRORS as e:
            raise CodecFailureError(f"JPEG encoding failed: {e}") from e

        return strip_markers(output.getvalue())

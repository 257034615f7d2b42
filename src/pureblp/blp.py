"""BLP1 codec API and container inspector"""
import logging
import os
from typing import List, Optional, Union

import numpy as np

from .compressors.palette import read_palette
from .cursor import ByteCursor, StreamLike
from .enums import AlphaBits, BLPCompression, HEADER_SIZE, MAX_MIPMAPS
from .errors import BLPError, MalformedFileError
from .headers import BLP1_HEADER, probe_magic
from .image import DecodedImage
from .pipeline import DecodePipeline, EncodeOptions, EncodePipeline, ProgressCallback

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


def probe(stream: StreamLike) -> bool:
    """
    Check whether a stream is a BLP1 file

    Reads exactly the 4 magic bytes at offset 0 and never raises for
    foreign or truncated input.
    """
    cursor = ByteCursor(stream)
    try:
        cursor.seek(0)
        return probe_magic(cursor)
    except BLPError:
        return False


def read_header(stream: StreamLike) -> BLP1_HEADER:
    """Read and validate only the header"""
    pipeline = DecodePipeline(stream)
    pipeline.prepare()
    return pipeline.start()


def decode(stream: StreamLike, mipmap_level: int = 0,
           progress: Optional[ProgressCallback] = None) -> DecodedImage:
    """
    Decode a BLP1 stream

    Args:
        stream: Binary file object (readable, seekable) or the file contents as bytes
        mipmap_level: Mip level to materialise (0 = full resolution)
        progress: Optional callback (done, total); returning False cancels

    Returns:
        DecodedImage with an RGBA8 raster of shape (height, width, 4)

    Raises:
        InvalidMagicError: If the stream is not a BLP1 file
        UnsupportedFormatError: If the compression, alpha depth or level is not supported
        ShortReadError: If the stream ends early
        CodecFailureError: If the JPEG payload cannot be decoded
        CancelledError: If the progress callback returned False
    """
    return DecodePipeline(stream, mipmap_level, progress).run()


def encode(stream: StreamLike, image: Union[DecodedImage, np.ndarray],
           options: Optional[EncodeOptions] = None,
           progress: Optional[ProgressCallback] = None) -> BLP1_HEADER:
    """
    Encode an RGBA8 raster as BLP1 with a generated mip chain

    Args:
        stream: Binary file object (writable, seekable)
        image: DecodedImage or numpy array of shape (height, width, 3|4) with dtype uint8
        options: EncodeOptions; defaults to JPEG, quality 85, up to 16 levels
        progress: Optional callback (levels_done, levels_total); returning False cancels

    Returns:
        The header written to the stream
    """
    return EncodePipeline(stream, options, progress).run(image)


def encode_direct(stream: StreamLike, image: Union[DecodedImage, np.ndarray],
                  alpha_bits: Optional[int] = None, max_levels: int = MAX_MIPMAPS,
                  progress: Optional[ProgressCallback] = None) -> BLP1_HEADER:
    """Encode using a palette + index payload (DIRECT mode)"""
    options = EncodeOptions(
        max_levels=max_levels,
        compression=BLPCompression.DIRECT,
        alpha_bits=alpha_bits,
    )
    return encode(stream, image, options, progress)


def load(path: PathLike, mipmap_level: int = 0) -> DecodedImage:
    """Decode a BLP1 file from disk"""
    with open(path, 'rb') as f:
        return decode(f, mipmap_level)


def save(path: PathLike, image: Union[DecodedImage, np.ndarray],
         options: Optional[EncodeOptions] = None) -> BLP1_HEADER:
    """Encode an image to a BLP1 file on disk"""
    with open(path, 'wb') as f:
        return encode(f, image, options)


class BLP:
    """BLP1 texture container"""
    def __init__(self) -> None:
        self.header: BLP1_HEADER = BLP1_HEADER()
        self.palette: Optional[np.ndarray] = None  # (count, 4) BGRA, DIRECT mode only
        self.jpeg_header: bytes = b''  # Shared JPEG header, JPEG mode only
        self.data: List[bytes] = []  # Raw payload of each populated mip level
        self._raw: bytes = b''

    def __str__(self) -> str:
        """Return debug string representation of BLP file"""
        header = self.header
        lines = ["BLP File Information:"]
        lines.append(f"  Magic: {header.magic}")
        lines.append(f"  Dimensions: {header.width}x{header.height}")
        lines.append(f"  Format: {self.get_format_str()}")
        lines.append(f"  Alpha Bits: {header.alpha_bits}")
        lines.append(f"  Extra: {header.extra}")
        lines.append(f"  Has Mipmaps: {header.has_mipmaps}")

        if self.palette is not None:
            lines.append(f"  Palette Entries: {len(self.palette)}")
        if header.compression == BLPCompression.JPEG:
            lines.append(f"  Shared JPEG Header: {len(self.jpeg_header)} bytes")

        lines.append(f"  Mipmap Levels: {self.get_mip_count()}")
        for level in range(self.get_mip_count()):
            width, height = header.get_level_dimensions(level)
            lines.append(
                f"    Level {level}: {width}x{height}, "
                f"offset {header.offsets[level]}, {header.sizes[level]} bytes"
            )

        lines.append(f"  Total Data Size: {sum(len(level) for level in self.data)} bytes")
        return "\n".join(lines)

    @classmethod
    def from_bytes(cls, data: bytes) -> 'BLP':
        """Read BLP from bytes"""
        blp = cls()
        blp._raw = bytes(data)
        blp.header = BLP1_HEADER.from_bytes(blp._raw)
        header = blp.header

        cursor = ByteCursor(blp._raw)
        if header.compression == BLPCompression.DIRECT:
            blp.palette = read_palette(cursor, header)
        else:
            cursor.seek(HEADER_SIZE)
            blp.jpeg_header = cursor.read(cursor.read_u32_le())

        for level in range(header.get_mip_count()):
            offset = header.offsets[level]
            size = header.sizes[level]
            if offset + size > len(blp._raw):
                raise MalformedFileError(
                    f"Not enough data for mip level {level}. Expected {size} bytes at offset {offset}, "
                    f"but the file is only {len(blp._raw)} bytes."
                )
            blp.data.append(blp._raw[offset:offset + size])

        return blp

    @classmethod
    def from_file(cls, path: PathLike) -> 'BLP':
        with open(path, 'rb') as f:
            return cls.from_bytes(f.read())

    def get_format_str(self) -> str:
        """Get a human-readable format string"""
        if self.header.compression == BLPCompression.DIRECT:
            if self.header.alpha_bits == AlphaBits.NONE:
                return "DIRECT (paletted)"
            return f"DIRECT (paletted, {self.header.alpha_bits}-bit alpha)"
        return "JPEG"

    def get_width(self) -> int:
        return self.header.width

    def get_height(self) -> int:
        return self.header.height

    def get_mip_count(self) -> int:
        """Get the number of populated mipmap levels"""
        return self.header.get_mip_count()

    def get_level_size(self, mipmap_level: int) -> int:
        if mipmap_level < 0 or mipmap_level >= len(self.data):
            raise ValueError(f"Invalid mipmap level {mipmap_level}. Texture has {len(self.data)} mipmap level(s).")
        return len(self.data[mipmap_level])

    def to_image(self, mipmap_level: int = 0) -> np.ndarray:
        """
        Convert a mip level to a numpy array

        Returns:
            numpy array of shape (height, width, 4) with dtype uint8 (RGBA values 0-255)

            Can be saved with imageio:
            - imageio.imwrite('output.png', array)
        """
        return decode(self._raw, mipmap_level).rgba

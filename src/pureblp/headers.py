"""BLP1 header structure"""
import logging
import struct
from typing import List

from .cursor import ByteCursor
from .enums import AlphaBits, BLPCompression, BLP1_MAGIC, HEADER_SIZE, MAX_MIPMAPS
from .errors import InvalidMagicError, MalformedFileError, ShortReadError, UnsupportedFormatError

logger = logging.getLogger(__name__)

_HEADER_STRUCT = struct.Struct(f'<4s6I{MAX_MIPMAPS}I{MAX_MIPMAPS}I')


class BLP1_HEADER:
    """BLP1 Header structure (156 bytes)"""
    def __init__(self) -> None:
        self.magic: bytes = BLP1_MAGIC  # Magic number (always "BLP1")
        self.compression: int = BLPCompression.JPEG  # 0 = JPEG, 1 = DIRECT
        self.alpha_bits: int = AlphaBits.NONE  # Alpha plane depth: 0, 1, 4 or 8
        self.width: int = 0  # Width of level 0 in pixels
        self.height: int = 0  # Height of level 0 in pixels
        self.extra: int = 0  # Opaque flag (team colour / content type)
        self.has_mipmaps: int = 0  # Opaque flag
        self.offsets: List[int] = [0] * MAX_MIPMAPS  # Byte offset of each mip level
        self.sizes: List[int] = [0] * MAX_MIPMAPS  # Byte length of each mip level

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BLP1_HEADER):
            return NotImplemented
        return self.to_bytes() == other.to_bytes()

    def __repr__(self) -> str:
        return (
            f"BLP1_HEADER(compression={self.compression}, alpha_bits={self.alpha_bits}, "
            f"size={self.width}x{self.height}, extra={self.extra}, "
            f"has_mipmaps={self.has_mipmaps}, levels={self.get_mip_count()})"
        )

    @classmethod
    def from_bytes(cls, data: bytes, validate: bool = True) -> 'BLP1_HEADER':
        """Read BLP1_HEADER from 156 bytes of data"""
        if data[:4] != BLP1_MAGIC:
            raise InvalidMagicError(f"Invalid BLP magic number: {bytes(data[:4])!r}")
        if len(data) < HEADER_SIZE:
            raise ShortReadError(f"Expected {HEADER_SIZE} bytes for BLP1_HEADER, got {len(data)}")

        header = cls()
        values = _HEADER_STRUCT.unpack(data[:HEADER_SIZE])
        header.magic = values[0]
        header.compression = values[1]
        header.alpha_bits = values[2]
        header.width = values[3]
        header.height = values[4]
        header.extra = values[5]
        header.has_mipmaps = values[6]
        header.offsets = list(values[7:7 + MAX_MIPMAPS])
        header.sizes = list(values[7 + MAX_MIPMAPS:7 + 2 * MAX_MIPMAPS])

        if validate:
            header.validate()
        return header

    def to_bytes(self) -> bytes:
        """Pack the header into its 156-byte on-disk form"""
        if len(self.offsets) != MAX_MIPMAPS or len(self.sizes) != MAX_MIPMAPS:
            raise ValueError(f"Offset and size tables must have {MAX_MIPMAPS} entries")
        return _HEADER_STRUCT.pack(
            self.magic,
            int(self.compression),
            int(self.alpha_bits),
            self.width,
            self.height,
            self.extra,
            self.has_mipmaps,
            *self.offsets,
            *self.sizes,
        )

    def validate(self) -> None:
        """
        Check enumerated fields and the mip table.

        Raises:
            InvalidMagicError: If the magic is not 'BLP1'
            UnsupportedFormatError: If compression or alpha_bits is not a known value
            MalformedFileError: If dimensions are zero or level 0 is not laid out after the header
        """
        if self.magic != BLP1_MAGIC:
            raise InvalidMagicError(f"Invalid BLP magic number: {self.magic!r}")
        if self.compression not in tuple(BLPCompression):
            raise UnsupportedFormatError(f"Unsupported BLP compression type: {self.compression}")
        if self.alpha_bits not in tuple(AlphaBits):
            raise UnsupportedFormatError(f"Unsupported alpha bit depth: {self.alpha_bits}")
        if self.width < 1 or self.height < 1:
            raise MalformedFileError(f"Invalid image dimensions: {self.width}x{self.height}")
        if self.sizes[0] == 0:
            raise MalformedFileError("Mip level 0 has no payload")
        if self.offsets[0] < HEADER_SIZE:
            raise MalformedFileError(
                f"Mip level 0 offset {self.offsets[0]} overlaps the {HEADER_SIZE}-byte header"
            )

        mip_count = self.get_mip_count()
        stray = [i for i in range(mip_count, MAX_MIPMAPS) if self.sizes[i] > 0]
        if stray:
            logger.warning("Ignoring mip levels %s after the gap at level %d", stray, mip_count)

    def get_mip_count(self) -> int:
        """Number of populated levels, counted from 0 up to the first empty slot"""
        for i, size in enumerate(self.sizes):
            if size == 0:
                return i
        return MAX_MIPMAPS

    def get_level_dimensions(self, level: int) -> tuple[int, int]:
        """Width and height of a mip level"""
        return max(1, self.width >> level), max(1, self.height >> level)


def probe_magic(cursor: ByteCursor) -> bool:
    """Read only the 4 magic bytes at the current position"""
    return cursor.read_at_most(4) == BLP1_MAGIC


def decode_header(cursor: ByteCursor) -> BLP1_HEADER:
    """
    Read and validate the header at the current cursor position.

    The magic is checked before the rest of the header is read, so any
    foreign stream, even one shorter than 4 bytes, reports InvalidMagicError.
    A BLP1 header cut short reports ShortReadError.
    """
    magic = cursor.read_at_most(4)
    if magic != BLP1_MAGIC:
        raise InvalidMagicError(f"Invalid BLP magic number: {magic!r}")
    header = BLP1_HEADER.from_bytes(magic + cursor.read(HEADER_SIZE - 4))
    logger.debug("Decoded %r", header)
    return header


def encode_header(cursor: ByteCursor, header: BLP1_HEADER) -> None:
    """Write the 156-byte header at the current cursor position"""
    cursor.write(header.to_bytes())

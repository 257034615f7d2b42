"""BLP1 enumerations and format constants"""
from enum import IntEnum


BLP1_MAGIC = b'BLP1'
HEADER_SIZE = 156  # magic + 6 DWORDs + 16 offsets + 16 sizes
MAX_MIPMAPS = 16  # Number of offset/size slots in the header
MAX_PALETTE_ENTRIES = 256
PALETTE_ENTRY_SIZE = 4  # B, G, R, unused
DEFAULT_JPEG_QUALITY = 85

# Default values for the opaque header flags
DEFAULT_EXTRA = 4
DEFAULT_HAS_MIPMAPS = 1


class BLPCompression(IntEnum):
    """Payload encoding of a BLP1 file"""
    JPEG = 0
    DIRECT = 1


class AlphaBits(IntEnum):
    """Bit depth of the packed alpha plane"""
    NONE = 0
    ONE = 1
    FOUR = 4
    EIGHT = 8

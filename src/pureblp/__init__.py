"""pureblp - BLP1 texture file reader and writer"""

__version__ = "0.1.0"

# Codec API
from .blp import (
    BLP,
    probe,
    read_header,
    decode,
    encode,
    encode_direct,
    load,
    save,
)

# Pipelines and options
from .pipeline import (
    DecodePipeline,
    EncodePipeline,
    EncodeOptions,
    PipelineState,
)

# Data structures
from .headers import BLP1_HEADER
from .image import DecodedImage

# Enumerations
from .enums import (
    BLPCompression,
    AlphaBits,
)

# Errors
from .errors import (
    BLPError,
    InvalidMagicError,
    UnsupportedFormatError,
    MalformedFileError,
    ShortReadError,
    ShortWriteError,
    OutOfMemoryError,
    CodecFailureError,
    CancelledError,
    PipelineStateError,
)

# CLI entry point
from .cli import main

__all__ = [
    '__version__',
    'BLP',
    'probe',
    'read_header',
    'decode',
    'encode',
    'encode_direct',
    'load',
    'save',
    'DecodePipeline',
    'EncodePipeline',
    'EncodeOptions',
    'PipelineState',
    'BLP1_HEADER',
    'DecodedImage',
    'BLPCompression',
    'AlphaBits',
    'BLPError',
    'InvalidMagicError',
    'UnsupportedFormatError',
    'MalformedFileError',
    'ShortReadError',
    'ShortWriteError',
    'OutOfMemoryError',
    'CodecFailureError',
    'CancelledError',
    'PipelineStateError',
    'main',
]

"""Exception hierarchy for BLP1 decoding and encoding"""


class BLPError(ValueError):
    """Base class for all codec errors"""
    kind = 'error'


class InvalidMagicError(BLPError):
    """The stream does not start with 'BLP1'"""
    kind = 'invalid-magic'


class UnsupportedFormatError(BLPError):
    """A header field or requested level is outside what the codec handles"""
    kind = 'unsupported'


class MalformedFileError(BLPError):
    """The header or payload layout is internally inconsistent"""
    kind = 'malformed'


class ShortReadError(BLPError, EOFError):
    """The stream ended before the requested number of bytes"""
    kind = 'short-read'


class ShortWriteError(BLPError):
    """The stream accepted fewer bytes than were written"""
    kind = 'short-write'


class OutOfMemoryError(BLPError, MemoryError):
    """A buffer allocation failed"""
    kind = 'out-of-memory'


class CodecFailureError(BLPError):
    """The JPEG library reported an unrecoverable condition"""
    kind = 'codec-failure'


class CancelledError(BLPError):
    """The progress callback requested termination"""
    kind = 'cancelled'


class PipelineStateError(BLPError):
    """A pipeline step was invoked out of order or after a failure"""
    kind = 'invalid-state'

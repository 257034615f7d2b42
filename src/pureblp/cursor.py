"""Seekable little-endian reader/writer over a binary stream"""
import io
import struct
from typing import BinaryIO, List, Optional, Sequence, Union

from .errors import BLPError, ShortReadError, ShortWriteError


StreamLike = Union[BinaryIO, bytes, bytearray, memoryview]


class ByteCursor:
    """
    Random-access byte cursor with a sticky error.

    The first failing operation latches its exception; every later call
    re-raises that same exception without touching the stream, so call
    sites can run a linear sequence of reads or writes and check once.
    """

    def __init__(self, stream: StreamLike) -> None:
        if isinstance(stream, (bytes, bytearray, memoryview)):
            stream = io.BytesIO(bytes(stream))
        self.stream: BinaryIO = stream
        self.error: Optional[BLPError] = None
        self.bytes_read: int = 0
        self.bytes_written: int = 0

    def _check(self) -> None:
        if self.error is not None:
            raise self.error

    def _fail(self, error: BLPError) -> None:
        self.error = error
        raise error

    def tell(self) -> int:
        self._check()
        return self.stream.tell()

    def seek(self, offset: int) -> None:
        """Move to an absolute offset"""
        self._check()
        if offset < 0:
            self._fail(ShortReadError(f"Cannot seek to negative offset {offset}"))
        try:
            self.stream.seek(offset)
        except (OSError, ValueError) as e:
            self._fail(ShortReadError(f"Seek to offset {offset} failed: {e}"))

    def length(self) -> int:
        """Total stream length in bytes; the current position is preserved"""
        self._check()
        try:
            position = self.stream.tell()
            end = self.stream.seek(0, io.SEEK_END)
            self.stream.seek(position)
        except (OSError, ValueError) as e:
            self._fail(ShortReadError(f"Cannot determine stream length: {e}"))
        return end

    def read_at_most(self, count: int) -> bytes:
        """Read up to `count` bytes; a short result is not an error"""
        self._check()
        try:
            data = self.stream.read(count)
        except OSError as e:
            self._fail(ShortReadError(f"Read of {count} bytes failed: {e}"))
        data = data or b''
        self.bytes_read += len(data)
        return data

    def read(self, count: int) -> bytes:
        """Read exactly `count` bytes or fail with ShortReadError"""
        self._check()
        if count < 0:
            self._fail(ShortReadError(f"Cannot read a negative byte count ({count})"))
        if count == 0:
            return b''
        position = self.stream.tell()
        try:
            data = self.stream.read(count)
        except OSError as e:
            self._fail(ShortReadError(f"Read of {count} bytes at offset {position} failed: {e}"))
        data = data or b''
        self.bytes_read += len(data)
        if len(data) != count:
            self._fail(ShortReadError(
                f"Unexpected end of stream at offset {position}: "
                f"expected {count} bytes, got {len(data)}"
            ))
        return data

    def write(self, data: bytes) -> None:
        """Write all of `data` or fail with ShortWriteError"""
        self._check()
        try:
            written = self.stream.write(data)
        except OSError as e:
            self._fail(ShortWriteError(f"Write of {len(data)} bytes failed: {e}"))
        # Raw streams may report a partial write; buffered ones return None or the full count
        if written is not None and written != len(data):
            self._fail(ShortWriteError(f"Disk full: wrote {written} of {len(data)} bytes"))
        self.bytes_written += len(data)

    def read_u32_le(self) -> int:
        return struct.unpack('<I', self.read(4))[0]

    def write_u32_le(self, value: int) -> None:
        self.write(struct.pack('<I', value))

    def read_u32_array(self, count: int) -> List[int]:
        return list(struct.unpack(f'<{count}I', self.read(4 * count)))

    def write_u32_array(self, values: Sequence[int]) -> None:
        self.write(struct.pack(f'<{len(values)}I', *values))

"""Decode and encode pipelines for BLP1 streams"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, List, Optional, Union

import numpy as np

from .compressors import JpegCodec, PaletteCodec, TextureCodec
from .compressors.palette import build_palette, read_palette
from .cursor import ByteCursor, StreamLike
from .enums import (
    AlphaBits,
    BLPCompression,
    DEFAULT_EXTRA,
    DEFAULT_HAS_MIPMAPS,
    DEFAULT_JPEG_QUALITY,
    HEADER_SIZE,
    MAX_MIPMAPS,
)
from .errors import BLPError, CancelledError, OutOfMemoryError, PipelineStateError, UnsupportedFormatError
from .headers import BLP1_HEADER, decode_header, encode_header
from .image import DecodedImage, as_rgba
from .mipmaps import generate_mipmaps

logger = logging.getLogger(__name__)

# Progress sink: called with (done, total); returning False cancels the operation
ProgressCallback = Callable[[int, int], Optional[bool]]


class PipelineState(Enum):
    """Lifecycle of a pipeline; every run moves forward one step at a time"""
    IDLE = 'idle'
    PREP = 'prep'
    START = 'start'
    CONTINUE = 'continue'
    FINISH = 'finish'
    FAILED = 'failed'


_STEP_ORDER = (
    PipelineState.IDLE,
    PipelineState.PREP,
    PipelineState.START,
    PipelineState.CONTINUE,
    PipelineState.FINISH,
)


@dataclass
class EncodeOptions:
    """Options for writing a BLP1 file"""
    max_levels: int = MAX_MIPMAPS  # Upper bound on generated mip levels (1..16)
    compression: BLPCompression = BLPCompression.JPEG
    quality: int = DEFAULT_JPEG_QUALITY  # JPEG quality (1..100)
    alpha_bits: Optional[int] = None  # None = 8 if the image has alpha, else 0
    extra: Optional[int] = None  # None = keep the input header's value, else 4
    has_mipmaps: Optional[int] = None  # None = keep the input header's value, else 1

    def __post_init__(self) -> None:
        if not 1 <= self.max_levels <= MAX_MIPMAPS:
            raise ValueError(f"max_levels must be between 1 and {MAX_MIPMAPS}, got {self.max_levels}")
        self.compression = BLPCompression(self.compression)
        if not 1 <= self.quality <= 100:
            raise ValueError(f"JPEG quality must be between 1 and 100, got {self.quality}")
        if self.alpha_bits is not None:
            if self.alpha_bits not in tuple(AlphaBits):
                raise ValueError(f"alpha_bits must be one of 0, 1, 4, 8, got {self.alpha_bits}")
            if self.compression == BLPCompression.JPEG and self.alpha_bits not in (AlphaBits.NONE, AlphaBits.EIGHT):
                raise ValueError(f"JPEG mode supports alpha_bits 0 or 8, got {self.alpha_bits}")


class _Pipeline:
    """Shared state machine, cursor and progress handling"""

    def __init__(self, stream: StreamLike, progress: Optional[ProgressCallback] = None) -> None:
        self.cursor = ByteCursor(stream)
        self.progress = progress
        self.state = PipelineState.IDLE

    @contextmanager
    def _step(self, state: PipelineState) -> Iterator[None]:
        if self.state is PipelineState.FAILED:
            raise PipelineStateError(f"Cannot run {state.name}: the pipeline has failed")
        expected = _STEP_ORDER[_STEP_ORDER.index(state) - 1]
        if self.state is not expected:
            raise PipelineStateError(f"Cannot run {state.name} after {self.state.name}")

        try:
            yield
        except BLPError:
            self._fail()
            raise
        except MemoryError as e:
            self._fail()
            raise OutOfMemoryError(f"Buffer allocation failed during {state.name}") from e
        except BaseException:
            self._fail()
            raise
        self.state = state

    def _fail(self) -> None:
        self.state = PipelineState.FAILED
        self._release()

    def _release(self) -> None:
        """Drop intermediate buffers"""

    def _report(self, done: int, total: int) -> None:
        if self.progress is not None and self.progress(done, total) is False:
            raise CancelledError(f"Cancelled at {done}/{total}")


class DecodePipeline(_Pipeline):
    """
    Decode one mip level of a BLP1 stream into an RGBA8 raster

    Steps (each callable once, in order): prepare, start, continue_, finish.
    run() performs all four.
    """

    def __init__(self, stream: StreamLike, mipmap_level: int = 0,
                 progress: Optional[ProgressCallback] = None) -> None:
        super().__init__(stream, progress)
        self.mipmap_level = mipmap_level
        self.header: Optional[BLP1_HEADER] = None
        self.palette: Optional[np.ndarray] = None
        self.planes = 0
        self.rgba: Optional[np.ndarray] = None

    def _release(self) -> None:
        self.rgba = None

    def prepare(self) -> None:
        with self._step(PipelineState.PREP):
            if not 0 <= self.mipmap_level < MAX_MIPMAPS:
                raise UnsupportedFormatError(
                    f"Invalid mipmap level {self.mipmap_level}. BLP1 has at most {MAX_MIPMAPS} levels."
                )
            self.cursor.seek(0)

    def start(self) -> BLP1_HEADER:
        """Read the header (and palette in DIRECT mode) and check the requested level"""
        with self._step(PipelineState.START):
            header = decode_header(self.cursor)

            mip_count = header.get_mip_count()
            if self.mipmap_level >= mip_count:
                raise UnsupportedFormatError(
                    f"Invalid mipmap level {self.mipmap_level}. File has {mip_count} mipmap level(s)."
                )
            stream_length = self.cursor.length()
            if header.offsets[self.mipmap_level] > stream_length:
                raise UnsupportedFormatError(
                    f"Mip level {self.mipmap_level} offset {header.offsets[self.mipmap_level]} "
                    f"is beyond the end of the stream ({stream_length} bytes)"
                )

            if header.compression == BLPCompression.DIRECT:
                self.palette = read_palette(self.cursor, header)
                # Without alpha the image is a single indexed plane
                self.planes = 1 if header.alpha_bits == AlphaBits.NONE else 4
            else:
                self.planes = 4
            self.header = header
        return header

    def continue_(self) -> np.ndarray:
        """Read the level payload and compose the RGBA raster"""
        with self._step(PipelineState.CONTINUE):
            header = self.header
            level = self.mipmap_level
            width, height = header.get_level_dimensions(level)

            if header.compression == BLPCompression.DIRECT:
                codec = PaletteCodec(self.palette, header.alpha_bits)
                self.cursor.seek(header.offsets[level])
                payload = self.cursor.read(codec.payload_size(width, height))
            else:
                codec = JpegCodec()
                self.cursor.seek(HEADER_SIZE)
                shared_size = self.cursor.read_u32_le()
                shared_header = self.cursor.read(shared_size)
                self.cursor.seek(header.offsets[level])
                payload = shared_header + self.cursor.read(header.sizes[level])
                logger.debug("JPEG level %d: %d shared header bytes + %d body bytes",
                             level, shared_size, header.sizes[level])

            self.rgba = codec.decompress(payload, width, height)
            if header.compression == BLPCompression.JPEG and header.alpha_bits == AlphaBits.NONE:
                self.rgba[:, :, 3] = 255

            # The raster is already composed; rows are reported afterwards and
            # cancelling here only discards it
            total = height * self.planes
            done = 0
            for plane in range(self.planes):
                for row in range(height):
                    done += 1
                    self._report(done, total)
        return self.rgba

    def finish(self) -> DecodedImage:
        with self._step(PipelineState.FINISH):
            height, width = self.rgba.shape[:2]
            image = DecodedImage(
                width=width,
                height=height,
                rgba=self.rgba,
                palette=self.palette,
                header=self.header,
                mipmap_level=self.mipmap_level,
            )
            logger.info("Decoded %dx%d mip level %d", width, height, self.mipmap_level)
            self._release()
        return image

    def run(self) -> DecodedImage:
        self.prepare()
        self.start()
        self.continue_()
        return self.finish()


class EncodePipeline(_Pipeline):
    """
    Encode an RGBA8 raster into a BLP1 stream with a generated mip chain

    The header is written twice: a zeroed placeholder first, then the final
    header with the offset/size tables once every level has been written.
    """

    def __init__(self, stream: StreamLike, options: Optional[EncodeOptions] = None,
                 progress: Optional[ProgressCallback] = None) -> None:
        super().__init__(stream, progress)
        self.options = options or EncodeOptions()
        self.header = BLP1_HEADER()
        self.codec: Optional[TextureCodec] = None
        self.levels: List[np.ndarray] = []
        self.position = 0

    def _release(self) -> None:
        self.levels = []
        self.codec = None

    def prepare(self) -> None:
        with self._step(PipelineState.PREP):
            self.cursor.seek(0)

    def start(self, image: Union[DecodedImage, np.ndarray]) -> None:
        """Build the mip chain and write the placeholder header and palette/shared JPEG header"""
        with self._step(PipelineState.START):
            options = self.options
            rgba = as_rgba(image)
            height, width = rgba.shape[:2]
            source_header = image.header if isinstance(image, DecodedImage) else None

            alpha_bits = options.alpha_bits
            if alpha_bits is None:
                alpha_bits = AlphaBits.EIGHT if (rgba[:, :, 3] != 255).any() else AlphaBits.NONE

            header = self.header
            header.compression = options.compression
            header.alpha_bits = int(alpha_bits)
            header.width = width
            header.height = height
            header.extra = self._pick_flag(options.extra, source_header, 'extra', DEFAULT_EXTRA)
            header.has_mipmaps = self._pick_flag(options.has_mipmaps, source_header, 'has_mipmaps', DEFAULT_HAS_MIPMAPS)

            self.levels = generate_mipmaps(rgba, options.max_levels)

            # Placeholder; rewritten by finish() once the tables are known
            self.cursor.write(bytes(HEADER_SIZE))

            if options.compression == BLPCompression.JPEG:
                self.codec = JpegCodec(options.quality)
                # Empty shared header: every level carries a self-contained bitstream
                self.cursor.write_u32_le(0)
            else:
                palette = build_palette(rgba)
                self.codec = PaletteCodec(palette, header.alpha_bits)
                self.cursor.write(palette.tobytes())
            self.position = self.cursor.tell()

            logger.debug("Encoding %dx%d %s, alpha_bits=%d, %d level(s)",
                         width, height, header.compression.name, header.alpha_bits, len(self.levels))

    @staticmethod
    def _pick_flag(value: Optional[int], source_header: Optional[BLP1_HEADER], name: str, default: int) -> int:
        if value is not None:
            return value
        if source_header is not None:
            return getattr(source_header, name)
        return default

    def continue_(self) -> None:
        """Compress and append every level, recording its offset and size"""
        with self._step(PipelineState.CONTINUE):
            total = len(self.levels)
            for level, rgba in enumerate(self.levels):
                payload = self.codec.compress(rgba)
                self.header.offsets[level] = self.position
                self.header.sizes[level] = len(payload)
                self.cursor.write(payload)
                self.position += len(payload)
                logger.debug("Level %d (%dx%d): offset %d, %d bytes",
                             level, rgba.shape[1], rgba.shape[0], self.header.offsets[level], len(payload))
                self._report(level + 1, total)

            for level in range(total, MAX_MIPMAPS):
                self.header.offsets[level] = 0
                self.header.sizes[level] = 0

    def finish(self) -> BLP1_HEADER:
        """Rewrite the header with the final offset/size tables"""
        with self._step(PipelineState.FINISH):
            self.cursor.seek(0)
            encode_header(self.cursor, self.header)
            self.cursor.seek(self.position)
            logger.info("Wrote %dx%d BLP1 (%s) with %d mip level(s), %d bytes",
                        self.header.width, self.header.height, self.header.compression.name,
                        self.header.get_mip_count(), self.position)
            self._release()
        return self.header

    def run(self, image: Union[DecodedImage, np.ndarray]) -> BLP1_HEADER:
        self.prepare()
        self.start(image)
        self.continue_()
        return self.finish()

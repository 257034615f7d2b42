import io
import struct

import numpy as np
import pytest

from pureblp import (
    BLP,
    BLPCompression,
    EncodeOptions,
    decode,
    encode,
    encode_direct,
    load,
    probe,
    read_header,
    save,
)
from pureblp.compressors.jpeg import SOS, JpegCodec, iter_segments
from pureblp.errors import (
    InvalidMagicError,
    MalformedFileError,
    ShortReadError,
    UnsupportedFormatError,
)


class CountingStream(io.BytesIO):
    """BytesIO that records how much was read and how far it seeked"""

    def __init__(self, data):
        super().__init__(data)
        self.read_total = 0
        self.max_seek = 0

    def read(self, size=-1):
        data = super().read(size)
        self.read_total += len(data)
        return data

    def seek(self, offset, whence=io.SEEK_SET):
        position = super().seek(offset, whence)
        self.max_seek = max(self.max_seek, position)
        return position


def _opaque(pixels, width, height):
    rgba = np.empty((height, width, 4), dtype=np.uint8)
    rgba[:, :, :3] = np.array(pixels, dtype=np.uint8).reshape(height, width, 3)
    rgba[:, :, 3] = 255
    return rgba


def _encode(image, options=None):
    stream = io.BytesIO()
    header = encode(stream, image, options)
    return header, stream.getvalue()


def test_direct_without_alpha():
    rgba = _opaque([(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 255)], 2, 2)
    stream = io.BytesIO()
    header = encode_direct(stream, rgba)
    data = stream.getvalue()

    assert header.compression == BLPCompression.DIRECT
    assert (header.alpha_bits, header.width, header.height) == (0, 2, 2)
    assert header.offsets[0] == 172
    assert header.sizes[0] == 4
    assert struct.unpack_from("<2I", data, 4) == (1, 0)

    image = decode(data)
    assert np.array_equal(image.rgba, rgba)
    assert not image.has_alpha()
    assert len(image.palette) == 4


def test_mip_chain_for_five_by_three():
    rgba = _opaque([(90, 30, 200)] * 15, 5, 3)
    header, data = _encode(rgba)

    assert header.get_mip_count() == 3
    assert [header.get_level_dimensions(i) for i in range(3)] == [(5, 3), (2, 1), (1, 1)]
    assert header.offsets[3:] == [0] * 13
    assert header.sizes[3:] == [0] * 13
    assert read_header(data) == header


def test_foreign_magic_is_rejected():
    data = b"BLP2" + bytes(200)
    assert not probe(data)
    with pytest.raises(InvalidMagicError) as excinfo:
        decode(data)
    assert excinfo.value.kind == "invalid-magic"


def test_probe_never_raises():
    assert not probe(b"")
    assert not probe(b"BL")
    assert probe(b"BLP1")


def test_probe_reads_only_the_magic():
    _, data = _encode(_opaque([(1, 2, 3)] * 4, 2, 2))
    stream = CountingStream(data)
    assert probe(stream)
    assert stream.read_total == 4
    assert stream.max_seek <= 4


@pytest.mark.parametrize("compression", [BLPCompression.JPEG, BLPCompression.DIRECT])
def test_produced_layout(compression):
    rgba = _opaque([(x % 256, (x * 7) % 256, 0) for x in range(64 * 16)], 64, 16)
    header, data = _encode(rgba, EncodeOptions(compression=compression))

    assert data[:4] == b"\x42\x4c\x50\x31"
    count = header.get_mip_count()
    assert count == 7
    for i in range(count - 1):
        assert header.offsets[i] < header.offsets[i + 1]
        assert header.offsets[i] + header.sizes[i] <= header.offsets[i + 1]
    assert header.offsets[count - 1] + header.sizes[count - 1] == len(data)
    for i in range(16):
        if header.sizes[i] == 0:
            assert header.offsets[i] == 0


def test_jpeg_layout_has_empty_shared_header():
    rgba = _opaque([(255, 0, 0)] * 16, 4, 4)
    header, data = _encode(rgba)
    assert struct.unpack_from("<I", data, 156)[0] == 0
    assert header.offsets[0] == 160
    assert header.alpha_bits == 0

    image = decode(data)
    assert (image.rgba[:, :, 0] >= 240).all()
    assert (image.rgba[:, :, 1:3] <= 15).all()
    assert (image.rgba[:, :, 3] == 255).all()


def test_jpeg_alpha_defaults_to_eight_bits():
    rgba = np.full((8, 8, 4), 200, dtype=np.uint8)
    rgba[:, :, 3] = 100
    header, data = _encode(rgba)
    assert header.alpha_bits == 8
    decoded = decode(data).rgba
    assert (abs(decoded[:, :, 3].astype(int) - 100) <= 8).all()


def test_direct_eight_bit_alpha_round_trip(rng):
    colours = rng.integers(0, 256, size=(40, 3), dtype=np.uint8)
    indices = rng.integers(0, len(colours), size=(12, 16))
    rgba = np.empty((12, 16, 4), dtype=np.uint8)
    rgba[:, :, :3] = colours[indices]
    rgba[:, :, 3] = rng.integers(0, 256, size=(12, 16), dtype=np.uint8)

    stream = io.BytesIO()
    header = encode_direct(stream, rgba, alpha_bits=8)
    assert header.alpha_bits == 8
    assert np.array_equal(decode(stream.getvalue()).rgba, rgba)


@pytest.mark.parametrize("alpha_bits, expected", [
    (1, [255, 0, 255, 0]),
    (4, [0xAA, 0x33, 0xFF, 0x00]),
])
def test_direct_low_alpha_depths(alpha_bits, expected):
    rgba = _opaque([(10, 20, 30)] * 4, 4, 1)
    rgba[0, :, 3] = [0xAB, 0x3C, 0xFF, 0x05] if alpha_bits == 4 else [200, 10, 128, 127]
    stream = io.BytesIO()
    encode_direct(stream, rgba, alpha_bits=alpha_bits, max_levels=1)
    assert decode(stream.getvalue()).rgba[0, :, 3].tolist() == expected


def test_shared_jpeg_header_is_prepended():
    rgba = np.zeros((8, 8, 4), dtype=np.uint8)
    rgba[:, :, 1] = 255
    rgba[:, :, 3] = 255
    bitstream = JpegCodec().compress(rgba)
    sos_start = [start for marker, start, end in iter_segments(bitstream) if marker == SOS][0]
    shared, body = bitstream[:sos_start], bitstream[sos_start:]

    offsets = [160 + len(shared)] + [0] * 15
    sizes = [len(body)] + [0] * 15
    data = (struct.pack("<4s6I16I16I", b"BLP1", 0, 8, 8, 8, 4, 1, *offsets, *sizes)
            + struct.pack("<I", len(shared)) + shared + body)

    decoded = decode(data).rgba
    assert (decoded[:, :, 1] >= 240).all()
    assert (decoded[:, :, 0] <= 15).all()

    blp = BLP.from_bytes(data)
    assert blp.jpeg_header == shared
    assert blp.data == [body]


def test_extra_and_mipmap_flags_survive_reencoding(build_direct_blp):
    data = build_direct_blp(2, 1, [(0, 0, 0, 0), (255, 255, 255, 0)], b"\x00\x01", extra=5, has_mipmaps=0)
    image = decode(data)
    header, _ = _encode(image, EncodeOptions(compression=BLPCompression.DIRECT))
    assert (header.extra, header.has_mipmaps) == (5, 0)

    header, _ = _encode(image.rgba)
    assert (header.extra, header.has_mipmaps) == (4, 1)

    header, _ = _encode(image, EncodeOptions(extra=3, has_mipmaps=1))
    assert (header.extra, header.has_mipmaps) == (3, 1)


def test_decode_smaller_mip_level():
    rgba = _opaque([(12, 34, 56)] * 32, 8, 4)
    _, data = _encode(rgba, EncodeOptions(compression=BLPCompression.DIRECT))
    image = decode(data, mipmap_level=2)
    assert (image.width, image.height, image.mipmap_level) == (2, 1, 2)
    assert image.rgba.tolist() == [[[12, 34, 56, 255], [12, 34, 56, 255]]]

    with pytest.raises(UnsupportedFormatError):
        decode(data, mipmap_level=4)
    with pytest.raises(UnsupportedFormatError):
        decode(data, mipmap_level=16)


def test_level_offset_beyond_stream(build_direct_blp):
    data = bytearray(build_direct_blp(2, 2, [(0, 0, 0, 0)], bytes(4)))
    struct.pack_into("<I", data, 32, 10000)  # offsets[1]
    struct.pack_into("<I", data, 96, 1)  # sizes[1]
    with pytest.raises(UnsupportedFormatError):
        decode(bytes(data), mipmap_level=1)
    with pytest.raises(MalformedFileError):
        BLP.from_bytes(bytes(data))


def test_truncated_level_is_short_read(build_direct_blp):
    data = build_direct_blp(2, 2, [(0, 0, 0, 0)], bytes(4))
    with pytest.raises(ShortReadError):
        decode(data[:-1])


def test_inspector(build_direct_blp):
    data = build_direct_blp(2, 2, [(0, 0, 255, 0), (255, 0, 0, 0)], b"\x00\x01\x01\x00")
    blp = BLP.from_bytes(data)
    assert (blp.get_width(), blp.get_height(), blp.get_mip_count()) == (2, 2, 1)
    assert blp.get_format_str() == "DIRECT (paletted)"
    assert blp.get_level_size(0) == 4
    with pytest.raises(ValueError):
        blp.get_level_size(1)

    text = str(blp)
    assert "Dimensions: 2x2" in text
    assert "Palette Entries: 2" in text
    assert "Level 0: 2x2, offset 164, 4 bytes" in text
    assert blp.to_image()[0, 0].tolist() == [255, 0, 0, 255]


def test_load_and_save(tmp_path):
    path = tmp_path / "texture.blp"
    rgba = _opaque([(0, 0, 0), (255, 255, 255)] * 8, 4, 4)
    header = save(path, rgba, EncodeOptions(compression=BLPCompression.DIRECT, max_levels=2))
    assert header.get_mip_count() == 2
    assert np.array_equal(load(path).rgba, rgba)
    assert BLP.from_file(path).get_mip_count() == 2


def test_encode_accepts_rgb_and_greyscale():
    rgb = np.full((2, 2, 3), 7, dtype=np.uint8)
    grey = np.full((2, 2), 7, dtype=np.uint8)
    options = EncodeOptions(compression=BLPCompression.DIRECT)
    for image in (rgb, grey):
        header, data = _encode(image, options)
        assert header.alpha_bits == 0
        assert decode(data).rgba[0, 0].tolist() == [7, 7, 7, 255]


def test_encode_rejects_bad_arrays():
    with pytest.raises(ValueError):
        _encode(np.zeros((2, 2, 4), dtype=np.float32))
    with pytest.raises(ValueError):
        _encode(np.zeros((2, 2, 2), dtype=np.uint8))


@pytest.mark.parametrize("data", [b"", b"P", b"PNG"])
def test_short_foreign_stream_is_invalid_magic(data):
    with pytest.raises(InvalidMagicError):
        decode(data)
    with pytest.raises(InvalidMagicError):
        BLP.from_bytes(data)


def test_palette_beyond_end_of_file():
    offsets = [1000] + [0] * 15
    sizes = [1] + [0] * 15
    data = struct.pack("<4s6I16I16I", b"BLP1", 1, 0, 1, 1, 4, 1, *offsets, *sizes) + b"\x00\x00"
    with pytest.raises(ShortReadError) as excinfo:
        BLP.from_bytes(data)
    assert excinfo.value.kind == "short-read"
    with pytest.raises(UnsupportedFormatError):
        decode(data)

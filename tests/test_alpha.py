import numpy as np
import pytest

from pureblp.compressors.alpha import alpha_plane_size, pack_alpha, unpack_alpha
from pureblp.errors import MalformedFileError


def test_one_bit_alpha_is_lsb_first():
    alpha = np.array([255, 0, 255, 0, 255, 0, 255, 0], dtype=np.uint8)
    assert pack_alpha(alpha, 1) == b"\x55"
    assert unpack_alpha(b"\x55", 8, 1).tolist() == [255, 0, 255, 0, 255, 0, 255, 0]


def test_one_bit_alpha_partial_byte():
    # Only the low three bits belong to pixels
    assert unpack_alpha(b"\xfd", 3, 1).tolist() == [255, 0, 255]


def test_four_bit_alpha_even_pixel_takes_high_nibble():
    alpha = np.array([0xAA, 0x33], dtype=np.uint8)
    assert pack_alpha(alpha, 4) == b"\xa3"
    assert unpack_alpha(b"\xa3", 2, 4).tolist() == [0xAA, 0x33]


def test_four_bit_identity_on_nibble_domain():
    nibbles = np.arange(16, dtype=np.uint8)
    # Odd pixel count leaves a padding nibble in the last byte
    values = np.concatenate([nibbles, nibbles[:5]]) * np.uint8(0x11)
    packed = pack_alpha(values, 4)
    assert len(packed) == alpha_plane_size(len(values), 4) == 11
    assert unpack_alpha(packed, len(values), 4).tolist() == values.tolist()


def test_four_bit_quantises_eight_bit_values():
    values = np.arange(256, dtype=np.uint8)
    restored = unpack_alpha(pack_alpha(values, 4), 256, 4)
    assert restored.tolist() == [(v >> 4) * 0x11 for v in range(256)]


def test_eight_bit_alpha_is_verbatim(rng):
    values = rng.integers(0, 256, size=37, dtype=np.uint8)
    assert unpack_alpha(pack_alpha(values, 8), 37, 8).tolist() == values.tolist()


def test_zero_bits_means_opaque():
    assert pack_alpha(np.zeros(4, dtype=np.uint8), 0) == b""
    assert unpack_alpha(b"", 4, 0).tolist() == [255] * 4


def test_plane_size_rounds_up():
    assert alpha_plane_size(9, 1) == 2
    assert alpha_plane_size(3, 4) == 2
    assert alpha_plane_size(3, 8) == 3
    assert alpha_plane_size(100, 0) == 0


def test_short_plane_is_malformed():
    with pytest.raises(MalformedFileError):
        unpack_alpha(b"\x00", 16, 4)

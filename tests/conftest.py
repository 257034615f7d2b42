import struct

import numpy as np
import pytest


def _build_direct_blp(width, height, palette, indices, alpha=b"", alpha_bits=0,
                      extra=5, has_mipmaps=0):
    """Assemble a single-level DIRECT mode BLP1 file by hand.

    `palette` is a sequence of (B, G, R, X) tuples, `indices` a bytes-like
    index plane and `alpha` the already packed alpha plane.
    """
    palette_bytes = b"".join(bytes(entry) for entry in palette)
    level0 = bytes(indices) + bytes(alpha)
    offsets = [156 + len(palette_bytes)] + [0] * 15
    sizes = [len(level0)] + [0] * 15
    header = struct.pack(
        "<4s6I16I16I", b"BLP1", 1, alpha_bits, width, height, extra, has_mipmaps,
        *offsets, *sizes,
    )
    return header + palette_bytes + level0


@pytest.fixture
def build_direct_blp():
    return _build_direct_blp


@pytest.fixture
def rng():
    return np.random.default_rng(1234)

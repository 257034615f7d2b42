"""Mip level payload codecs"""
from .base import TextureCodec
from .jpeg import JpegCodec
from .palette import PaletteCodec

__all__ = [
    'TextureCodec',
    'JpegCodec',
    'PaletteCodec',
]

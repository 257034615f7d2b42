"""Base class for BLP level payload codecs"""
from abc import ABC, abstractmethod
import numpy as np


class TextureCodec(ABC):
    """Base class for mip level payload codecs"""
    @abstractmethod
    def decompress(self, data: bytes, width: int, height: int) -> np.ndarray:
        """
        Decode one mip level payload to RGBA8 format

        Args:
            data: Level payload bytes
            width: Level width in pixels
            height: Level height in pixels

        Returns:
            numpy array of shape (height, width, 4) with dtype uint8 (RGBA)
        """
        pass

    @abstractmethod
    def compress(self, rgba: np.ndarray) -> bytes:
        """
        Encode one RGBA8 mip level into its payload bytes

        Args:
            rgba: numpy array of shape (height, width, 4) with dtype uint8

        Returns:
            Level payload bytes
        """
        pass

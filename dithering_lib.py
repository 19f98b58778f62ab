"""
A Python library providing the dithering strategies used to reduce a grayscale
raster to pure black and white before it is turned into Braille dots.
Every strategy mutates a 2-D uint8 numpy array in place and leaves each pixel
at either 0 or 255.
"""

import numpy as np
from enum import Enum

__all__ = [
    'DIFFUSION_THRESHOLD',
    'DitherMode',
    'BaseDitherStrategy',
    'NoDitherStrategy',
    'MatrixDitherStrategy',
    'Sierra2RowDitherStrategy',
    'DitherUtils',
    'get_dither_strategy',
]

# Binarization point for error diffusion and plain thresholding.
DIFFUSION_THRESHOLD = 96

# -------------------- Enumerations --------------------

class DitherMode(Enum):
    SIERRA2 = "sierra2"
    BAYER4x4 = "bayer4x4"
    BAYER2x2 = "bayer2x2"
    NONE = "none"

    @classmethod
    def from_name(cls, name: str) -> "DitherMode":
        """Resolve a mode from its value or short alias (s2, b4, b2, n)."""
        key = name.strip().lower()
        key = MODE_ALIASES.get(key, key)
        return cls(key)


MODE_ALIASES = {
    "s2": DitherMode.SIERRA2.value,
    "b4": DitherMode.BAYER4x4.value,
    "b2": DitherMode.BAYER2x2.value,
    "n": DitherMode.NONE.value,
}


# -------------------- Base Classes for Dithering Strategies --------------------

class BaseDitherStrategy:
    """
    Base class for dithering strategies.
    Each strategy must implement a .dither(raster) method that rewrites the
    (H, W) uint8 raster in place so every pixel is 0 or 255.
    """
    def dither(self, raster: np.ndarray) -> None:
        raise NotImplementedError


class NoDitherStrategy(BaseDitherStrategy):
    """
    No dithering at all; plain threshold at 96.
    """
    def __init__(self, threshold: int = DIFFUSION_THRESHOLD):
        self.threshold = threshold

    def dither(self, raster: np.ndarray) -> None:
        raster[...] = np.where(raster > self.threshold, 255, 0)


# -------------------- Matrix-based Dithering (Bayer) --------------------

class MatrixDitherStrategy(BaseDitherStrategy):
    """
    Ordered dithering. The threshold matrix is tiled across the raster and a
    pixel becomes white when it exceeds the entry at (y mod N, x mod N).
    """
    def __init__(self, threshold_matrix: np.ndarray):
        self.threshold_matrix = threshold_matrix

    def dither(self, raster: np.ndarray) -> None:
        h, w = raster.shape
        th_h, th_w = self.threshold_matrix.shape
        tiled = np.tile(self.threshold_matrix,
                        ((h + th_h - 1)//th_h, (w + th_w - 1)//th_w))
        tiled = tiled[:h,:w]
        raster[...] = np.where(raster > tiled, 255, 0)


# -------------------- Sierra Two-Row Error Diffusion --------------------

class Sierra2RowDitherStrategy(BaseDitherStrategy):
    """
    Sierra two-row error diffusion, row-major and left to right.

    The quantization error is shifted right by 5 (integer, rounding toward
    negative infinity) and spread to ten unvisited neighbours:

                  X   5   3
          2   4   5   4   2
              2   3   2

    Each addition is clamped to [0, 255]. Neighbours outside the raster are
    skipped; nothing wraps around the edges.
    """

    # (dx, dy, weight)
    NEIGHBOURS = (
        (1, 0, 5), (2, 0, 3),
        (-2, 1, 2), (-1, 1, 4), (0, 1, 5), (1, 1, 4), (2, 1, 2),
        (-1, 2, 2), (0, 2, 3), (1, 2, 2),
    )

    def __init__(self, threshold: int = DIFFUSION_THRESHOLD):
        self.threshold = threshold

    def dither(self, raster: np.ndarray) -> None:
        h, w = raster.shape
        # plain ints keep the per-pixel loop fast
        pix = raster.tolist()
        threshold = self.threshold
        for y in range(h):
            row = pix[y]
            for x in range(w):
                value = row[x]
                if value > threshold:
                    error = (value - 255) >> 5
                    row[x] = 255
                else:
                    error = value >> 5
                    row[x] = 0
                if error == 0:
                    continue
                for dx, dy, weight in self.NEIGHBOURS:
                    nx, ny = x + dx, y + dy
                    if 0 <= nx < w and ny < h:
                        nv = pix[ny][nx] + error * weight
                        pix[ny][nx] = 0 if nv < 0 else 255 if nv > 255 else nv
        raster[...] = np.array(pix, dtype=np.uint8).reshape(h, w)


# -------------------- Dither Utils --------------------

class DitherUtils:
    """
    Contains threshold matrices for Bayer and helper checks.
    """

    BAYER2x2 = np.array([
        [0,   128],
        [192, 64]
    ], dtype=np.uint8)

    BAYER4x4 = np.array([
        [0,   128, 32,  160],
        [192, 64,  224, 96],
        [48,  176, 16,  144],
        [240, 112, 208, 80]
    ], dtype=np.uint8)

    @staticmethod
    def get_threshold_matrix(mode: DitherMode) -> np.ndarray:
        if mode == DitherMode.BAYER2x2:
            return DitherUtils.BAYER2x2
        elif mode == DitherMode.BAYER4x4:
            return DitherUtils.BAYER4x4
        else:
            raise ValueError(f"Unsupported matrix mode: {mode}")

    @staticmethod
    def is_binary(raster: np.ndarray) -> bool:
        """True when every pixel is 0 or 255."""
        return bool(np.isin(raster, (0, 255)).all())


def get_dither_strategy(mode: DitherMode) -> BaseDitherStrategy:
    if mode == DitherMode.NONE:
        return NoDitherStrategy()
    elif mode == DitherMode.SIERRA2:
        return Sierra2RowDitherStrategy()
    elif mode in (DitherMode.BAYER2x2, DitherMode.BAYER4x4):
        return MatrixDitherStrategy(DitherUtils.get_threshold_matrix(mode))
    else:
        raise ValueError(f"Unrecognized DitherMode: {mode}")

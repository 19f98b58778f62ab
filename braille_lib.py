"""
A Python library for building text images out of Unicode Braille characters.
Each character is a 2x4 block of dots packed into one byte; a BrailleGrid holds
those bytes and renders them to a string. Images are reduced to lightness,
dithered with a strategy from dithering_lib, and then assembled dot by dot.
"""

import logging
from typing import Optional

import numpy as np
from PIL import Image

from dithering_lib import BaseDitherStrategy

__version__ = "0.1.0"

__all__ = [
    'BRAILLE_OFFSET',
    'BRAILLE_CHARS',
    'DOT_THRESHOLD',
    'OutOfBoundsError',
    'BrailleGrid',
    'get_bit_mask',
    'compute_lightness',
    'lightness_array',
]

logger = logging.getLogger(__name__)

# -------------------- Braille Table --------------------

BRAILLE_OFFSET = 0x2800
H_STEP = 2
V_STEP = 4

# All 256 Braille characters, indexed by packed byte value.
BRAILLE_CHARS = tuple(chr(BRAILLE_OFFSET + value) for value in range(256))

# Single raised dot (bit 2) used in place of the blank character.
FILLER_INDEX = 1 << 2

# bits per dot, indexed [y % 4][x % 2]:
#   0  3
#   1  4
#   2  5
#   6  7
PIXEL_MAP = (
    (0x01, 0x08),
    (0x02, 0x10),
    (0x04, 0x20),
    (0x40, 0x80),
)

# Assembly threshold; a pixel of exactly this value is never raised.
DOT_THRESHOLD = 96

LUMA_WEIGHTS = (0.2126, 0.7152, 0.0722)


def get_bit_mask(x: int, y: int) -> int:
    """Bit of the cell byte that represents dot (x, y)."""
    return PIXEL_MAP[y % V_STEP][x % H_STEP]


# -------------------- Errors --------------------

class OutOfBoundsError(IndexError):
    """
    Raised when a dot outside the grid is written.
    Carries the offending coordinates and the grid's size in characters.
    """
    def __init__(self, x: int, y: int, width: int, height: int):
        self.x = x
        self.y = y
        self.width = width
        self.height = height
        super().__init__(
            f"the coordinates (x: {x}, y: {y}) were outside the bounds of the "
            f"BrailleGrid (width: {width}, height: {height})"
        )


# -------------------- Lightness --------------------

def _round_half_up(value):
    return np.floor(value + 0.5)


def compute_lightness(r: int, g: int, b: int, a: int = 255) -> int:
    """
    Perceptual lightness (BT.709 luma) of one RGBA pixel, composited on black.

    Args:
        r, g, b, a: Channel values in [0, 255]

    Returns:
        Lightness in [0, 255]
    """
    luma = r * LUMA_WEIGHTS[0] + g * LUMA_WEIGHTS[1] + b * LUMA_WEIGHTS[2]
    value = min(max(luma * (a / 255.0), 0.0), 255.0)
    return int(_round_half_up(value))


def lightness_array(rgba: np.ndarray) -> np.ndarray:
    """
    Vectorised compute_lightness over an (H, W, 4) array. Returns (H, W) uint8.
    """
    arr = rgba.astype(np.float64)
    luma = (arr[..., 0] * LUMA_WEIGHTS[0]
            + arr[..., 1] * LUMA_WEIGHTS[1]
            + arr[..., 2] * LUMA_WEIGHTS[2])
    value = np.clip(luma * (arr[..., 3] / 255.0), 0.0, 255.0)
    return _round_half_up(value).astype(np.uint8)


# -------------------- Braille Grid --------------------

class BrailleGrid:
    """
    Packed bitmap of Braille dots.

    Dimensions are given in dots; each character covers 2 dots horizontally
    and 4 vertically, so the character grid is the ceiling of both divisions.
    Cells are stored row-major, one byte per character.
    """

    def __init__(self, width: int, height: int):
        if width <= 0 or height <= 0:
            raise ValueError("width and height must be greater than 0")
        self.dot_width = width
        self.dot_height = height
        self.char_width = -(-width // H_STEP)
        self.char_height = -(-height // V_STEP)
        self.cells = bytearray(self.char_width * self.char_height)

    def __repr__(self) -> str:
        return (f"BrailleGrid(width={self.dot_width}, height={self.dot_height}, "
                f"chars={self.char_width}x{self.char_height})")

    def _in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.dot_width and 0 <= y < self.dot_height

    def _cell_index(self, x: int, y: int) -> int:
        return x // H_STEP + (y // V_STEP) * self.char_width

    def set_dot(self, x: int, y: int, raised: bool):
        """Raise or lower dot (x, y). Raises OutOfBoundsError outside the grid."""
        if not self._in_bounds(x, y):
            raise OutOfBoundsError(x, y, self.char_width, self.char_height)
        idx = self._cell_index(x, y)
        mask = get_bit_mask(x, y)
        if raised:
            self.cells[idx] |= mask
        else:
            self.cells[idx] &= ~mask & 0xFF

    def get_dot(self, x: int, y: int) -> Optional[bool]:
        """State of dot (x, y), or None outside the grid."""
        if not self._in_bounds(x, y):
            return None
        return bool(self.cells[self._cell_index(x, y)] & get_bit_mask(x, y))

    def str_len(self, row_separator: str = "\n") -> int:
        """Exact length of render() output for the given separator."""
        return (self.char_width * self.char_height
                + (self.char_height - 1) * len(row_separator))

    def render(self, no_empty_chars: bool = True, row_separator: str = "\n") -> str:
        """
        Render the grid as text.

        Args:
            no_empty_chars: Replace blank characters with a single-dot one,
                which keeps rows aligned in terminals that draw the blank
                Braille glyph narrower than the others
            row_separator: Inserted between character rows (not after the last)

        Returns:
            String of exactly str_len(row_separator) characters
        """
        blank = BRAILLE_CHARS[FILLER_INDEX] if no_empty_chars else BRAILLE_CHARS[0]
        rows = []
        for start in range(0, len(self.cells), self.char_width):
            row = self.cells[start:start + self.char_width]
            rows.append(''.join(BRAILLE_CHARS[v] if v else blank for v in row))
        return row_separator.join(rows)

    def as_str(self, no_empty_chars: bool, break_line: bool) -> str:
        """render() with rows separated by a newline, or by a space when break_line is False."""
        return self.render(no_empty_chars, "\n" if break_line else " ")

    def __str__(self) -> str:
        return self.render()

    @classmethod
    def from_raster(cls, raster: np.ndarray, invert: bool) -> "BrailleGrid":
        """
        Build a grid from a binarized (H, W) raster, one dot per pixel.
        Dark pixels (< 96) are raised, or light ones (> 96) when inverted.
        """
        h, w = raster.shape
        grid = cls(w, h)
        if invert:
            raised = raster > DOT_THRESHOLD
        else:
            raised = raster < DOT_THRESHOLD
        for y, x in zip(*np.nonzero(raised)):
            grid.set_dot(int(x), int(y), True)
        return grid

    @classmethod
    def from_image(cls, image: Image.Image, ditherer: BaseDitherStrategy,
                   invert: bool) -> "BrailleGrid":
        """
        Reduce an image to lightness, dither it and assemble the grid.
        The image must already be at the desired dot dimensions.
        """
        rgba = np.asarray(image.convert('RGBA'), dtype=np.uint8)
        gray = lightness_array(rgba)
        ditherer.dither(gray)
        logger.debug("dithered %dx%d raster with %s",
                     gray.shape[1], gray.shape[0], type(ditherer).__name__)
        return cls.from_raster(gray, invert)

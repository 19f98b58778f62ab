"""Tests for the Braille grid, serializer, lightness and assembly."""

import numpy as np
import pytest
from PIL import Image

from braille_lib import (
    BRAILLE_CHARS,
    BrailleGrid,
    OutOfBoundsError,
    compute_lightness,
    get_bit_mask,
    lightness_array,
)
from dithering_lib import NoDitherStrategy


class TestBitMask:
    @pytest.mark.parametrize("x, y, bit", [
        (0, 0, 0), (0, 1, 1), (0, 2, 2), (0, 3, 6),
        (1, 0, 3), (1, 1, 4), (1, 2, 5), (1, 3, 7),
    ])
    def test_layout(self, x, y, bit):
        assert get_bit_mask(x, y) == 1 << bit

    def test_next_cell_repeats_layout(self):
        assert get_bit_mask(2, 0) == 0x01
        assert get_bit_mask(3, 7) == 0x80

    def test_dot_lands_in_expected_cell(self):
        grid = BrailleGrid(4, 4)
        grid.set_dot(2, 0, True)
        assert grid.cells[0] == 0
        assert grid.cells[1] == 0x01


class TestBrailleGrid:
    @pytest.mark.parametrize("width, height", [
        (1, 1), (2, 4), (3, 5), (63, 21), (64, 64), (7, 1),
    ])
    def test_dimensions(self, width, height):
        grid = BrailleGrid(width, height)
        assert grid.char_width == -(-width // 2)
        assert grid.char_height == -(-height // 4)
        assert len(grid.cells) == grid.char_width * grid.char_height
        assert all(v == 0 for v in grid.cells)
        assert len(grid.render()) == grid.char_width * grid.char_height + grid.char_height - 1

    def test_render_length_matches_str_len(self):
        grid = BrailleGrid(63, 21)
        assert grid.char_width == 32
        assert grid.char_height == 6
        text = grid.render(no_empty_chars=True, row_separator="\n")
        assert len(text) == grid.str_len("\n") == 32 * 6 + 5

    @pytest.mark.parametrize("width, height", [(0, 1), (1, 0), (0, 0), (-2, 4)])
    def test_zero_dimensions_rejected(self, width, height):
        with pytest.raises(ValueError):
            BrailleGrid(width, height)

    def test_set_get_round_trip(self):
        grid = BrailleGrid(5, 9)
        for y in range(9):
            for x in range(5):
                assert grid.get_dot(x, y) is False
                grid.set_dot(x, y, True)
                assert grid.get_dot(x, y) is True
                grid.set_dot(x, y, False)
                assert grid.get_dot(x, y) is False

    def test_clearing_one_dot_keeps_neighbours(self):
        grid = BrailleGrid(2, 4)
        for y in range(4):
            for x in range(2):
                grid.set_dot(x, y, True)
        grid.set_dot(1, 3, False)
        assert grid.cells[0] == 0x7F
        assert grid.get_dot(0, 3) is True

    def test_bounds_check(self):
        grid = BrailleGrid(32, 32)

        grid.set_dot(0, 0, True)
        grid.set_dot(1, 1, True)
        grid.set_dot(31, 31, True)
        with pytest.raises(OutOfBoundsError):
            grid.set_dot(32, 31, True)
        with pytest.raises(OutOfBoundsError):
            grid.set_dot(31, 32, True)

        assert grid.get_dot(0, 0) is not None
        assert grid.get_dot(31, 31) is not None
        assert grid.get_dot(32, 31) is None
        assert grid.get_dot(31, 32) is None

    def test_negative_coordinates_rejected(self):
        grid = BrailleGrid(4, 4)
        with pytest.raises(OutOfBoundsError):
            grid.set_dot(-1, 0, True)
        assert grid.get_dot(0, -1) is None

    def test_out_of_bounds_error_details(self):
        grid = BrailleGrid(5, 9)
        with pytest.raises(OutOfBoundsError) as exc_info:
            grid.set_dot(5, 2, True)
        err = exc_info.value
        assert (err.x, err.y) == (5, 2)
        assert (err.width, err.height) == (3, 3)
        assert "x: 5, y: 2" in str(err)
        assert isinstance(err, IndexError)

    def test_failed_set_leaves_grid_untouched(self):
        grid = BrailleGrid(2, 4)
        with pytest.raises(OutOfBoundsError):
            grid.set_dot(2, 0, True)
        assert grid.cells == bytearray(1)


class TestRender:
    def test_blank_substitution(self):
        grid = BrailleGrid(2, 4)
        assert grid.render(no_empty_chars=True) == "⠄"
        assert grid.render(no_empty_chars=False) == "⠀"

    def test_codepoints(self):
        grid = BrailleGrid(2, 4)
        grid.set_dot(0, 0, True)
        assert grid.render() == "⠁"
        grid.set_dot(1, 3, True)
        assert grid.render() == "⢁"

    def test_full_cell(self):
        grid = BrailleGrid(2, 4)
        for y in range(4):
            for x in range(2):
                grid.set_dot(x, y, True)
        assert grid.render() == "⣿"

    def test_row_separator_between_rows_only(self):
        grid = BrailleGrid(4, 8)
        grid.set_dot(3, 7, True)
        text = grid.render(no_empty_chars=False, row_separator=" ")
        assert text == "⠀⠀ ⠀⢀"
        assert not text.endswith(" ")

    def test_multi_char_separator_length(self):
        grid = BrailleGrid(3, 9)
        text = grid.render(row_separator="\r\n")
        assert len(text) == grid.str_len("\r\n")
        assert text.count("\r\n") == 2

    def test_as_str(self):
        grid = BrailleGrid(2, 8)
        assert grid.as_str(True, True) == "⠄\n⠄"
        assert grid.as_str(False, False) == "⠀ ⠀"

    def test_table(self):
        assert len(BRAILLE_CHARS) == 256
        assert BRAILLE_CHARS[0] == "⠀"
        assert BRAILLE_CHARS[255] == "⣿"
        assert all(0x2800 <= ord(c) <= 0x28FF for c in BRAILLE_CHARS)


class TestLightness:
    def test_extremes(self):
        assert compute_lightness(255, 255, 255, 255) == 255
        assert compute_lightness(0, 0, 0, 255) == 0

    @pytest.mark.parametrize("rgb", [(255, 255, 255), (12, 200, 99), (0, 0, 0)])
    def test_transparent_is_black(self, rgb):
        assert compute_lightness(*rgb, 0) == 0

    def test_channel_weights(self):
        assert compute_lightness(255, 0, 0, 255) == 54
        assert compute_lightness(0, 255, 0, 255) == 182
        assert compute_lightness(0, 0, 255, 255) == 18

    def test_half_alpha(self):
        assert compute_lightness(255, 255, 255, 128) == 128

    def test_array_matches_scalar(self):
        rng = np.random.default_rng(3)
        rgba = rng.integers(0, 256, size=(6, 7, 4), dtype=np.uint8)
        gray = lightness_array(rgba)
        assert gray.shape == (6, 7)
        assert gray.dtype == np.uint8
        for y in range(6):
            for x in range(7):
                assert gray[y, x] == compute_lightness(*(int(c) for c in rgba[y, x]))


class TestAssembly:
    def test_threshold_value_never_raised(self):
        raster = np.array([[0, 96, 255]], dtype=np.uint8)
        normal = BrailleGrid.from_raster(raster, invert=False)
        assert [normal.get_dot(x, 0) for x in range(3)] == [True, False, False]
        inverted = BrailleGrid.from_raster(raster, invert=True)
        assert [inverted.get_dot(x, 0) for x in range(3)] == [False, False, True]

    def test_grid_matches_raster_size(self):
        grid = BrailleGrid.from_raster(np.zeros((9, 5), dtype=np.uint8), invert=False)
        assert (grid.dot_width, grid.dot_height) == (5, 9)
        assert (grid.char_width, grid.char_height) == (3, 3)

    def test_black_image(self):
        image = Image.new('RGBA', (2, 4), (0, 0, 0, 255))
        grid = BrailleGrid.from_image(image, NoDitherStrategy(), invert=False)
        assert grid.render() == "⣿"
        grid = BrailleGrid.from_image(image, NoDitherStrategy(), invert=True)
        assert grid.render(no_empty_chars=False) == "⠀"

    def test_white_image(self):
        image = Image.new('RGB', (4, 4), (255, 255, 255))
        grid = BrailleGrid.from_image(image, NoDitherStrategy(), invert=True)
        assert grid.render() == "⣿⣿"

    def test_transparent_image_counts_as_black(self):
        image = Image.new('RGBA', (2, 4), (255, 255, 255, 0))
        grid = BrailleGrid.from_image(image, NoDitherStrategy(), invert=False)
        assert grid.render() == "⣿"

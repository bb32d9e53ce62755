"""Tests for image fitting and caption placement geometry."""

import pytest

from meme_modules.layout import (
    DrawRect,
    TEXT_INSET,
    caption_placements,
    calculate_font_size,
    fit_and_center,
    fit_within_bounds,
    font_size_bounds,
    normalize_caption,
    thumbnail_dimensions,
)


class TestFitAndCenter:

    def test_wider_image_is_letterboxed(self):
        rect = fit_and_center(800, 400, 800, 600)
        assert rect == DrawRect(0.0, 100.0, 800.0, 400.0)

    def test_taller_image_is_pillarboxed(self):
        rect = fit_and_center(300, 600, 800, 600)
        assert rect == DrawRect(250.0, 0.0, 300.0, 600.0)

    def test_equal_aspect_fills_canvas(self):
        rect = fit_and_center(400, 300, 800, 600)
        assert rect == DrawRect(0.0, 0.0, 800.0, 600.0)

    @pytest.mark.parametrize("image_size", [(1, 1), (1234, 77), (77, 1234), (640, 480), (5000, 4999)])
    @pytest.mark.parametrize("canvas_size", [(800, 600), (500, 500), (300, 900)])
    def test_preserves_aspect_and_stays_inside(self, image_size, canvas_size):
        iw, ih = image_size
        cw, ch = canvas_size
        rect = fit_and_center(iw, ih, cw, ch)

        assert rect.width / rect.height == pytest.approx(iw / ih)
        assert rect.x >= 0 and rect.y >= 0
        assert rect.x + rect.width == pytest.approx(cw - rect.x)
        assert rect.y + rect.height == pytest.approx(ch - rect.y)
        # One dimension always touches the canvas edges
        assert rect.width == pytest.approx(cw) or rect.height == pytest.approx(ch)

    def test_rounded_never_collapses(self):
        rect = fit_and_center(10000, 1, 800, 600)
        x, y, width, height = rect.rounded()
        assert (width, height) == (800, 1)

    @pytest.mark.parametrize("args", [(0, 100, 800, 600), (100, 100, 0, 600), (100, -5, 800, 600)])
    def test_rejects_non_positive_dimensions(self, args):
        with pytest.raises(ValueError):
            fit_and_center(*args)


class TestFitWithinBounds:

    def test_downscales_large_image(self):
        assert fit_within_bounds(4000, 3000, 1920, 1080) == (1440, 1080)

    def test_keeps_small_image(self):
        assert fit_within_bounds(800, 600, 1920, 1080) == (800, 600)

    def test_width_bound_only(self):
        assert fit_within_bounds(3840, 1000, 1920, 1080) == (1920, 500)

    def test_result_within_bounds_and_ratio(self):
        width, height = fit_within_bounds(4000, 3000, 1920, 1080)
        assert width <= 1920 and height <= 1080
        assert width / height == pytest.approx(4 / 3, abs=0.01)


class TestThumbnailDimensions:

    def test_landscape(self):
        assert thumbnail_dimensions(400, 300, 200) == (200, 150)

    def test_portrait(self):
        assert thumbnail_dimensions(300, 400, 200) == (150, 200)

    def test_square(self):
        assert thumbnail_dimensions(500, 500, 200) == (200, 200)

    def test_small_image_is_scaled_up(self):
        assert thumbnail_dimensions(50, 25, 200) == (200, 100)

    def test_extreme_ratio_keeps_one_pixel(self):
        assert thumbnail_dimensions(1000, 3, 200) == (200, 1)


class TestCaptions:

    @pytest.mark.parametrize("raw, expected", [
        ("when you", "WHEN YOU"),
        ("  spaced    out\ttext \n", "SPACED OUT TEXT"),
        ("", ""),
        ("   ", ""),
        (None, ""),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_caption(raw) == expected

    @pytest.mark.parametrize("raw", ["when you", "  a  b  ", "ÜBER straße", "MiXeD\n\ncase"])
    def test_normalize_is_idempotent(self, raw):
        once = normalize_caption(raw)
        assert normalize_caption(once) == once

    def test_short_caption_uses_base_size(self):
        assert calculate_font_size(800, "WHEN YOU") == pytest.approx(32.0)
        assert calculate_font_size(800, "0123456789") == pytest.approx(32.0)

    def test_long_caption_shrinks(self):
        assert calculate_font_size(800, "FINISH THE PROJECT") == pytest.approx(32.0 * 0.84)

    def test_very_long_caption_is_floored(self):
        assert calculate_font_size(800, "X" * 200) == pytest.approx(16.0)

    def test_small_canvas_uses_minimum_base(self):
        assert calculate_font_size(200, "HI") == pytest.approx(16.0)

    @pytest.mark.parametrize("canvas_width", [100, 320, 800, 1280, 1600])
    def test_font_size_within_bounds_and_monotonic(self, canvas_width):
        low, high = font_size_bounds(canvas_width)
        sizes = [calculate_font_size(canvas_width, "X" * n) for n in range(0, 80)]

        assert all(low - 1e-9 <= size <= high + 1e-9 for size in sizes)
        assert all(a >= b for a, b in zip(sizes, sizes[1:]))

    def test_placements(self):
        placements = caption_placements(800, 600, "when you", "finish the project")
        top, bottom = placements

        assert top.text_type == "top"
        assert top.text == "WHEN YOU"
        assert top.x == 400
        assert top.y == TEXT_INSET
        assert top.font_size == pytest.approx(32.0)
        assert top.line_width == pytest.approx(3.2)

        assert bottom.text_type == "bottom"
        assert bottom.text == "FINISH THE PROJECT"
        assert bottom.y == pytest.approx(600 - bottom.font_size - TEXT_INSET)

    def test_empty_captions_are_skipped(self):
        assert caption_placements(800, 600, "   ", None) == []
        only_bottom = caption_placements(800, 600, "", "bottom")
        assert [p.text_type for p in only_bottom] == ["bottom"]

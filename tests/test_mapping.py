"""
Tests for letterbox layout and viewport <-> image mapping.
"""

import pytest

from teach_cam.mapping import (
    EMPTY_RECT,
    Rect,
    derive_layout,
    image_to_viewport,
    viewport_to_image,
)


class TestRect:
    def test_properties(self):
        r = Rect(10, 20, 30, 40)
        assert r.right == 40
        assert r.bottom == 60
        assert r.area == 1200
        assert not r.is_empty

    def test_non_positive_area(self):
        assert Rect(0, 0, -5, 10).area == 0
        assert Rect(0, 0, 0, 10).is_empty

    def test_from_points_any_order(self):
        assert Rect.from_points(30, 40, 10, 20) == Rect(10, 20, 20, 20)

    def test_normalized(self):
        assert Rect(30, 75, -20, -50).normalized() == Rect(10, 25, 20, 50)


class TestDeriveLayout:
    def test_wide_image_letterbox(self):
        """400x200 image in a 100x100 display fills the width with bars top and bottom."""
        layout = derive_layout(400, 200, 100, 100)
        assert layout.rendered_width == 100
        assert layout.rendered_height == 50
        assert layout.offset_x == 0
        assert layout.offset_y == 25

    def test_tall_image_pillarbox(self):
        """640x480 image in a 960x600 display fills the height with side bars."""
        layout = derive_layout(640, 480, 960, 600)
        assert layout.rendered_height == 600
        assert layout.rendered_width == pytest.approx(800)
        assert layout.offset_x == pytest.approx(80)
        assert layout.offset_y == 0

    def test_equal_aspect_fills_display(self):
        layout = derive_layout(320, 240, 640, 480)
        assert (layout.offset_x, layout.offset_y) == (0, 0)
        assert layout.scale_x == pytest.approx(2.0)

    @pytest.mark.parametrize("dims", [
        (0, 100, 100, 100),
        (100, 0, 100, 100),
        (100, 100, 0, 100),
        (100, 100, 100, -1),
    ])
    def test_degenerate_is_none(self, dims):
        assert derive_layout(*dims) is None


class TestViewportToImage:
    def test_selection_inside_rendered_area(self):
        r = viewport_to_image(Rect(180, 100, 200, 150), (640, 480), (960, 600))
        assert r == Rect(80, 80, 160, 120)

    def test_selection_over_bars_is_cut(self):
        """Parts of the selection on the letterbox bars are dropped."""
        r = viewport_to_image(Rect(10, 0, 20, 50), (400, 200), (100, 100))
        assert r == Rect(40, 0, 80, 200)

    def test_reverse_drag(self):
        """A box dragged from bottom-right to top-left maps the same."""
        r = viewport_to_image(Rect(30, 75, -20, -50), (400, 200), (100, 100))
        assert r == Rect(40, 0, 80, 200)

    def test_display_origin(self):
        """A display nested at (100, 0) shifts the selection back first."""
        r = viewport_to_image(Rect(110, 25, 20, 50), (400, 200), (100, 100), display_origin=(100, 0))
        assert r == Rect(40, 0, 80, 200)

    def test_point(self):
        assert viewport_to_image((50, 50), (400, 200), (100, 100)) == Rect(200, 100, 0, 0)

    def test_result_inside_image(self):
        """The mapped box never extends past the image."""
        r = viewport_to_image(Rect(-50, -50, 500, 500), (400, 200), (100, 100))
        assert r == Rect(0, 0, 400, 200)

    def test_unsized_display(self):
        assert viewport_to_image(Rect(0, 0, 10, 10), (400, 200), (0, 0)) == EMPTY_RECT

    def test_integer_output(self):
        r = viewport_to_image(Rect(33.3, 41.7, 12.2, 9.9), (640, 480), (960, 600))
        assert all(isinstance(v, int) for v in r.as_tuple())


class TestImageToViewport:
    def test_whole_image(self):
        r = image_to_viewport(Rect(0, 0, 400, 200), (400, 200), (100, 100))
        assert r.as_tuple() == pytest.approx((0, 25, 100, 50))

    def test_offsets_applied(self):
        r = image_to_viewport(Rect(80, 80, 160, 120), (640, 480), (960, 600))
        assert r.as_tuple() == pytest.approx((180, 100, 200, 150))

    def test_unsized_display_not_rendered(self):
        assert image_to_viewport(Rect(10, 10, 5, 5), (400, 200), (0, 0)) == EMPTY_RECT

    def test_empty_image_not_rendered(self):
        assert image_to_viewport(Rect(10, 10, 5, 5), (0, 0), (100, 100)) == EMPTY_RECT


class TestRoundTrip:
    @pytest.mark.parametrize("viewport_rect", [
        Rect(180, 100, 200, 150),
        Rect(97.4, 12.6, 333.3, 201.1),
        Rect(81, 1, 798, 598),
    ])
    def test_viewport_image_viewport(self, viewport_rect):
        """Mapping into the image and back lands within one image pixel."""
        image_size, display_size = (640, 480), (960, 600)
        image_rect = viewport_to_image(viewport_rect, image_size, display_size)
        back = image_to_viewport(image_rect, image_size, display_size)

        # One image pixel is 1.25 display pixels here
        tolerance = 1.25
        for got, expected in zip(back.as_tuple(), viewport_rect.as_tuple()):
            assert abs(got - expected) <= tolerance

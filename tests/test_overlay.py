"""
Tests for overlay descriptions and letterboxed rendering.
"""

import numpy as np
import pytest

from teach_cam import config
from teach_cam.detection import Detection
from teach_cam.mapping import Rect
from teach_cam.overlay import (
    best_confidence,
    build_overlays,
    caption,
    confidence_color,
    draw_overlays,
    render_letterboxed,
)


class TestBuildOverlays:
    def test_maps_into_viewport(self):
        detections = [Detection("cup", 0.87, Rect(80, 80, 160, 120))]
        overlays = build_overlays(detections, (640, 480), (960, 600))

        assert len(overlays) == 1
        assert overlays[0].rect.as_tuple() == pytest.approx((180, 100, 200, 150))
        assert overlays[0].text == "cup: 87%"
        assert overlays[0].label == "cup"

    def test_unsized_display_yields_nothing(self):
        detections = [Detection("cup", 0.87, Rect(80, 80, 160, 120))]
        assert build_overlays(detections, (640, 480), (0, 0)) == []

    def test_empty_box_skipped(self):
        detections = [Detection("cup", 0.9, Rect(10, 10, 0, 5))]
        assert build_overlays(detections, (640, 480), (960, 600)) == []


class TestConfidence:
    def test_best_confidence(self):
        detections = [Detection("a", 0.61, Rect(0, 0, 1, 1)), Detection("b", 0.93, Rect(0, 0, 1, 1))]
        assert best_confidence(detections) == 0.93

    def test_best_confidence_empty(self):
        assert best_confidence([]) == 0.0

    def test_caption_rounds(self):
        assert caption(Detection("mug", 1.0000001, Rect(0, 0, 1, 1))) == "mug: 100%"

    def test_colors(self):
        assert confidence_color(0.9) == config.CONFIDENCE_HIGH_COLOR
        assert confidence_color(0.7) == config.CONFIDENCE_MEDIUM_COLOR
        assert confidence_color(0.1) == config.CONFIDENCE_LOW_COLOR


class TestRenderLetterboxed:
    def test_canvas_size_and_bars(self):
        frame = np.full((200, 400, 3), 255, dtype=np.uint8)
        canvas = render_letterboxed(frame, (100, 100))

        assert canvas.shape == (100, 100, 3)
        # Bars above and below, image in the middle band
        assert canvas[10, 50].tolist() == list(config.LETTERBOX_COLOR)
        assert canvas[90, 50].tolist() == list(config.LETTERBOX_COLOR)
        assert canvas[50, 50].tolist() == [255, 255, 255]

    def test_grayscale_frame(self):
        frame = np.full((100, 100), 128, dtype=np.uint8)
        assert render_letterboxed(frame, (60, 40)).shape == (40, 60, 3)

    def test_empty_frame_gives_blank_canvas(self):
        canvas = render_letterboxed(np.zeros((0, 0, 3), dtype=np.uint8), (30, 20))
        assert canvas.shape == (20, 30, 3)
        assert not canvas.any()

    def test_draw_overlays_marks_canvas(self):
        canvas = np.zeros((100, 100, 3), dtype=np.uint8)
        overlays = build_overlays([Detection("cup", 0.9, Rect(40, 40, 20, 20))], (100, 100), (100, 100))
        draw_overlays(canvas, overlays)
        assert canvas.any()

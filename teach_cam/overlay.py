"""
Overlay descriptions and letterboxed rendering for Teach Cam.
"""

from dataclasses import dataclass

import cv2
import numpy as np

from . import config
from .detection import Detection
from .mapping import Rect, derive_layout, image_to_viewport


@dataclass(frozen=True)
class Overlay:
    """A box and caption to draw, in viewport coordinates."""
    rect: Rect
    text: str
    label: str
    confidence: float


def caption(detection: Detection) -> str:
    """Caption text shown above a detection box, e.g. 'cup: 87%'."""
    return f"{detection.label}: {detection.confidence:.0%}"


def build_overlays(
    detections: list[Detection],
    image_size: tuple[int, int],
    display_size: tuple[int, int],
) -> list[Overlay]:
    """
    Describe how to draw detections over the displayed frame.

    Args:
        detections: Image-space detections for the frame
        image_size: (width, height) of the frame the detections came from
        display_size: (width, height) of the area the frame is fitted into

    Returns:
        One Overlay per detection that maps to a visible, non-empty box
    """
    overlays = []
    for det in detections:
        rect = image_to_viewport(det.box, image_size, display_size)
        if rect.width <= 0 or rect.height <= 0:
            continue
        overlays.append(Overlay(
            rect=rect,
            text=caption(det),
            label=det.label,
            confidence=det.confidence,
        ))
    return overlays


def best_confidence(detections: list[Detection]) -> float:
    """Highest confidence among detections, 0.0 if there are none."""
    return max((d.confidence for d in detections), default=0.0)


def confidence_color(confidence: float) -> tuple[int, int, int]:
    """BGR color for the confidence read-out."""
    if confidence >= config.CONFIDENCE_HIGH:
        return config.CONFIDENCE_HIGH_COLOR
    if confidence >= config.CONFIDENCE_MEDIUM:
        return config.CONFIDENCE_MEDIUM_COLOR
    return config.CONFIDENCE_LOW_COLOR


def render_letterboxed(frame: np.ndarray, display_size: tuple[int, int]) -> np.ndarray:
    """
    Fit a frame into a display canvas, preserving aspect ratio.

    Uses the same layout as the coordinate mapper, so overlays built with
    build_overlays() line up with the rendered image.
    """
    display_width, display_height = display_size
    canvas = np.zeros((display_height, display_width, 3), dtype=np.uint8)
    canvas[:] = config.LETTERBOX_COLOR

    height, width = frame.shape[:2]
    layout = derive_layout(width, height, display_width, display_height)
    if layout is None:
        return canvas

    rendered_w = max(1, int(round(layout.rendered_width)))
    rendered_h = max(1, int(round(layout.rendered_height)))
    left = int(round(layout.offset_x))
    top = int(round(layout.offset_y))

    if frame.ndim == 2:
        frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
    scaled = cv2.resize(frame, (rendered_w, rendered_h), interpolation=cv2.INTER_AREA)

    # Rounding can push the scaled image one pixel past the canvas
    scaled = scaled[:display_height - top, :display_width - left]
    canvas[top:top + scaled.shape[0], left:left + scaled.shape[1]] = scaled
    return canvas


def draw_box(
    canvas: np.ndarray,
    rect: Rect,
    color: tuple[int, int, int],
    thickness: int = config.BOX_THICKNESS,
) -> np.ndarray:
    """Draw a rectangle outline given in viewport coordinates."""
    top_left = (int(round(rect.x)), int(round(rect.y)))
    bottom_right = (int(round(rect.right)), int(round(rect.bottom)))
    cv2.rectangle(canvas, top_left, bottom_right, color, thickness)
    return canvas


def draw_overlays(canvas: np.ndarray, overlays: list[Overlay]) -> np.ndarray:
    """
    Draw overlay boxes and captions onto the display canvas.

    Args:
        canvas: Letterboxed display image
        overlays: Overlays from build_overlays()

    Returns:
        Canvas with overlays drawn
    """
    color = config.DETECTION_BOX_COLOR

    for ov in overlays:
        draw_box(canvas, ov.rect, color)

        x = int(round(ov.rect.x))
        y = max(0, int(round(ov.rect.y)) - config.CAPTION_OFFSET)
        text_size = cv2.getTextSize(ov.text, config.CAPTION_FONT, config.CAPTION_FONT_SCALE, 1)[0]

        # Draw background for text
        cv2.rectangle(
            canvas,
            (x, y),
            (x + text_size[0] + 10, y + text_size[1] + 10),
            (0, 0, 0),
            -1,
        )

        cv2.putText(
            canvas,
            ov.text,
            (x + 5, y + text_size[1] + 5),
            config.CAPTION_FONT,
            config.CAPTION_FONT_SCALE,
            color,
            1,
            cv2.LINE_AA,
        )

    return canvas

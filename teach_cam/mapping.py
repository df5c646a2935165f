"""
Coordinate mapping between image pixels and a letterboxed display.

An image shown with aspect-ratio-preserving "uniform fit" inside a display
area of any size is scaled to touch two opposite edges and centered along
the other axis. The same layout is used in both directions:

- viewport -> image, to record a box the operator dragged over a preview
- image -> viewport, to overlay a detection box on the displayed frame

The layout is recomputed on every call because the display can be resized
between frames.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle given by its top-left corner and size."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self):
        return self.x + self.width

    @property
    def bottom(self):
        return self.y + self.height

    @property
    def area(self):
        if self.width <= 0 or self.height <= 0:
            return 0
        return self.width * self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def as_tuple(self) -> tuple:
        return (self.x, self.y, self.width, self.height)

    def normalized(self) -> "Rect":
        """Return the same rectangle with non-negative width and height."""
        x, width = (self.x + self.width, -self.width) if self.width < 0 else (self.x, self.width)
        y, height = (self.y + self.height, -self.height) if self.height < 0 else (self.y, self.height)
        return Rect(x, y, width, height)

    @classmethod
    def from_points(cls, x1, y1, x2, y2) -> "Rect":
        """Build a rectangle from two opposite corners in any order."""
        return cls(min(x1, x2), min(y1, y2), abs(x2 - x1), abs(y2 - y1))

    def __str__(self) -> str:
        return f"[{self.x}, {self.y}, {self.width}, {self.height}]"


EMPTY_RECT = Rect(0, 0, 0, 0)

Point = tuple[float, float]
Size = tuple[int, int]


@dataclass(frozen=True)
class Layout:
    """Where an image lands when uniformly fitted into a display area."""

    image_width: float
    image_height: float
    display_width: float
    display_height: float
    rendered_width: float
    rendered_height: float
    offset_x: float
    offset_y: float

    @property
    def scale_x(self) -> float:
        """Display pixels per image pixel, horizontally."""
        return self.rendered_width / self.image_width

    @property
    def scale_y(self) -> float:
        """Display pixels per image pixel, vertically."""
        return self.rendered_height / self.image_height

    @property
    def rendered_rect(self) -> Rect:
        return Rect(self.offset_x, self.offset_y, self.rendered_width, self.rendered_height)


def derive_layout(
    image_width: float,
    image_height: float,
    display_width: float,
    display_height: float,
) -> Optional[Layout]:
    """
    Compute the uniform-fit letterbox layout.

    Returns:
        The layout, or None if any dimension is not positive (no mapping available)
    """
    if image_width <= 0 or image_height <= 0 or display_width <= 0 or display_height <= 0:
        return None

    image_aspect = image_width / image_height
    display_aspect = display_width / display_height

    if image_aspect > display_aspect:
        # Image is wider than the display: fill the width, bars top and bottom
        rendered_width = float(display_width)
        rendered_height = display_width / image_aspect
        offset_x = 0.0
        offset_y = (display_height - rendered_height) / 2.0
    else:
        # Fill the height, bars left and right
        rendered_height = float(display_height)
        rendered_width = display_height * image_aspect
        offset_x = (display_width - rendered_width) / 2.0
        offset_y = 0.0

    return Layout(
        image_width=image_width,
        image_height=image_height,
        display_width=display_width,
        display_height=display_height,
        rendered_width=rendered_width,
        rendered_height=rendered_height,
        offset_x=offset_x,
        offset_y=offset_y,
    )


def viewport_to_image(
    selection: Union[Rect, Point],
    image_size: Size,
    display_size: Size,
    display_origin: Point = (0.0, 0.0),
) -> Rect:
    """
    Map a box (or point) drawn over the displayed image to image pixels.

    Args:
        selection: Rect or (x, y) point in viewport coordinates
        image_size: (width, height) of the source image in pixels
        display_size: (width, height) of the area the image is fitted into
        display_origin: Top-left of that area in the same coordinate space as
            selection, for displays nested inside a larger surface

    Returns:
        Integer pixel Rect inside the image. Parts of the selection falling on
        the letterbox bars are cut off. EMPTY_RECT if no layout is available.
    """
    image_width, image_height = image_size
    layout = derive_layout(image_width, image_height, *display_size)
    if layout is None:
        return EMPTY_RECT

    if isinstance(selection, Rect):
        selection = selection.normalized()
    else:
        selection = Rect(selection[0], selection[1], 0, 0)

    image_left = display_origin[0] + layout.offset_x
    image_top = display_origin[1] + layout.offset_y

    rel_x = min(max(selection.x - image_left, 0.0), layout.rendered_width)
    rel_y = min(max(selection.y - image_top, 0.0), layout.rendered_height)
    rel_right = min(layout.rendered_width, rel_x + selection.width)
    rel_bottom = min(layout.rendered_height, rel_y + selection.height)
    rel_width = max(0.0, rel_right - rel_x)
    rel_height = max(0.0, rel_bottom - rel_y)

    scale_x = image_width / layout.rendered_width
    scale_y = image_height / layout.rendered_height

    x = int(round(rel_x * scale_x))
    y = int(round(rel_y * scale_y))
    width = int(round(rel_width * scale_x))
    height = int(round(rel_height * scale_y))

    x = max(0, min(x, int(image_width)))
    y = max(0, min(y, int(image_height)))
    width = max(0, min(width, int(image_width) - x))
    height = max(0, min(height, int(image_height) - y))

    return Rect(x, y, width, height)


def image_to_viewport(rect: Rect, image_size: Size, display_size: Size) -> Rect:
    """
    Map an image-space box onto the letterboxed display.

    Returns:
        Float Rect in viewport coordinates, or EMPTY_RECT when the display has
        not been sized yet and nothing should be rendered
    """
    layout = derive_layout(*image_size, *display_size)
    if layout is None or layout.rendered_width <= 0 or layout.rendered_height <= 0:
        return EMPTY_RECT

    return Rect(
        rect.x * layout.scale_x + layout.offset_x,
        rect.y * layout.scale_y + layout.offset_y,
        rect.width * layout.scale_x,
        rect.height * layout.scale_y,
    )

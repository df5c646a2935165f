"""
Pixel buffer primitives for Teach Cam.
Thin wrappers around OpenCV for decoding, grayscale conversion, cropping and resizing.
"""

import logging

import cv2
import numpy as np

from .mapping import Rect

logger = logging.getLogger(__name__)


class DecodeError(ValueError):
    """Raised when image bytes cannot be decoded or an image cannot be encoded."""
    pass


def is_empty_image(image: np.ndarray | None) -> bool:
    """Return True for None or a zero-size array."""
    return image is None or image.size == 0


def decode_image(data: bytes) -> np.ndarray:
    """
    Decode encoded image bytes (PNG, JPEG, ...) into a pixel array.

    Args:
        data: Encoded image bytes

    Returns:
        Grayscale (H, W) or BGR (H, W, 3) uint8 array. An alpha channel is
        dropped and 16-bit images are reduced to 8 bits, matching camera frames.

    Raises:
        DecodeError: If data is empty or OpenCV cannot decode it
    """
    if not data:
        raise DecodeError("No image data")

    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_ANYCOLOR)
    if is_empty_image(image):
        raise DecodeError(f"Could not decode {len(data)} bytes of image data")
    return image


def encode_image(image: np.ndarray, ext: str = ".png") -> bytes:
    """
    Encode a pixel array into image bytes.

    Raises:
        DecodeError: If the image is empty or OpenCV refuses to encode it
    """
    if is_empty_image(image):
        raise DecodeError("Cannot encode an empty image")

    ok, buffer = cv2.imencode(ext, image)
    if not ok:
        raise DecodeError(f"Failed to encode image as {ext}")
    return buffer.tobytes()


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert an image to a single channel.

    Single-channel input is returned as-is, without re-conversion.
    """
    if image.ndim == 2:
        return image

    channels = image.shape[2]
    if channels == 1:
        return image[:, :, 0]
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def clamp_box(box: Rect, image_width: int, image_height: int) -> Rect:
    """
    Clamp a pixel box to the image bounds.

    The origin is pulled to be non-negative and the size is cut to the
    remaining extent of the image. A box already inside the image is
    returned unchanged. The result may have non-positive width or height
    if the box lies entirely outside the image.
    """
    x = max(0, int(box.x))
    y = max(0, int(box.y))
    width = min(int(box.width), image_width - x)
    height = min(int(box.height), image_height - y)
    return Rect(x, y, width, height)


def crop(image: np.ndarray, box: Rect) -> np.ndarray | None:
    """
    Crop an image to a box (clamped to the image first).

    Returns:
        A view into the image, or None if nothing of the box lies inside it
    """
    if is_empty_image(image):
        return None

    height, width = image.shape[:2]
    clamped = clamp_box(box, width, height)
    if clamped.width <= 0 or clamped.height <= 0:
        return None

    return image[clamped.y:clamped.bottom, clamped.x:clamped.right]


def resize(image: np.ndarray, size: tuple[int, int]) -> np.ndarray:
    """Resize to (width, height) using area interpolation."""
    return cv2.resize(image, size, interpolation=cv2.INTER_AREA)

"""
Teach Cam - teach a live camera feed to recognize objects by example.

Crop and label example regions from camera frames, then locate matching
objects in new frames by normalized template matching.
"""

__version__ = "0.1.0"
__author__ = "Teach Cam Team"

from .detection import Detection, TemplateDetector
from .mapping import Rect, image_to_viewport, viewport_to_image
from .templates import LabeledSample

__all__ = [
    "Detection",
    "LabeledSample",
    "Rect",
    "TemplateDetector",
    "image_to_viewport",
    "viewport_to_image",
]

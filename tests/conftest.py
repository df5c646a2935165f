"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import cv2
import numpy as np
import pytest

# Make the package importable without installing it
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from teach_cam.imaging import encode_image
from teach_cam.mapping import Rect
from teach_cam.templates import LabeledSample


def noise(shape, seed):
    """Deterministic random uint8 texture."""
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=shape, dtype=np.uint8)


@pytest.fixture
def make_noise():
    """Factory for seeded noise images."""
    return noise


@pytest.fixture
def cup_pattern():
    return noise((50, 50, 3), seed=1)


@pytest.fixture
def mug_pattern():
    return noise((40, 40, 3), seed=2)


@pytest.fixture
def scene(cup_pattern, mug_pattern):
    """200x200 BGR frame with the cup at (10,10) and the mug at (100,100)."""
    frame = noise((200, 200, 3), seed=99)
    frame[10:60, 10:60] = cup_pattern
    frame[100:140, 100:140] = mug_pattern
    return frame


@pytest.fixture
def scene_png(scene):
    return encode_image(scene)


@pytest.fixture
def scene_samples(scene_png):
    """Cup and mug samples labeled on the scene frame."""
    return [
        LabeledSample(label_name="cup", image_data=scene_png, bounding_box=Rect(10, 10, 50, 50)),
        LabeledSample(label_name="mug", image_data=scene_png, bounding_box=Rect(100, 100, 40, 40)),
    ]


@pytest.fixture
def write_image(tmp_path):
    """Write an image to a PNG file under tmp_path and return its path."""
    def _write(name, image):
        path = tmp_path / name
        assert cv2.imwrite(str(path), image)
        return path
    return _write

"""
Template store for Teach Cam.
Turns labeled training samples into grayscale reference patches, grouped by label.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

import numpy as np

from . import config
from .imaging import DecodeError, clamp_box, decode_image, to_grayscale
from .mapping import Rect

logger = logging.getLogger(__name__)


class TrainingError(Exception):
    """Base class for whole-batch training failures."""
    pass


class EmptyInputError(TrainingError):
    """Raised when no sample has both a label and image data."""
    pass


class NoValidTemplatesError(TrainingError):
    """Raised when every sample was rejected during training."""
    pass


@dataclass(frozen=True)
class LabeledSample:
    """
    One operator-labeled example: a full frame plus the box around the object.

    bounding_box is in pixel coordinates of the decoded image_data.
    """
    label_name: str
    image_data: bytes
    bounding_box: Rect
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"{self.label_name} - {self.bounding_box}"


@dataclass(frozen=True, eq=False)
class Template:
    """A single-channel reference patch for one label."""
    label: str
    pixels: np.ndarray

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]


class TemplateStore:
    """
    Read-only mapping of label -> ordered templates.

    A store is never edited after construction. Retraining builds a new
    store and the owner swaps its reference.
    """

    def __init__(self, templates: Mapping[str, Iterable[Template]] | None = None):
        built = {}
        for label, items in (templates or {}).items():
            items = tuple(items)
            if label and items:
                built[label] = items
        self._templates = MappingProxyType(built)

    def is_trained(self) -> bool:
        """True if at least one label has at least one template."""
        return len(self._templates) > 0

    def labels(self) -> list[str]:
        return list(self._templates)

    def templates(self, label: str) -> tuple[Template, ...]:
        return self._templates.get(label, ())

    def items(self) -> Iterator[tuple[str, tuple[Template, ...]]]:
        return iter(self._templates.items())

    def template_count(self) -> int:
        return sum(len(items) for items in self._templates.values())

    def __len__(self) -> int:
        return len(self._templates)

    def __repr__(self) -> str:
        counts = {label: len(items) for label, items in self._templates.items()}
        return f"TemplateStore({counts})"


def _extract_template(sample: LabeledSample, min_size: int) -> Template | None:
    """Decode, clamp, crop and grayscale one sample. None means skip it."""
    label = (sample.label_name or "").strip()
    if not label:
        logger.warning(f"Skipping sample {sample.id}: empty label")
        return None

    try:
        image = decode_image(sample.image_data)
    except DecodeError as e:
        logger.warning(f"Skipping sample {sample.id} ({label}): {e}")
        return None

    height, width = image.shape[:2]
    box = clamp_box(sample.bounding_box, width, height)
    if box.width < min_size or box.height < min_size:
        logger.warning(
            f"Skipping sample {sample.id} ({label}): box {box} is smaller than "
            f"{min_size}x{min_size} after clamping to {width}x{height}"
        )
        return None

    patch = to_grayscale(image[box.y:box.bottom, box.x:box.right])
    return Template(label=label, pixels=np.ascontiguousarray(patch))


def build_store(
    samples: list[LabeledSample],
    min_size: int = config.MIN_TEMPLATE_SIZE,
) -> TemplateStore:
    """
    Build a fresh template store from labeled samples.

    Bad samples (undecodable image, blank label, box too small after
    clamping) are logged and skipped; they never fail the batch.

    Args:
        samples: Training samples, in the order templates should be kept
        min_size: Minimum clamped box width and height in pixels

    Returns:
        A new TemplateStore holding only templates from these samples

    Raises:
        EmptyInputError: If no sample has a non-empty label and image data
        NoValidTemplatesError: If every sample was rejected
    """
    usable = [s for s in samples or [] if s.image_data and (s.label_name or "").strip()]
    if not usable:
        raise EmptyInputError("No samples with both a label and image data")

    grouped: dict[str, list[Template]] = {}
    for sample in samples:
        template = _extract_template(sample, min_size)
        if template is not None:
            grouped.setdefault(template.label, []).append(template)

    store = TemplateStore(grouped)
    if not store.is_trained():
        raise NoValidTemplatesError(f"All {len(samples)} samples were rejected")

    skipped = len(samples) - store.template_count()
    logger.info(
        f"Built {store.template_count()} templates for {len(store)} labels "
        f"({skipped} samples skipped)"
    )
    for label, items in store.items():
        logger.info(f"  Label '{label}': {len(items)} templates")

    return store

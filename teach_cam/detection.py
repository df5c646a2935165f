"""
Template detector for Teach Cam.
Runs every stored template against a frame, keeps hits above the confidence
threshold and removes same-label duplicates with non-maximum suppression.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Protocol

import cv2
import numpy as np

from . import config
from .imaging import DecodeError, decode_image, is_empty_image, to_grayscale
from .mapping import Rect
from .matching import match_template
from .templates import LabeledSample, TemplateStore, TrainingError, build_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Detection:
    """
    A single template hit.

    box is an integer pixel rectangle in the original frame. confidence is the
    correlation score and can exceed 1.0 by a rounding error.
    """
    label: str
    confidence: float
    box: Rect

    def __str__(self) -> str:
        return f"{self.label} {self.confidence:.2f} {self.box}"


class Detector(Protocol):
    """Protocol/interface for detectors driven by the pipeline."""

    def detect(self, frame: np.ndarray) -> list[Detection]:
        """Detect objects in the given frame."""
        ...

    def is_trained(self) -> bool:
        """Whether detect() can return anything at all."""
        ...


def iou(a: Rect, b: Rect) -> float:
    """
    Intersection over union of two pixel rectangles.

    Rectangles that only share an edge or a corner have zero intersection,
    so their IoU is 0. A rectangle with non-positive area also gives 0.
    """
    if a.width <= 0 or a.height <= 0 or b.width <= 0 or b.height <= 0:
        return 0.0

    inter_w = min(a.right, b.right) - max(a.x, b.x)
    inter_h = min(a.bottom, b.bottom) - max(a.y, b.y)
    if inter_w <= 0 or inter_h <= 0:
        return 0.0

    intersection = inter_w * inter_h
    union = a.area + b.area - intersection
    if union <= 0:
        return 0.0
    return intersection / union


def _suppress(detections: list[Detection], overlap_threshold: float) -> list[Detection]:
    """Greedy NMS over detections that all share one label."""
    remaining = sorted(detections, key=lambda d: d.confidence, reverse=True)
    kept = []
    while remaining:
        best = remaining.pop(0)
        kept.append(best)
        remaining = [d for d in remaining if iou(best.box, d.box) < overlap_threshold]
    return kept


def non_max_suppression(
    detections: list[Detection],
    overlap_threshold: float = config.NMS_OVERLAP_THRESHOLD,
) -> list[Detection]:
    """
    Drop lower-confidence duplicates, independently within each label.

    A detection is dropped when a higher-confidence detection of the same
    label overlaps it with IoU >= overlap_threshold. Detections with different
    labels never suppress each other.

    Returns:
        Kept detections grouped by label (in first-seen label order), each
        group sorted by descending confidence
    """
    by_label: dict[str, list[Detection]] = {}
    for det in detections:
        by_label.setdefault(det.label, []).append(det)

    kept = []
    for group in by_label.values():
        kept.extend(_suppress(group, overlap_threshold))
    return kept


def detect_in_frame(
    frame,
    store: TemplateStore,
    threshold: float = config.MATCH_THRESHOLD,
    overlap_threshold: float = config.NMS_OVERLAP_THRESHOLD,
) -> list[Detection]:
    """
    Match every template in the store against one frame.

    Args:
        frame: BGR or grayscale image array, or encoded image bytes
        store: Templates to look for
        threshold: Minimum correlation score to keep a hit
        overlap_threshold: Same-label IoU at or above which hits are merged

    Returns:
        Detections after per-label NMS. Empty if the store is untrained or
        the frame is empty or cannot be decoded.
    """
    if store is None or not store.is_trained():
        return []

    if isinstance(frame, (bytes, bytearray, memoryview)):
        try:
            frame = decode_image(bytes(frame))
        except DecodeError as e:
            logger.warning(f"Skipping detection: {e}")
            return []

    if is_empty_image(frame):
        return []

    gray = to_grayscale(frame)

    raw = []
    for label, templates in store.items():
        for index, template in enumerate(templates):
            try:
                result = match_template(gray, template.pixels)
            except (cv2.error, ValueError) as e:
                logger.warning(f"Template {label}#{index} failed to match: {e}")
                continue

            if result is None:
                continue

            if result.score >= threshold:
                x, y = result.location
                raw.append(Detection(
                    label=label,
                    confidence=result.score,
                    box=Rect(x, y, template.width, template.height),
                ))

    return non_max_suppression(raw, overlap_threshold)


class TemplateDetector:
    """
    Detector backed by a swappable template store.

    train() builds a complete new store before replacing the reference, and
    detect() reads the reference once per pass, so a pass sees either the old
    store or the new one in full.
    """

    def __init__(
        self,
        threshold: float = config.MATCH_THRESHOLD,
        overlap_threshold: float = config.NMS_OVERLAP_THRESHOLD,
        min_template_size: int = config.MIN_TEMPLATE_SIZE,
    ):
        """
        Initialize an untrained detector.

        Args:
            threshold: Minimum correlation score for a detection
            overlap_threshold: IoU threshold for same-label suppression
            min_template_size: Minimum sample box width/height in pixels
        """
        self.threshold = threshold
        self.overlap_threshold = overlap_threshold
        self.min_template_size = min_template_size
        self._store = TemplateStore()
        self._train_lock = threading.Lock()
        logger.info(
            f"TemplateDetector initialized (threshold={threshold}, "
            f"overlap_threshold={overlap_threshold})"
        )

    @property
    def store(self) -> TemplateStore:
        return self._store

    def train(self, samples: list[LabeledSample]) -> int:
        """
        Replace all templates with ones built from samples.

        Returns:
            Number of templates in the new store

        Raises:
            EmptyInputError, NoValidTemplatesError: The detector is left untrained
        """
        with self._train_lock:
            try:
                store = build_store(samples, min_size=self.min_template_size)
            except TrainingError:
                self._store = TemplateStore()
                raise
            self._store = store
        return store.template_count()

    def clear(self) -> None:
        """Forget all templates."""
        with self._train_lock:
            self._store = TemplateStore()

    def is_trained(self) -> bool:
        return self._store.is_trained()

    def detect(self, frame) -> list[Detection]:
        """Detect trained objects in a frame (array or encoded bytes)."""
        store = self._store
        start = time.perf_counter()
        detections = detect_in_frame(frame, store, self.threshold, self.overlap_threshold)
        logger.debug(
            f"Matched {store.template_count()} templates in "
            f"{(time.perf_counter() - start) * 1000.0:.1f} ms, {len(detections)} detections"
        )
        return detections

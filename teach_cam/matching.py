"""
Template matcher for Teach Cam.
Slides a grayscale template over a grayscale source and scores every offset
with the normalized correlation coefficient.
"""

from typing import NamedTuple, Optional

import cv2
import numpy as np


class MatchResult(NamedTuple):
    """Best-scoring template position in the source."""
    score: float
    location: tuple[int, int]  # (x, y) of the template's top-left corner


# Variance below this counts as a flat patch
FLAT_VARIANCE = 1e-6


def window_variance(source: np.ndarray, width: int, height: int) -> np.ndarray:
    """Pixel variance of every width x height window, laid out like the score surface."""
    sums, sq_sums = cv2.integral2(source, sdepth=cv2.CV_64F, sqdepth=cv2.CV_64F)
    count = float(width * height)

    def window_total(table):
        return table[height:, width:] - table[:-height, width:] - table[height:, :-width] + table[:-height, :-width]

    mean = window_total(sums) / count
    return window_total(sq_sums) / count - mean * mean


def score_surface(source: np.ndarray, template: np.ndarray) -> np.ndarray:
    """
    Normalized correlation coefficient at every integer offset.

    The result has shape (H - h + 1, W - w + 1). Both patches have their
    mean subtracted before correlating, so a uniform brightness or contrast
    change does not affect the score; a perfect match scores 1.0. Offsets
    where either window is flat have no defined score and are reported as 0.
    """
    template_h, template_w = template.shape[:2]
    out_shape = (source.shape[0] - template_h + 1, source.shape[1] - template_w + 1)

    # OpenCV scores a constant template as a perfect match everywhere
    if float(np.var(template, dtype=np.float64)) < FLAT_VARIANCE:
        return np.zeros(out_shape, dtype=np.float32)

    scores = cv2.matchTemplate(source, template, cv2.TM_CCOEFF_NORMED)
    scores = np.nan_to_num(scores, nan=0.0, posinf=0.0, neginf=0.0)
    scores[window_variance(source, template_w, template_h) < FLAT_VARIANCE] = 0.0
    return scores


def match_template(source: np.ndarray, template: np.ndarray) -> Optional[MatchResult]:
    """
    Find the best position of template inside source.

    Args:
        source: Single-channel image to search
        template: Single-channel patch to look for

    Returns:
        The highest score and its offset, or None if the template is empty or
        does not fit inside the source. Ties go to the first offset in
        row-major order (lowest y, then lowest x).
    """
    if source is None or template is None or source.size == 0 or template.size == 0:
        return None

    source_h, source_w = source.shape[:2]
    template_h, template_w = template.shape[:2]
    if template_w > source_w or template_h > source_h:
        return None

    scores = score_surface(source, template)

    # argmax returns the first maximum in row-major order
    flat_index = int(np.argmax(scores))
    y, x = divmod(flat_index, scores.shape[1])

    return MatchResult(score=float(scores[y, x]), location=(x, y))

"""
Sharpness Scorer
================

Gradient-based focus heuristic for live frames.

The score approximates how much fine detail the frame carries:

    luma   = 0.299 R + 0.587 G + 0.114 B
    sum    = Σ |luma(x, y) - luma(x+1, y)| + |luma(x, y) - luma(x, y+1)|
    score  = floor(sum / (scan_w * scan_h) * 10)

Only the central region is analysed (20% margins on every side), which
skips vignetting and peripheral noise and bounds cost. The sum runs over
every pixel that has both a right and a lower neighbour inside the region.

This is a cheap heuristic, not a calibrated optical metric. The score
depends on the analysis resolution, so the capture threshold is only
meaningful for the resolution it was tuned against.
"""

import logging
import math
from typing import Tuple

import numpy as np


logger = logging.getLogger(__name__)


LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)


def analysis_size(width: int, height: int, analysis_width: int = 320) -> Tuple[int, int]:
    """
    Proportional analysis resolution for a source frame.

    Args:
        width: Source frame width
        height: Source frame height
        analysis_width: Target analysis width

    Returns:
        (analysis_width, proportional height), both at least 1
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid frame size: {width}x{height}")
    return analysis_width, max(1, int(height / width * analysis_width))


def compute_sharpness(pixels: np.ndarray, margin: float = 0.2) -> int:
    """
    Score the focus of a frame.

    Args:
        pixels: (H, W, C) array with C >= 3 in RGB(A) order, or an
            (H, W) luma array, sampled at the analysis resolution
        margin: Fraction skipped on each edge before scoring

    Returns:
        Non-negative integer score. 0 on any failure.
    """
    try:
        height, width = pixels.shape[:2]
        start_x = int(math.floor(width * margin))
        start_y = int(math.floor(height * margin))
        scan_w = int(math.floor(width * (1.0 - 2.0 * margin)))
        scan_h = int(math.floor(height * (1.0 - 2.0 * margin)))

        if scan_w < 2 or scan_h < 2:
            return 0

        region = pixels[start_y:start_y + scan_h, start_x:start_x + scan_w]
        if region.ndim == 2:
            luma = region.astype(np.float64)
        else:
            luma = region[..., :3].astype(np.float64) @ LUMA_WEIGHTS

        inner = luma[:-1, :-1]
        total = (
            np.abs(inner - luma[:-1, 1:]).sum()
            + np.abs(inner - luma[1:, :-1]).sum()
        )

        score = math.floor(float(total) / (scan_w * scan_h) * 10)
        return max(0, int(score))

    except Exception as e:
        logger.error(f"Sharpness calculation failed: {e}")
        return 0

"""
Perception Module
=================

Focus analysis for the live capture feed.

Components:
    - compute_sharpness: Gradient-based focus score of an analysis frame
    - AutofocusController: Sustained-blur detector that re-triggers autofocus
"""

from infinity_ocr.perception.sharpness import analysis_size, compute_sharpness
from infinity_ocr.perception.autofocus import (
    AutofocusController,
    AutofocusPhase,
    refocus,
)

__all__ = [
    "analysis_size",
    "compute_sharpness",
    "AutofocusController",
    "AutofocusPhase",
    "refocus",
]

"""
Infinity OCR
============

Continuous OCR scanner for live video.

The scanner samples a camera feed, scores every frame for sharpness,
keeps the sharpest frames, and sends them in batches to Gemini for text
extraction, merging each result into a running log.

Components:
    - stream: Frames, retention buffer, video source, image codec
    - perception: Sharpness scoring and autofocus recovery
    - ocr: Remote extraction client and response parsing
    - pipeline: Capture loop, batch dispatcher, log store, scan session

Example:
    from infinity_ocr.config import settings
    from infinity_ocr.pipeline import ScanSession

    # The HTTP service is started via main.py
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]

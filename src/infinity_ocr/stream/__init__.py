"""
Stream Module
=============

Frame acquisition, encoding and retention components.

This module provides the ingestion layer for Infinity OCR:
    - Frame: Immutable captured frame (encoded JPEG + sharpness)
    - RetentionBuffer: Best-of-N cache ordered by sharpness
    - VideoSource / OpenCVVideoSource: Capture device abstraction
    - Image codec: Resize and JPEG encoding of captures

Example:
    from infinity_ocr.stream import Frame, RetentionBuffer

    buffer = RetentionBuffer(maxsize=5)
    buffer.try_insert(Frame(image_b64=payload, sharpness=42))
"""

from infinity_ocr.stream.frame import Frame
from infinity_ocr.stream.buffer import RetentionBuffer
from infinity_ocr.stream.image_codec import ImageEncodeError, encode_jpeg_b64
from infinity_ocr.stream.video_source import DeviceError, OpenCVVideoSource, VideoSource


__all__ = [
    "Frame",
    "RetentionBuffer",
    "ImageEncodeError",
    "encode_jpeg_b64",
    "DeviceError",
    "OpenCVVideoSource",
    "VideoSource",
]

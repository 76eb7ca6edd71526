"""
Image Codec
===========

Dedicated module for resizing and JPEG encoding of captured frames.

Design Rules:
    - This is the ONLY place in the codebase that encodes or decodes images
    - Captures are bounded to a maximum dimension before encoding
    - Fails fast with ImageEncodeError on invalid input
"""

import base64
import binascii
import logging
from typing import Tuple

import cv2
import numpy as np


logger = logging.getLogger(__name__)


JPEG_MIME_TYPE = "image/jpeg"


class ImageEncodeError(Exception):
    """Raised when image encoding or decoding fails."""
    pass


def bounded_size(width: int, height: int, max_dimension: int) -> Tuple[int, int]:
    """
    Scale (width, height) so the longest side is at most max_dimension.

    Sizes already within the bound are returned unchanged.
    """
    longest = max(width, height)
    if longest <= max_dimension:
        return width, height
    scale = max_dimension / longest
    return max(1, int(round(width * scale))), max(1, int(round(height * scale)))


def resize_bounded(bgr: np.ndarray, max_dimension: int = 1024) -> np.ndarray:
    """
    Downscale an image so neither side exceeds max_dimension.

    Args:
        bgr: Image as np.ndarray (H, W, 3)
        max_dimension: Longest allowed side in pixels

    Returns:
        The resized image, or the input itself when no resize is needed
    """
    height, width = bgr.shape[:2]
    new_width, new_height = bounded_size(width, height, max_dimension)
    if (new_width, new_height) == (width, height):
        return bgr
    return cv2.resize(bgr, (new_width, new_height), interpolation=cv2.INTER_AREA)


def encode_jpeg_b64(
    bgr: np.ndarray,
    max_dimension: int = 1024,
    quality: int = 80,
) -> str:
    """
    Resize and encode a BGR frame as base64 JPEG.

    Args:
        bgr: Full resolution BGR image (H, W, 3), dtype=uint8
        max_dimension: Longest side after resize
        quality: JPEG quality (1-100)

    Returns:
        Base64-encoded JPEG string

    Raises:
        ImageEncodeError: If the image is invalid or encoding fails
    """
    if bgr is None or bgr.ndim != 3 or bgr.shape[2] != 3:
        shape = None if bgr is None else bgr.shape
        raise ImageEncodeError(f"Invalid image shape for encoding: {shape}")

    if bgr.dtype != np.uint8:
        raise ImageEncodeError(f"Invalid dtype for encoding: {bgr.dtype}")

    resized = resize_bounded(bgr, max_dimension)

    ok, buf = cv2.imencode(".jpg", resized, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not ok:
        raise ImageEncodeError("cv2.imencode failed to produce JPEG data")

    return base64.b64encode(buf.tobytes()).decode("ascii")


def decode_jpeg_bytes(image_b64: str) -> bytes:
    """
    Decode a base64 payload to raw JPEG bytes.

    Raises:
        ImageEncodeError: If the payload is not valid base64
    """
    try:
        return base64.b64decode(image_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageEncodeError(f"Base64 decode failed: {e}")


def decode_jpeg_bgr(image_b64: str) -> np.ndarray:
    """
    Decode a base64 JPEG payload to a BGR numpy array.

    Raises:
        ImageEncodeError: If decoding fails or image is invalid
    """
    nparr = np.frombuffer(decode_jpeg_bytes(image_b64), np.uint8)
    bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)

    if bgr is None:
        raise ImageEncodeError("Failed to decode image: cv2.imdecode returned None")

    return bgr

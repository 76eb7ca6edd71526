"""
OCR Module
==========

Remote multimodal text extraction.

Components:
    - OCRClient: One extraction call plus response parsing
    - parse_ocr_response: JSON-or-raw response parser
    - GeminiTransport: google-genai backed remote call
    - OCRError and subclasses: failure taxonomy
"""

from infinity_ocr.ocr.client import (
    EmptyBatchError,
    EmptyResponseError,
    MissingCredentialError,
    OCRClient,
    OCRError,
    RemoteCallError,
    parse_ocr_response,
)
from infinity_ocr.ocr.transport import (
    GeminiTransport,
    OCRImage,
    OCRRequest,
    RemoteOCRTransport,
)

__all__ = [
    "OCRClient",
    "OCRError",
    "MissingCredentialError",
    "RemoteCallError",
    "EmptyResponseError",
    "EmptyBatchError",
    "parse_ocr_response",
    "GeminiTransport",
    "OCRImage",
    "OCRRequest",
    "RemoteOCRTransport",
]

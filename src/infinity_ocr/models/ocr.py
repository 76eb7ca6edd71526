"""
OCR Result Model
================

Parsed response of one multimodal extraction call.
"""

from typing import Any

from pydantic import BaseModel, Field


class OCRResult(BaseModel):
    """
    Outcome of a successful OCR call.

    Attributes:
        raw_text: Verbatim response text
        merged_text: Best extracted string for display
        structured: Decoded JSON value, or {"raw_output": raw_text}
    """

    raw_text: str = Field(..., description="Verbatim remote response")
    merged_text: str = Field(..., description="Best extracted text")
    structured: Any = Field(default=None, description="Decoded payload")

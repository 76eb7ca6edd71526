"""
Remote OCR Transport
====================

Request/response contract of the remote multimodal extraction call,
and its Gemini implementation.

Request:
    model, system_instruction, images [(mime_type, bytes)], prompt,
    temperature
Response:
    text (possibly empty)

Transport errors propagate unchanged; the OCR client decides how they
are classified.
"""

import logging
from dataclasses import dataclass, field
from typing import Protocol, Tuple

from google import genai
from google.genai import types


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OCRImage:
    """One inline image of a request."""

    mime_type: str
    data: bytes

    def __repr__(self) -> str:
        return f"OCRImage(mime_type={self.mime_type}, bytes={len(self.data)})"


@dataclass(frozen=True, slots=True)
class OCRRequest:
    """
    One multimodal extraction request.

    Attributes:
        model: Model identifier
        system_instruction: System prompt
        images: Ordered inline images
        prompt: Trailing user instruction sent after the images
        temperature: Sampling temperature
        api_key: Credential (excluded from repr)
    """

    model: str
    system_instruction: str
    images: Tuple[OCRImage, ...]
    prompt: str
    temperature: float
    api_key: str = field(repr=False)


class RemoteOCRTransport(Protocol):
    """
    Protocol for remote extraction backends.

    Implementations perform exactly one call and return the response
    text. They must not retry.
    """

    async def generate(self, request: OCRRequest) -> str:
        """Perform the call and return the response text."""
        ...


class GeminiTransport:
    """
    RemoteOCRTransport backed by the google-genai SDK.

    No response schema is set, so free-form (non-JSON) system prompts
    stay valid.
    """

    def __init__(self) -> None:
        self._call_count: int = 0

    @property
    def call_count(self) -> int:
        return self._call_count

    async def generate(self, request: OCRRequest) -> str:
        client = genai.Client(api_key=request.api_key)

        parts = [
            types.Part.from_bytes(data=image.data, mime_type=image.mime_type)
            for image in request.images
        ]
        parts.append(types.Part.from_text(text=request.prompt))

        self._call_count += 1
        logger.debug(
            f"Gemini request: model={request.model}, images={len(request.images)}"
        )

        response = await client.aio.models.generate_content(
            model=request.model,
            contents=types.Content(role="user", parts=parts),
            config=types.GenerateContentConfig(
                system_instruction=request.system_instruction,
                temperature=request.temperature,
            ),
        )
        return response.text or ""

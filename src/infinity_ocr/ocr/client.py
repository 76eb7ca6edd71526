"""
OCR Client
==========

Wraps one remote multimodal extraction call and parses its response.

Failure modes (all subclasses of OCRError):
    - MissingCredentialError: empty API key, raised before any network call
    - RemoteCallError: the transport raised; carries the service message
    - EmptyResponseError: the service answered with no text
    - EmptyBatchError: no image of the batch could be decoded

Response parsing never fails. The text is stripped of Markdown code
fences and decoded as JSON:
    - dict with a non-empty "full_text"  -> merged text is that field
    - any other JSON value               -> merged text is pretty JSON
    - not JSON                           -> merged text is the raw text,
                                            structured is {"raw_output": raw}

Bare NaN / Infinity / -Infinity are not JSON and take the raw path.
"""

import json
import logging
import re
from typing import Any, Sequence

from infinity_ocr.models.ocr import OCRResult
from infinity_ocr.ocr.transport import OCRImage, OCRRequest, RemoteOCRTransport
from infinity_ocr.stream.image_codec import JPEG_MIME_TYPE, ImageEncodeError, decode_jpeg_bytes


logger = logging.getLogger(__name__)


TRAILING_INSTRUCTION = "Process these images according to the system instructions."
OCR_TEMPERATURE = 0.1
CANONICAL_TEXT_FIELD = "full_text"

_CODE_FENCE = re.compile(r"```json|```")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


class OCRError(Exception):
    """Base class for OCR call failures."""
    pass


class MissingCredentialError(OCRError):
    """Raised when no API key is configured."""
    pass


class RemoteCallError(OCRError):
    """Raised when the remote service call fails."""
    pass


class EmptyResponseError(OCRError):
    """Raised when the remote service returns no text."""
    pass


class EmptyBatchError(OCRError):
    """Raised when none of the batch images can be decoded."""
    pass


def _to_display_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, ensure_ascii=False)


def parse_ocr_response(raw_text: str) -> OCRResult:
    """
    Parse a raw model response into an OCRResult.

    Args:
        raw_text: Verbatim response text

    Returns:
        OCRResult; never raises
    """
    cleaned = _CODE_FENCE.sub("", raw_text).strip()

    try:
        decoded = json.loads(cleaned, parse_constant=_reject_constant)
    except ValueError:
        # Free-form prompts ("Text Only", Markdown) land here
        return OCRResult(
            raw_text=raw_text,
            merged_text=raw_text,
            structured={"raw_output": raw_text},
        )

    if isinstance(decoded, dict) and decoded.get(CANONICAL_TEXT_FIELD):
        merged = _to_display_text(decoded[CANONICAL_TEXT_FIELD])
    else:
        merged = _to_display_text(decoded)

    return OCRResult(raw_text=raw_text, merged_text=merged, structured=decoded)


class OCRClient:
    """
    Multimodal text extraction client.

    Attributes:
        transport: Remote call backend
        temperature: Sampling temperature (low for factual extraction)

    Example:
        client = OCRClient(GeminiTransport())
        result = await client.extract(images, "gemini-2.5-flash", prompt, api_key)
        print(result.merged_text)
    """

    def __init__(
        self,
        transport: RemoteOCRTransport,
        temperature: float = OCR_TEMPERATURE,
    ) -> None:
        self.transport = transport
        self.temperature = temperature

        self._call_count: int = 0
        self._error_count: int = 0

    def _build_images(self, images_b64: Sequence[str]) -> tuple:
        images = []
        for index, image_b64 in enumerate(images_b64):
            try:
                images.append(OCRImage(JPEG_MIME_TYPE, decode_jpeg_bytes(image_b64)))
            except ImageEncodeError as e:
                logger.warning(f"Skipping undecodable image {index}: {e}")
        return tuple(images)

    async def extract(
        self,
        images_b64: Sequence[str],
        model: str,
        system_instruction: str,
        api_key: str,
    ) -> OCRResult:
        """
        Run one extraction over an ordered batch of images.

        Args:
            images_b64: Base64 JPEG payloads, sharpest first
            model: Model identifier
            system_instruction: System prompt
            api_key: Credential

        Returns:
            Parsed OCRResult

        Raises:
            MissingCredentialError: If api_key is empty
            EmptyBatchError: If no image could be decoded
            RemoteCallError: If the remote call fails
            EmptyResponseError: If the response has no text
        """
        if not api_key:
            raise MissingCredentialError("API Key is missing")

        images = self._build_images(images_b64)
        if not images:
            self._error_count += 1
            raise EmptyBatchError(f"None of the {len(images_b64)} batch images could be decoded")

        request = OCRRequest(
            model=model,
            system_instruction=system_instruction,
            images=images,
            prompt=TRAILING_INSTRUCTION,
            temperature=self.temperature,
            api_key=api_key,
        )

        self._call_count += 1
        try:
            text = await self.transport.generate(request)
        except Exception as e:
            self._error_count += 1
            logger.error(f"OCR call failed (model={model}): {e}")
            raise RemoteCallError(str(e) or "Failed to process images with Gemini") from e

        if not text:
            self._error_count += 1
            raise EmptyResponseError("Empty response from Gemini")

        result = parse_ocr_response(text)
        logger.debug(f"OCR call succeeded: {len(request.images)} images, {len(text)} chars")
        return result

    @property
    def call_count(self) -> int:
        """Total remote calls attempted."""
        return self._call_count

    @property
    def error_count(self) -> int:
        """Total failed calls."""
        return self._error_count

    def get_metrics(self) -> dict:
        """Get client metrics for observability."""
        return {
            "call_count": self._call_count,
            "error_count": self._error_count,
            "temperature": self.temperature,
        }

"""
Session Control Schema
======================

Body of POST /session/start.

Every field is optional; omitted fields keep the session's current
value. A prompt may be given verbatim or by preset label, not both.

Input Contract:
    {
        "model": "gemini-2.5-flash",
        "preset": "Text Only (Single Line)",
        "max_frames": 3,
        "capture_interval_ms": 300
    }

Bounds are enforced by ScannerConfig, so an override can never produce
a configuration the YAML/env layer would have rejected.
"""

from typing import Optional

from pydantic import BaseModel, Field

from infinity_ocr.config import ScannerConfig
from infinity_ocr.presets import find_preset


class SessionStartRequest(BaseModel):
    """
    Per-run scanner overrides.

    Attributes:
        model: Gemini model identifier
        system_prompt: Verbatim system instruction
        preset: Label of a built-in prompt preset
        max_frames: Frames per batch
        capture_interval_ms: Minimum spacing between captures
        sharpness_threshold: Minimum score for capture
    """

    model: Optional[str] = Field(default=None, min_length=1)
    system_prompt: Optional[str] = Field(default=None, min_length=1)
    preset: Optional[str] = Field(default=None, description="Prompt preset label")
    max_frames: Optional[int] = None
    capture_interval_ms: Optional[int] = None
    sharpness_threshold: Optional[float] = None

    def has_overrides(self) -> bool:
        return bool(self.model_dump(exclude_none=True))

    def apply(self, base: ScannerConfig) -> ScannerConfig:
        """
        Merge the overrides into base.

        Raises:
            ValueError: On an unknown preset, a preset combined with a
                system prompt, or a value outside ScannerConfig bounds
                (pydantic.ValidationError is a ValueError)
        """
        updates = self.model_dump(exclude_none=True, exclude={"preset"})

        if self.preset is not None:
            if "system_prompt" in updates:
                raise ValueError("Give either preset or system_prompt, not both")
            preset = find_preset(self.preset)
            if preset is None:
                raise ValueError(f"Unknown prompt preset: {self.preset}")
            updates["system_prompt"] = preset.value

        return ScannerConfig.model_validate({**base.model_dump(), **updates})

"""
Scanner Presets
===============

Built-in model choices, system prompts, and scanner defaults.

The default sharpness threshold is calibrated against the default
analysis width (320 px). Change both together or not at all.
"""

from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True, slots=True)
class ModelOption:
    """Selectable Gemini model."""

    value: str
    label: str


@dataclass(frozen=True, slots=True)
class PromptPreset:
    """Named system prompt."""

    label: str
    value: str


DEFAULT_MODEL = "gemini-2.5-flash"

AVAILABLE_MODELS: List[ModelOption] = [
    ModelOption("gemini-2.5-flash", "Gemini 2.5 Flash (Fast & Cheap)"),
    ModelOption("gemini-2.5-flash-lite-latest", "Gemini 2.5 Flash Lite"),
    ModelOption("gemini-2.0-flash-exp", "Gemini 2.0 Flash Exp"),
    ModelOption("gemini-1.5-pro", "Gemini 1.5 Pro (Better Reasoning)"),
]

DEFAULT_SYSTEM_PROMPT = (
    "You are a high-precision OCR engine.\n"
    "1. Analyze the provided images.\n"
    "2. Extract ALL visible text strictly as it appears.\n"
    "3. Return the result in valid JSON format with a 'full_text' field "
    "containing the merged text.\n"
    "4. If a part is illegible, mark it as [UNCLEAR]."
)

PROMPT_PRESETS: List[PromptPreset] = [
    PromptPreset("Standard OCR (JSON)", DEFAULT_SYSTEM_PROMPT),
    PromptPreset(
        "Text Only (Single Line)",
        "Extract the single most prominent line of text visible. "
        "Return ONLY the raw plain text string. Do not use Markdown or JSON.",
    ),
    PromptPreset(
        "Code / ID Only (< 10 chars)",
        "Extract only the main visible code, ID number, or price. "
        "Max 10 characters. Return ONLY the raw string. No markdown.",
    ),
    PromptPreset(
        "Markdown Format",
        "Extract all text and preserve layout using Markdown headers, "
        "lists, and tables. Return raw Markdown.",
    ),
]

DEFAULT_MAX_FRAMES = 5
DEFAULT_CAPTURE_INTERVAL_MS = 500
DEFAULT_SHARPNESS_THRESHOLD = 20
DEFAULT_ANALYSIS_WIDTH = 320


def find_preset(label: str) -> Optional[PromptPreset]:
    """Prompt preset by its label, or None."""
    for preset in PROMPT_PRESETS:
        if preset.label == label:
            return preset
    return None

"""
Data Models
===========

Pydantic models for Infinity OCR.

Models:
    Control:
        - SessionStartRequest: Per-run scanner overrides
    Log:
        - LogStatus: PENDING, SUCCESS, ERROR
        - LogEntry: One dispatched batch and its outcome
    OCR:
        - OCRResult: Parsed extraction response
    Telemetry:
        - SessionState: IDLE, ACTIVE, STOPPED, ERROR
        - Telemetry: Live pipeline snapshot
"""

from infinity_ocr.models.control import SessionStartRequest
from infinity_ocr.models.log import LogEntry, LogStatus
from infinity_ocr.models.ocr import OCRResult
from infinity_ocr.models.telemetry import SessionState, Telemetry

__all__ = [
    # Control
    "SessionStartRequest",
    # Log
    "LogEntry",
    "LogStatus",
    # OCR
    "OCRResult",
    # Telemetry
    "SessionState",
    "Telemetry",
]

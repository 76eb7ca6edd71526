"""
Telemetry Models
================

Live, read-only projection of the scan pipeline.
"""

from enum import Enum

from pydantic import BaseModel, Field


class SessionState(str, Enum):
    """
    Lifecycle of a scan session.

    Attributes:
        IDLE: Never started
        ACTIVE: Capturing; the device is held
        STOPPED: Capture paused, device released, log retained
        ERROR: Device could not be acquired
    """

    IDLE = "IDLE"
    ACTIVE = "ACTIVE"
    STOPPED = "STOPPED"
    ERROR = "ERROR"


class Telemetry(BaseModel):
    """Snapshot of live pipeline state."""

    session_state: SessionState = Field(default=SessionState.IDLE)
    current_sharpness: int = Field(default=0, ge=0)
    buffer_fill: int = Field(default=0, ge=0)
    max_frames: int = Field(..., ge=1)
    dispatch_in_flight: bool = Field(default=False)
    frames_scored: int = Field(default=0, ge=0)
    frames_captured: int = Field(default=0, ge=0)
    batches_dispatched: int = Field(default=0, ge=0)
    refocus_attempts: int = Field(default=0, ge=0)

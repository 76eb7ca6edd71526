"""
Frame Data Model
=================

Retained frame representation for the capture pipeline.

A Frame is produced by the capture loop after a frame passes the
capture gate, and lives in the RetentionBuffer until its batch is
dispatched.

Design Rules:
    - Immutable once created
    - Carries the already-encoded JPEG (base64), never raw pixels
    - Sharpness is the score of the analysis proxy, not the full frame
"""

import time
import uuid
from dataclasses import dataclass, field


def new_frame_id() -> str:
    """Short random identifier for a captured frame."""
    return uuid.uuid4().hex[:9]


@dataclass(frozen=True, slots=True)
class Frame:
    """
    Captured, scored and encoded frame.

    Attributes:
        image_b64: Base64-encoded JPEG payload
        sharpness: Focus score of the frame (non-negative)
        timestamp: UNIX timestamp of capture
        frame_id: Random identifier
    """

    image_b64: str
    sharpness: int
    timestamp: float = field(default_factory=time.time)
    frame_id: str = field(default_factory=new_frame_id)

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.sharpness < 0:
            raise ValueError("sharpness must be non-negative")

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the full image."""
        return (
            f"Frame(frame_id={self.frame_id}, "
            f"sharpness={self.sharpness}, "
            f"timestamp={self.timestamp:.3f})"
        )

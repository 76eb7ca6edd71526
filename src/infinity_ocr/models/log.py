"""
Scan Log Models
===============

Record of batch outcomes.

A LogEntry is created PENDING when a batch is dispatched and settles
exactly once, in place, to SUCCESS or ERROR. Entries are never deleted.

Output Contract:
    {
        "id": "f3a9c2d1b7e04c55",
        "timestamp": 1770500938.284,
        "thumbnail": "<base64 JPEG>",
        "status": "success",
        "text": "INVOICE #4471 ...",
        "structured": {"full_text": "INVOICE #4471 ..."}
    }
"""

import time
import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


PENDING_TEXT = "Analyzing frames..."


class LogStatus(str, Enum):
    """
    Settlement status of a batch.

    Attributes:
        PENDING: OCR call in flight
        SUCCESS: Text extracted
        ERROR: Batch failed; text holds the failure message
    """

    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class LogEntry(BaseModel):
    """
    One dispatched batch and its outcome.

    Attributes:
        id: Unique entry identifier
        timestamp: UNIX time the batch was dispatched
        thumbnail: Base64 JPEG of the sharpest frame in the batch
        status: PENDING, SUCCESS or ERROR
        text: Placeholder, extracted text, or error message
        structured: Decoded response payload (SUCCESS only)
        frame_count: Number of frames sent
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:16])
    timestamp: float = Field(default_factory=time.time)
    thumbnail: str = Field(default="", description="Base64 JPEG thumbnail")
    status: LogStatus = Field(default=LogStatus.PENDING)
    text: str = Field(default=PENDING_TEXT)
    structured: Optional[Any] = Field(
        default=None,
        description="Best-effort decoded response payload",
    )
    frame_count: int = Field(default=0, ge=0)

    @property
    def is_settled(self) -> bool:
        return self.status != LogStatus.PENDING

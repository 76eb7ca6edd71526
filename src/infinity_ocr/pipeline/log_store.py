"""
Log Store
=========

Append-only, most-recent-first record of batch outcomes.

Entries are added PENDING by the dispatcher and settled once, in place.
Nothing is ever removed for the life of the session.
"""

import logging
from typing import Dict, List, Optional

from infinity_ocr.models.log import LogEntry, LogStatus
from infinity_ocr.models.ocr import OCRResult


logger = logging.getLogger(__name__)


class LogStore:
    """
    Ordered store of LogEntry records.

    Example:
        store = LogStore()
        entry = store.add(LogEntry(thumbnail=frame.image_b64))
        store.resolve_success(entry.id, result)
    """

    def __init__(self) -> None:
        self._entries: List[LogEntry] = []
        self._by_id: Dict[str, LogEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, entry: LogEntry) -> LogEntry:
        """Prepend a new entry."""
        if entry.id in self._by_id:
            raise ValueError(f"Duplicate log entry id: {entry.id}")
        self._entries.insert(0, entry)
        self._by_id[entry.id] = entry
        return entry

    def get(self, entry_id: str) -> Optional[LogEntry]:
        entry = self._by_id.get(entry_id)
        return entry.model_copy(deep=True) if entry is not None else None

    def _pending(self, entry_id: str) -> LogEntry:
        entry = self._by_id.get(entry_id)
        if entry is None:
            raise KeyError(entry_id)
        if entry.is_settled:
            raise ValueError(f"Log entry {entry_id} already settled as {entry.status.value}")
        return entry

    def resolve_success(self, entry_id: str, result: OCRResult) -> LogEntry:
        """Settle a pending entry with extracted text."""
        entry = self._pending(entry_id)
        entry.status = LogStatus.SUCCESS
        entry.text = result.merged_text
        entry.structured = result.structured
        return entry

    def resolve_error(self, entry_id: str, message: str) -> LogEntry:
        """Settle a pending entry with a failure message."""
        entry = self._pending(entry_id)
        entry.status = LogStatus.ERROR
        entry.text = message
        return entry

    def entries(self) -> List[LogEntry]:
        """Copies of all entries, most recent first."""
        return [entry.model_copy(deep=True) for entry in self._entries]

    def counts(self) -> dict:
        """Number of entries per status."""
        counts = {status.value: 0 for status in LogStatus}
        for entry in self._entries:
            counts[entry.status.value] += 1
        return counts

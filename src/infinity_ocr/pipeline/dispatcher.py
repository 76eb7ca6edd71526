"""
Batch Dispatcher
================

State machine that sends a full retention buffer to the OCR client.

States:
    IDLE     buffer accumulating, nothing in flight
    SENDING  exactly one OCR call in flight

Transitions:
    IDLE -> SENDING   buffer size == max_frames
                      (pending LogEntry created, OCR call scheduled)
    SENDING -> IDLE   OCR call settles, success or error
                      (LogEntry settled, buffer cleared, capture clock reset)

The SENDING state is the only concurrency guard: at most one batch is ever
in transit, and captures stay gated by the full buffer until it clears.
Failed batches are terminal; nothing is retried.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, List, Optional

from infinity_ocr.config import ScannerConfig
from infinity_ocr.models.log import LogEntry
from infinity_ocr.ocr.client import OCRClient, OCRError
from infinity_ocr.pipeline.log_store import LogStore
from infinity_ocr.stream.buffer import RetentionBuffer
from infinity_ocr.stream.frame import Frame


logger = logging.getLogger(__name__)


class DispatchState(str, Enum):
    """Dispatcher state."""

    IDLE = "IDLE"
    SENDING = "SENDING"


class BatchDispatcher:
    """
    Sends batches and folds their results into the log.

    Attributes:
        buffer: Retention buffer to drain
        ocr_client: Extraction client
        log_store: Destination for batch outcomes
        config: Scanner configuration (model, prompt, credential)
        on_settled: Called with the settlement time after every batch
    """

    def __init__(
        self,
        buffer: RetentionBuffer,
        ocr_client: OCRClient,
        log_store: LogStore,
        config: ScannerConfig,
        on_settled: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.buffer = buffer
        self.ocr_client = ocr_client
        self.log_store = log_store
        self.config = config
        self.on_settled = on_settled

        self._state = DispatchState.IDLE
        self._task: Optional[asyncio.Task] = None
        self._dispatched: int = 0
        self._settled: int = 0
        self._failed: int = 0

        logger.info(
            f"BatchDispatcher initialized: model={config.model}, "
            f"batch_size={config.max_frames}"
        )

    @property
    def state(self) -> DispatchState:
        return self._state

    @property
    def in_flight(self) -> bool:
        """Whether a batch is currently being sent."""
        return self._state == DispatchState.SENDING

    @property
    def dispatched_count(self) -> int:
        return self._dispatched

    @property
    def settled_count(self) -> int:
        return self._settled

    @property
    def failed_count(self) -> int:
        return self._failed

    def should_dispatch(self) -> bool:
        return (
            self._state == DispatchState.IDLE
            and self.buffer.size >= self.config.max_frames
        )

    def maybe_dispatch(self, now: Optional[float] = None) -> Optional[LogEntry]:
        """
        Start a batch if the buffer is full and nothing is in flight.

        Must be called from a running event loop.

        Returns:
            The pending LogEntry of the new batch, or None.
        """
        if not self.should_dispatch():
            return None

        if now is None:
            now = time.time()

        frames = self.buffer.frames
        entry = self.log_store.add(
            LogEntry(
                timestamp=now,
                thumbnail=frames[0].image_b64,
                frame_count=len(frames),
            )
        )

        self._state = DispatchState.SENDING
        self._dispatched += 1
        self._task = asyncio.create_task(
            self._send(entry, frames, self.buffer, self.config),
            name=f"ocr_batch_{self._dispatched}",
        )

        logger.info(
            f"Dispatching batch #{self._dispatched}: {len(frames)} frames, "
            f"sharpness={[f.sharpness for f in frames]}"
        )
        return entry

    async def _send(
        self,
        entry: LogEntry,
        frames: List[Frame],
        buffer: RetentionBuffer,
        config: ScannerConfig,
    ) -> None:
        """Run the OCR call and settle the batch against its dispatch-time buffer and config."""
        try:
            # A missing key is recorded on the entry like any other OCR failure
            result = await self.ocr_client.extract(
                [frame.image_b64 for frame in frames],
                model=config.model,
                system_instruction=config.system_prompt,
                api_key=config.api_key,
            )
        except Exception as e:
            if not isinstance(e, OCRError):
                logger.exception(f"Unexpected error in batch {entry.id}")
            self._failed += 1
            self.log_store.resolve_error(entry.id, f"Error: {str(e) or 'Unknown error'}")
            logger.error(f"Batch {entry.id} failed: {e}")
        else:
            self.log_store.resolve_success(entry.id, result)
            logger.info(f"Batch {entry.id} succeeded: {len(result.merged_text)} chars")
        finally:
            buffer.clear()
            self._settled += 1
            self._state = DispatchState.IDLE
            self._task = None
            if self.on_settled is not None:
                self.on_settled(time.time())

    async def wait_idle(self) -> None:
        """Wait for the in-flight batch, if any, to settle."""
        task = self._task
        if task is not None:
            await task

    def get_metrics(self) -> dict:
        """Get dispatcher metrics for observability."""
        return {
            "state": self._state.value,
            "dispatched": self._dispatched,
            "settled": self._settled,
            "failed": self._failed,
        }

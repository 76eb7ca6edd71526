"""
Scan Session
============

Pipeline controller owning one scanning run.

The session wires the components together and owns every piece of
mutable run state:

    VideoSource -> CaptureLoop -> RetentionBuffer -> BatchDispatcher
                       |                                   |
               AutofocusController                 OCRClient -> LogStore

Lifecycle:
    IDLE --start()--> ACTIVE --stop()--> STOPPED --start()--> ACTIVE
    start() failing to acquire the device -> ERROR

Stopping releases the device at once. A batch already in flight is
not cancelled; it still settles its log entry.
"""

import asyncio
import logging
from typing import List, Optional, Set

from infinity_ocr.config import AnalysisConfig, AutofocusConfig, EncodingConfig, ScannerConfig
from infinity_ocr.models.log import LogEntry
from infinity_ocr.models.telemetry import SessionState, Telemetry
from infinity_ocr.ocr.client import MissingCredentialError, OCRClient
from infinity_ocr.ocr.transport import RemoteOCRTransport
from infinity_ocr.perception.autofocus import AutofocusController, refocus
from infinity_ocr.pipeline.capture_loop import CaptureLoop
from infinity_ocr.pipeline.dispatcher import BatchDispatcher
from infinity_ocr.pipeline.log_store import LogStore
from infinity_ocr.stream.buffer import RetentionBuffer
from infinity_ocr.stream.video_source import DeviceError, VideoSource


logger = logging.getLogger(__name__)


class ScanSession:
    """
    Owns the capture pipeline and its state for one scanning run.

    Attributes:
        config: Scanner configuration, frozen for the session
        source: Singly-owned video source
        buffer: Retention buffer
        log_store: Batch outcome log
        autofocus: Autofocus controller
        dispatcher: Batch dispatcher
        capture_loop: Per-tick driver
    """

    def __init__(
        self,
        config: ScannerConfig,
        source: VideoSource,
        transport: RemoteOCRTransport,
        analysis: Optional[AnalysisConfig] = None,
        encoding: Optional[EncodingConfig] = None,
        autofocus: Optional[AutofocusConfig] = None,
        tick_interval_sec: float = 1.0 / 30.0,
    ) -> None:
        self.config = config
        self.source = source
        self.autofocus_config = autofocus or AutofocusConfig()

        self.buffer = RetentionBuffer(maxsize=config.max_frames)
        self.log_store = LogStore()
        self.ocr_client = OCRClient(transport)

        self.autofocus = AutofocusController(
            threshold=config.sharpness_threshold,
            blur_window_sec=self.autofocus_config.blur_window_sec,
            cooldown_sec=self.autofocus_config.cooldown_sec,
            on_refocus=self._schedule_refocus,
        )
        self.dispatcher = BatchDispatcher(
            buffer=self.buffer,
            ocr_client=self.ocr_client,
            log_store=self.log_store,
            config=config,
            on_settled=self._on_batch_settled,
        )
        self.capture_loop = CaptureLoop(
            source=source,
            buffer=self.buffer,
            autofocus=self.autofocus,
            config=config,
            analysis=analysis,
            encoding=encoding,
            dispatcher=self.dispatcher,
            tick_interval_sec=tick_interval_sec,
        )

        self._state = SessionState.IDLE
        self._loop_task: Optional[asyncio.Task] = None
        self._refocus_tasks: Set[asyncio.Task] = set()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state == SessionState.ACTIVE

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """
        Acquire the video source and start the capture loop.

        Raises:
            MissingCredentialError: If no API key is configured
            DeviceError: If the video source cannot be acquired
        """
        if self._state == SessionState.ACTIVE:
            return

        if not self.config.api_key:
            raise MissingCredentialError("API Key is missing")

        try:
            await asyncio.to_thread(self.source.acquire)
        except DeviceError as e:
            self._state = SessionState.ERROR
            logger.error(f"Camera error: {e}")
            raise

        self.autofocus.low_sharpness_start = None
        self._state = SessionState.ACTIVE
        self._loop_task = asyncio.create_task(self.capture_loop.run(), name="capture_loop")
        logger.info("Scan session started")

    async def stop(self) -> None:
        """Stop capturing and release the device; in-flight batches keep running."""
        if self._state != SessionState.ACTIVE:
            return

        self.capture_loop.stop()
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        await asyncio.to_thread(self.source.release)

        # Stale frames must not leak into the next run
        self.buffer.clear()
        self.capture_loop.reset_telemetry()
        self._state = SessionState.STOPPED
        logger.info("Scan session stopped")

    def reconfigure(self, config: ScannerConfig) -> None:
        """
        Apply a new scanner configuration before the next start().

        The log and any in-flight batch are kept.

        Raises:
            RuntimeError: If the session is ACTIVE
        """
        if self._state == SessionState.ACTIVE:
            raise RuntimeError("Cannot reconfigure an active scan session")

        self.config = config
        self.buffer = RetentionBuffer(maxsize=config.max_frames)
        self.autofocus.threshold = config.sharpness_threshold
        self.dispatcher.buffer = self.buffer
        self.dispatcher.config = config
        self.capture_loop.buffer = self.buffer
        self.capture_loop.config = config
        logger.info(
            f"Scan session reconfigured: model={config.model}, "
            f"max_frames={config.max_frames}, interval={config.capture_interval_ms}ms"
        )

    async def shutdown(self) -> None:
        """Stop, then wait for the in-flight batch and refocus commands."""
        await self.stop()
        await self.dispatcher.wait_idle()
        if self._refocus_tasks:
            await asyncio.gather(*self._refocus_tasks, return_exceptions=True)

    # -------------------------------------------------------------------------
    # Callbacks
    # -------------------------------------------------------------------------

    def _schedule_refocus(self) -> None:
        task = asyncio.create_task(
            refocus(self.source, self.autofocus_config.restore_delay_sec),
            name="refocus",
        )
        self._refocus_tasks.add(task)
        task.add_done_callback(self._refocus_tasks.discard)

    def _on_batch_settled(self, now: float) -> None:
        self.capture_loop.mark_captured(now)

    # -------------------------------------------------------------------------
    # Projections
    # -------------------------------------------------------------------------

    def telemetry(self) -> Telemetry:
        """Live pipeline snapshot."""
        return Telemetry(
            session_state=self._state,
            current_sharpness=self.capture_loop.current_sharpness,
            buffer_fill=self.buffer.size,
            max_frames=self.config.max_frames,
            dispatch_in_flight=self.dispatcher.in_flight,
            frames_scored=self.capture_loop.frames_scored,
            frames_captured=self.capture_loop.frames_captured,
            batches_dispatched=self.dispatcher.dispatched_count,
            refocus_attempts=self.autofocus.refocus_count,
        )

    def logs(self) -> List[LogEntry]:
        """Batch log, most recent first."""
        return self.log_store.entries()

    def get_log(self, entry_id: str) -> Optional[LogEntry]:
        return self.log_store.get(entry_id)

"""
Capture Loop
============

Per-tick driver of the scanning pipeline.

Each tick:
    1. Skip if the video source has no frame yet
    2. Sample the frame at the analysis resolution and score it
    3. Publish the score and feed the autofocus controller
    4. Capture gate: score > threshold AND interval elapsed AND buffer
       not full -> grab, resize, JPEG-encode, insert into the buffer
    5. Let the dispatcher start a batch if the buffer is full

A tick does bounded synchronous work and never awaits, so the OCR call
in flight never stalls scoring or telemetry.
"""

import asyncio
import logging
import time
from typing import Optional

from infinity_ocr.config import AnalysisConfig, EncodingConfig, ScannerConfig
from infinity_ocr.perception.autofocus import AutofocusController
from infinity_ocr.perception.sharpness import analysis_size, compute_sharpness
from infinity_ocr.pipeline.dispatcher import BatchDispatcher
from infinity_ocr.stream.buffer import RetentionBuffer
from infinity_ocr.stream.frame import Frame
from infinity_ocr.stream.image_codec import ImageEncodeError, encode_jpeg_b64
from infinity_ocr.stream.video_source import DeviceError, VideoSource


logger = logging.getLogger(__name__)


class CaptureLoop:
    """
    Samples, scores and gates frames from a video source.

    Attributes:
        source: Video source to sample
        buffer: Destination of gated captures
        autofocus: Consumer of the score stream
        dispatcher: Optional batch dispatcher checked after every tick
        current_sharpness: Latest published score
        last_capture: Time of the last gated capture (None if never)
    """

    def __init__(
        self,
        source: VideoSource,
        buffer: RetentionBuffer,
        autofocus: AutofocusController,
        config: ScannerConfig,
        analysis: Optional[AnalysisConfig] = None,
        encoding: Optional[EncodingConfig] = None,
        dispatcher: Optional[BatchDispatcher] = None,
        tick_interval_sec: float = 1.0 / 30.0,
        log_every_n_ticks: int = 300,
    ) -> None:
        self.source = source
        self.buffer = buffer
        self.autofocus = autofocus
        self.config = config
        self.analysis = analysis or AnalysisConfig()
        self.encoding = encoding or EncodingConfig()
        self.dispatcher = dispatcher
        self.tick_interval_sec = tick_interval_sec
        self.log_every_n_ticks = log_every_n_ticks

        # Telemetry
        self.current_sharpness: int = 0
        self.last_capture: Optional[float] = None
        self.frames_scored: int = 0
        self.frames_captured: int = 0
        self._device_errors: int = 0
        self._encode_errors: int = 0

        self._running: bool = False

        logger.info(
            f"CaptureLoop initialized: threshold={config.sharpness_threshold}, "
            f"interval={config.capture_interval_ms}ms, max_frames={config.max_frames}, "
            f"analysis_width={self.analysis.width}"
        )

    @property
    def running(self) -> bool:
        return self._running

    def gate_open(self, score: int, now: float) -> bool:
        """Whether a frame with this score may be captured at time now."""
        if score <= self.config.sharpness_threshold:
            return False
        if (
            self.last_capture is not None
            and (now - self.last_capture) * 1000.0 <= self.config.capture_interval_ms
        ):
            return False
        return self.buffer.size < self.config.max_frames

    def mark_captured(self, now: float) -> None:
        """Restart the capture interval from now."""
        self.last_capture = now

    def reset_telemetry(self) -> None:
        self.current_sharpness = 0

    def tick(self, now: Optional[float] = None) -> Optional[int]:
        """
        Run one scheduling tick.

        Args:
            now: Current time in seconds (defaults to time.time())

        Returns:
            The frame's sharpness score, or None if nothing was sampled.
        """
        if now is None:
            now = time.time()

        if not self.source.is_ready():
            return None

        try:
            width, height = self.source.frame_size()
            pixels = self.source.sample(*analysis_size(width, height, self.analysis.width))
        except (DeviceError, ValueError) as e:
            self._device_errors += 1
            logger.warning(f"Frame sampling failed: {e}")
            return None

        score = compute_sharpness(pixels, self.analysis.margin)
        self.current_sharpness = score
        self.frames_scored += 1

        self.autofocus.observe(score, now)

        if self.gate_open(score, now):
            self._capture(score, now)

        if self.dispatcher is not None:
            self.dispatcher.maybe_dispatch(now)

        if self.frames_scored % self.log_every_n_ticks == 0:
            logger.info(
                f"Capture stats [tick {self.frames_scored}]: sharpness={score}, "
                f"buffer={self.buffer.size}/{self.config.max_frames}, "
                f"captured={self.frames_captured}"
            )

        return score

    def _capture(self, score: int, now: float) -> Optional[Frame]:
        """Grab, encode and insert the current frame."""
        try:
            payload = encode_jpeg_b64(
                self.source.grab(),
                max_dimension=self.encoding.max_dimension,
                quality=self.encoding.jpeg_quality,
            )
        except DeviceError as e:
            self._device_errors += 1
            logger.warning(f"Frame grab failed: {e}")
            return None
        except ImageEncodeError as e:
            self._encode_errors += 1
            logger.warning(f"Frame encode failed: {e}")
            return None

        frame = Frame(image_b64=payload, sharpness=score, timestamp=now)
        self.buffer.try_insert(frame)
        self.last_capture = now
        self.frames_captured += 1
        logger.debug(f"Captured {frame!r}, buffer={self.buffer.size}")
        return frame

    async def run(self) -> None:
        """
        Tick until stop() is called or the task is cancelled.
        """
        self._running = True
        logger.info("Capture loop started")

        try:
            while self._running:
                try:
                    self.tick()
                except Exception as e:
                    logger.error(f"Capture tick error: {e}")
                await asyncio.sleep(self.tick_interval_sec)
        finally:
            self._running = False
            logger.info("Capture loop stopped")

    def stop(self) -> None:
        """Signal the run loop to exit after the current tick."""
        self._running = False

    def get_metrics(self) -> dict:
        """Get capture metrics for observability."""
        return {
            "current_sharpness": self.current_sharpness,
            "frames_scored": self.frames_scored,
            "frames_captured": self.frames_captured,
            "device_errors": self._device_errors,
            "encode_errors": self._encode_errors,
        }

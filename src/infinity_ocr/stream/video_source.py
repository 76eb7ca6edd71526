"""
Video Source
============

Capture device abstraction for the scanning pipeline.

The pipeline never talks to a camera directly. It depends on the
VideoSource protocol:
    - acquire / release: exclusive device lifecycle
    - is_ready: whether a frame is available yet
    - sample: current frame at a requested analysis resolution (RGB)
    - grab: current frame at full resolution (BGR, for encoding)
    - toggle_focus: best-effort autofocus re-trigger

OpenCVVideoSource implements it with cv2.VideoCapture and a daemon
reader thread, so that sampling never blocks on device I/O.
"""

import asyncio
import logging
import threading
from typing import Optional, Protocol, Tuple, Union

import cv2
import numpy as np


logger = logging.getLogger(__name__)


class DeviceError(Exception):
    """Raised when the capture device is unavailable or a capability call fails."""
    pass


class VideoSource(Protocol):
    """
    Protocol for capture devices.

    Implementations own exactly one device. Acquiring an already
    acquired source raises DeviceError.
    """

    def acquire(self) -> None:
        """Open the device exclusively."""
        ...

    def release(self) -> None:
        """Stop all tracks and close the device. Safe to call twice."""
        ...

    def is_ready(self) -> bool:
        """Whether a current frame is available."""
        ...

    def frame_size(self) -> Tuple[int, int]:
        """(width, height) of the current frame."""
        ...

    def sample(self, width: int, height: int) -> np.ndarray:
        """Current frame resized to (height, width, 3), RGB, uint8."""
        ...

    def grab(self) -> np.ndarray:
        """Current frame at full resolution, BGR, uint8."""
        ...

    async def toggle_focus(self, restore_delay: float = 0.5) -> None:
        """Switch away from continuous autofocus and back after a delay."""
        ...


def _parse_device(device: Union[str, int]) -> Union[str, int]:
    """Device indices arrive from config as strings."""
    if isinstance(device, str) and device.isdigit():
        return int(device)
    return device


class OpenCVVideoSource:
    """
    VideoSource backed by cv2.VideoCapture.

    A daemon thread keeps reading the device and stores the latest frame
    under a lock; pipeline calls only copy from that slot.

    Attributes:
        device: Device index or stream URL
        width: Requested capture width
        height: Requested capture height
    """

    def __init__(
        self,
        device: Union[str, int] = 0,
        width: int = 1280,
        height: int = 720,
    ) -> None:
        self.device = _parse_device(device)
        self.width = width
        self.height = height

        self._cap: Optional[cv2.VideoCapture] = None
        self._cap_lock = threading.Lock()
        self._frame_lock = threading.Lock()
        self._latest: Optional[np.ndarray] = None
        self._running = threading.Event()
        self._reader: Optional[threading.Thread] = None
        self._read_failures: int = 0

    @property
    def acquired(self) -> bool:
        return self._cap is not None

    def acquire(self) -> None:
        if self._cap is not None:
            raise DeviceError(f"Video device {self.device!r} already acquired")

        cap = cv2.VideoCapture(self.device)
        if not cap.isOpened():
            cap.release()
            raise DeviceError(f"Cannot open video device {self.device!r}")

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        # Start in continuous autofocus where the driver supports it
        cap.set(cv2.CAP_PROP_AUTOFOCUS, 1)

        self._cap = cap
        self._latest = None
        self._running.set()
        self._reader = threading.Thread(
            target=self._read_loop,
            name="video_reader",
            daemon=True,
        )
        self._reader.start()
        logger.info(f"Video device acquired: {self.device!r} ({self.width}x{self.height})")

    def release(self) -> None:
        self._running.clear()
        if self._reader is not None:
            self._reader.join(timeout=2.0)
            self._reader = None

        if self._cap is not None:
            with self._cap_lock:
                self._cap.release()
            self._cap = None
            logger.info(f"Video device released: {self.device!r}")

        with self._frame_lock:
            self._latest = None

    def _read_loop(self) -> None:
        """Reader thread: keep the latest frame slot fresh."""
        while self._running.is_set():
            cap = self._cap
            if cap is None:
                break
            with self._cap_lock:
                ok, frame = cap.read()
            if not ok or frame is None:
                self._read_failures += 1
                if self._read_failures % 30 == 1:
                    logger.warning(
                        f"Frame read failed on {self.device!r} "
                        f"(failures: {self._read_failures})"
                    )
                self._running.wait(0.05)
                continue
            with self._frame_lock:
                self._latest = frame

    def _latest_frame(self) -> np.ndarray:
        with self._frame_lock:
            frame = self._latest
        if frame is None:
            raise DeviceError("No frame available from video device")
        return frame

    def is_ready(self) -> bool:
        with self._frame_lock:
            return self._latest is not None

    def frame_size(self) -> Tuple[int, int]:
        height, width = self._latest_frame().shape[:2]
        return width, height

    def sample(self, width: int, height: int) -> np.ndarray:
        small = cv2.resize(self._latest_frame(), (width, height), interpolation=cv2.INTER_AREA)
        return cv2.cvtColor(small, cv2.COLOR_BGR2RGB)

    def grab(self) -> np.ndarray:
        return self._latest_frame().copy()

    def _set_autofocus(self, enabled: bool) -> None:
        cap = self._cap
        if cap is None:
            raise DeviceError("Video device not acquired")
        with self._cap_lock:
            ok = cap.set(cv2.CAP_PROP_AUTOFOCUS, 1 if enabled else 0)
        if not ok:
            raise DeviceError(f"Autofocus control not supported by {self.device!r}")

    async def toggle_focus(self, restore_delay: float = 0.5) -> None:
        """
        Re-trigger autofocus by leaving continuous mode briefly.

        Raises:
            DeviceError: If the device does not support autofocus control
        """
        await asyncio.to_thread(self._set_autofocus, False)
        try:
            await asyncio.sleep(restore_delay)
        finally:
            await asyncio.to_thread(self._set_autofocus, True)
        logger.debug(f"Autofocus re-engaged on {self.device!r}")

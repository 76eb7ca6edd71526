"""
Test Configuration
==================

Pytest fixtures and test doubles for Infinity OCR.

Async code is driven through run_async (fresh event loop per call);
no pytest async plugin is required.
"""

import asyncio
import base64
from typing import Any, Coroutine, List, Optional, Tuple, TypeVar

import cv2
import numpy as np
import pytest

from infinity_ocr.config import ScannerConfig
from infinity_ocr.stream.frame import Frame
from infinity_ocr.stream.video_source import DeviceError


T = TypeVar("T")


def _run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine synchronously for testing."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def checkerboard(height: int = 480, width: int = 640, cell: int = 8) -> np.ndarray:
    """High-detail BGR test image."""
    ys, xs = np.indices((height, width))
    board = (((ys // cell) + (xs // cell)) % 2 * 255).astype(np.uint8)
    return cv2.cvtColor(board, cv2.COLOR_GRAY2BGR)


def flat_image(height: int = 480, width: int = 640, value: int = 128) -> np.ndarray:
    """Featureless BGR test image."""
    return np.full((height, width, 3), value, dtype=np.uint8)


class FakeVideoSource:
    """In-memory VideoSource serving a fixed BGR image."""

    def __init__(
        self,
        image: Optional[np.ndarray] = None,
        ready: bool = True,
        acquire_error: Optional[Exception] = None,
        focus_error: Optional[Exception] = None,
    ) -> None:
        self.image = image if image is not None else checkerboard()
        self.ready = ready
        self.acquire_error = acquire_error
        self.focus_error = focus_error
        self.acquired = False
        self.acquire_count = 0
        self.release_count = 0
        self.focus_toggles = 0
        self.sample_error: Optional[Exception] = None

    def acquire(self) -> None:
        if self.acquire_error is not None:
            raise self.acquire_error
        if self.acquired:
            raise DeviceError("already acquired")
        self.acquired = True
        self.acquire_count += 1

    def release(self) -> None:
        if self.acquired:
            self.release_count += 1
        self.acquired = False

    def is_ready(self) -> bool:
        return self.ready

    def frame_size(self) -> Tuple[int, int]:
        height, width = self.image.shape[:2]
        return width, height

    def sample(self, width: int, height: int) -> np.ndarray:
        if self.sample_error is not None:
            raise self.sample_error
        small = cv2.resize(self.image, (width, height), interpolation=cv2.INTER_NEAREST)
        return cv2.cvtColor(small, cv2.COLOR_BGR2RGB)

    def grab(self) -> np.ndarray:
        return self.image.copy()

    async def toggle_focus(self, restore_delay: float = 0.5) -> None:
        self.focus_toggles += 1
        if self.focus_error is not None:
            raise self.focus_error


class FakeTransport:
    """Scripted RemoteOCRTransport that records every request."""

    def __init__(
        self,
        responses: Optional[List[str]] = None,
        error: Optional[Exception] = None,
        hold: bool = False,
    ) -> None:
        self.responses = list(responses or ['{"full_text": "ABC123"}'])
        self.error = error
        self.hold = hold
        self.requests = []
        self._release: Optional[asyncio.Event] = None

    def release(self) -> None:
        """Let held calls complete."""
        self.hold = False
        if self._release is not None:
            self._release.set()

    async def generate(self, request) -> str:
        self.requests.append(request)
        if self.hold:
            self._release = asyncio.Event()
            await self._release.wait()
        if self.error is not None:
            raise self.error
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def make_payload(tag: str = "frame") -> str:
    """Base64 payload standing in for a JPEG."""
    return base64.b64encode(f"jpeg-{tag}".encode()).decode("ascii")


def make_frame(sharpness: int, timestamp: float = 1000.0) -> Frame:
    return Frame(
        image_b64=make_payload(str(sharpness)),
        sharpness=sharpness,
        timestamp=timestamp,
    )


@pytest.fixture
def run_async():
    """Provide the run_async helper."""
    return _run_async


@pytest.fixture
def scanner_config():
    """Scanner config with a credential and a small batch."""
    return ScannerConfig(
        api_key="test-key",
        model="gemini-2.5-flash",
        max_frames=3,
        capture_interval_ms=500,
        sharpness_threshold=20,
        system_prompt="Extract text.",
    )


@pytest.fixture
def fake_source():
    """Provide a ready FakeVideoSource serving a checkerboard."""
    return FakeVideoSource()


@pytest.fixture
def fake_transport():
    """Provide a FakeTransport answering with full_text ABC123."""
    return FakeTransport()


@pytest.fixture
def scripted_scores(monkeypatch):
    """
    Replace the capture loop's scorer with a scripted sequence.

    Usage:
        scripted_scores([10, 50, 30])
    """
    def install(scores):
        remaining = list(scores)

        def fake_compute(pixels, margin=0.2):
            return remaining.pop(0) if len(remaining) > 1 else remaining[0]

        monkeypatch.setattr(
            "infinity_ocr.pipeline.capture_loop.compute_sharpness",
            fake_compute,
        )
    return install

"""
Autofocus Controller
====================

Recovers from sustained blur by re-triggering the camera's autofocus.

State machine over the sharpness score stream:

    STEADY         score < threshold         -> BLUR_TRACKING (start = now)
    BLUR_TRACKING  score >= threshold        -> STEADY
    BLUR_TRACKING  blur > window, cooldown ok -> refocus, STEADY

At most one refocus is issued per cooldown window, however long the
blur lasts. The refocus itself is best-effort: a device that rejects
the focus toggle is logged and otherwise ignored.
"""

import logging
import time
from enum import Enum
from typing import Callable, Optional

from infinity_ocr.stream.video_source import VideoSource


logger = logging.getLogger(__name__)


class AutofocusPhase(str, Enum):
    """
    Autofocus tracking phase.

    Attributes:
        STEADY: Not tracking a blur episode
        BLUR_TRACKING: Score has been below threshold since blur_start
    """

    STEADY = "STEADY"
    BLUR_TRACKING = "BLUR_TRACKING"


class AutofocusController:
    """
    Decides when to re-trigger autofocus from the sharpness stream.

    Attributes:
        threshold: Scores below this count as blurred
        blur_window_sec: Blur duration required before a refocus
        cooldown_sec: Minimum spacing between refocus attempts
        low_sharpness_start: Start of the current blur episode (None if STEADY)
        last_focus_attempt: Time of the last refocus (None if never)
    """

    def __init__(
        self,
        threshold: float,
        blur_window_sec: float = 2.0,
        cooldown_sec: float = 5.0,
        on_refocus: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Initialize autofocus controller.

        Args:
            threshold: Sharpness threshold shared with the capture gate
            blur_window_sec: Sustained blur before refocusing
            cooldown_sec: Cooldown between refocus attempts
            on_refocus: Called synchronously when a refocus is issued
        """
        self.threshold = threshold
        self.blur_window_sec = blur_window_sec
        self.cooldown_sec = cooldown_sec
        self.on_refocus = on_refocus

        self.low_sharpness_start: Optional[float] = None
        self.last_focus_attempt: Optional[float] = None
        self._refocus_count: int = 0

        logger.info(
            f"AutofocusController initialized: threshold={threshold}, "
            f"window={blur_window_sec}s, cooldown={cooldown_sec}s"
        )

    @property
    def phase(self) -> AutofocusPhase:
        if self.low_sharpness_start is None:
            return AutofocusPhase.STEADY
        return AutofocusPhase.BLUR_TRACKING

    @property
    def refocus_count(self) -> int:
        """Refocus commands issued so far."""
        return self._refocus_count

    def observe(self, score: float, now: Optional[float] = None) -> bool:
        """
        Feed one sharpness score.

        Args:
            score: Latest sharpness score
            now: Current time in seconds (defaults to time.time())

        Returns:
            True if a refocus was issued on this observation.
        """
        if now is None:
            now = time.time()

        if score >= self.threshold:
            self.low_sharpness_start = None
            return False

        if self.low_sharpness_start is None:
            self.low_sharpness_start = now
            return False

        if now - self.low_sharpness_start <= self.blur_window_sec:
            return False

        if (
            self.last_focus_attempt is not None
            and now - self.last_focus_attempt <= self.cooldown_sec
        ):
            return False

        self.low_sharpness_start = None
        self.last_focus_attempt = now
        self._refocus_count += 1
        logger.info(f"Sustained blur (score={score}), triggering refocus #{self._refocus_count}")

        if self.on_refocus is not None:
            self.on_refocus()
        return True

    def reset(self) -> None:
        """Forget blur tracking and cooldown history."""
        self.low_sharpness_start = None
        self.last_focus_attempt = None


async def refocus(source: VideoSource, restore_delay: float = 0.5) -> bool:
    """
    Best-effort autofocus toggle.

    Never raises: device failures are logged and reported as False.
    """
    try:
        await source.toggle_focus(restore_delay)
        return True
    except Exception as e:
        logger.warning(f"Focus adjustment failed: {e}")
        return False

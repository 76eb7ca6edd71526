"""
Retention Buffer
================

Fixed-capacity best-of-N frame cache ordered by sharpness.

The RetentionBuffer holds the sharpest frames captured since the last
dispatch. Ranking is recomputed from scratch on every insertion, so only
relative score matters, never arrival order.

Design Rules:
    - Never holds more than maxsize frames
    - Always sorted by non-increasing sharpness
    - A frame that does not rank in the top maxsize on insertion is
      dropped immediately; stored frames are never evicted later
    - Cleared exactly once per completed dispatch
"""

import logging
from typing import List, Optional

from infinity_ocr.stream.frame import Frame


logger = logging.getLogger(__name__)


class RetentionBuffer:
    """
    Best-of-N frame cache.

    Not thread-safe: owned by the scan session and touched only from
    the event loop thread.

    Attributes:
        maxsize: Maximum number of frames retained
        rejected_count: Frames that did not survive insertion ranking

    Example:
        buffer = RetentionBuffer(maxsize=3)
        buffer.try_insert(frame)

        if buffer.is_full:
            batch = buffer.frames
    """

    def __init__(self, maxsize: int = 5) -> None:
        """
        Initialize retention buffer.

        Args:
            maxsize: Maximum frames to retain. Must be >= 1.
        """
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")

        self._maxsize = maxsize
        self._frames: List[Frame] = []
        self._rejected_count: int = 0
        self._total_inserted: int = 0

    @property
    def maxsize(self) -> int:
        """Maximum buffer size."""
        return self._maxsize

    @property
    def size(self) -> int:
        """Current number of frames in buffer."""
        return len(self._frames)

    @property
    def is_full(self) -> bool:
        return len(self._frames) >= self._maxsize

    @property
    def frames(self) -> List[Frame]:
        """Snapshot of the retained frames, sharpest first."""
        return list(self._frames)

    @property
    def best(self) -> Optional[Frame]:
        """Sharpest retained frame, or None when empty."""
        return self._frames[0] if self._frames else None

    @property
    def rejected_count(self) -> int:
        """Frames dropped because they ranked below the top maxsize."""
        return self._rejected_count

    def __len__(self) -> int:
        return len(self._frames)

    def try_insert(self, frame: Frame) -> bool:
        """
        Insert frame, re-rank, and truncate to maxsize.

        Args:
            frame: Frame to insert

        Returns:
            True if the frame survived ranking, False if it was dropped.
        """
        self._total_inserted += 1

        ranked = sorted(
            self._frames + [frame],
            key=lambda f: f.sharpness,
            reverse=True,
        )
        survivors = ranked[: self._maxsize]
        dropped = len(ranked) - len(survivors)
        self._frames = survivors

        if dropped:
            self._rejected_count += dropped
            logger.debug(
                f"Buffer at capacity, dropped {dropped} frame(s). "
                f"Total rejected: {self._rejected_count}"
            )

        return any(f is frame for f in survivors)

    def clear(self) -> int:
        """
        Remove all frames from buffer.

        Returns:
            Number of frames cleared.
        """
        cleared = len(self._frames)
        self._frames = []
        return cleared

    def metrics(self) -> dict:
        """
        Get buffer metrics for observability.

        Returns:
            Dict with size, maxsize, rejected_count, total_inserted
        """
        return {
            "size": self.size,
            "maxsize": self._maxsize,
            "rejected_count": self._rejected_count,
            "total_inserted": self._total_inserted,
        }

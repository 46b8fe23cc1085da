# swingcore/frame_window.py
#
# Bounded sliding window of recent frames + a throttled streaming analyzer.
#
# The analysis functions are stateless; this is the caller-side buffer that
# accumulates live frames and decides when to re-run compare_poses.

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Deque, List, Mapping, Optional, Union

from swingcore.compare_metrics import ComparisonResult, Reference, compare_poses
from swingcore.config import MIN_FRAMES_STREAMING, ComparisonOptions, options_from_mapping
from swingcore.pose import Frame

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 90  # 3 s at 30 fps


class FrameWindow:
    """Fixed-capacity frame buffer; pushing onto a full window evicts the oldest frame."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if int(capacity) < 1:
            raise ValueError(f"FrameWindow capacity must be >= 1, got {capacity}")
        self.capacity = int(capacity)
        self._frames: Deque[Frame] = deque(maxlen=self.capacity)

    def push(self, frame: Frame) -> None:
        self._frames.append(frame)

    def latest(self, n: Optional[int] = None) -> List[Frame]:
        """Up to n most recent frames, oldest first (all frames when n is None)."""
        if n is None:
            return list(self._frames)
        if n <= 0:
            return []
        return list(self._frames)[-n:]

    def frames(self) -> List[Frame]:
        return list(self._frames)

    def clear(self) -> None:
        self._frames.clear()

    def is_full(self) -> bool:
        return len(self._frames) == self.capacity

    def ready(self, min_frames: int = MIN_FRAMES_STREAMING) -> bool:
        return len(self._frames) >= min_frames

    def __len__(self) -> int:
        return len(self._frames)


class StreamingAnalyzer:
    """
    Feeds live frames into a FrameWindow and re-runs compare_poses every
    `every_n` pushes once at least `min_frames` are buffered.
    """

    def __init__(
        self,
        reference: Reference,
        options: Union[ComparisonOptions, Mapping[str, Any], None] = None,
        capacity: int = DEFAULT_CAPACITY,
        every_n: int = 1,
        min_frames: int = MIN_FRAMES_STREAMING,
    ):
        if int(every_n) < 1:
            raise ValueError(f"every_n must be >= 1, got {every_n}")
        self.reference = reference
        self.options = options_from_mapping(options)
        self.window = FrameWindow(capacity)
        self.every_n = int(every_n)
        self.min_frames = int(min_frames)
        self.last_result: Optional[ComparisonResult] = None
        self._since_last = 0

    def push(self, frame: Frame) -> Optional[ComparisonResult]:
        """Add a frame; returns a fresh result when analysis ran, else None."""
        self.window.push(frame)
        self._since_last += 1
        if not self.window.ready(self.min_frames):
            return None
        if self.last_result is not None and self._since_last < self.every_n:
            return None
        self._since_last = 0
        self.last_result = compare_poses(self.window.frames(), self.reference, self.options)
        logger.debug(
            "streaming analysis over %d frames: overall=%.3f",
            len(self.window), self.last_result.overall_score,
        )
        return self.last_result

    def reset(self) -> None:
        self.window.clear()
        self.last_result = None
        self._since_last = 0


__all__ = ["DEFAULT_CAPACITY", "FrameWindow", "StreamingAnalyzer"]

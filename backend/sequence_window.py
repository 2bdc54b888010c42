"""
Bounded window of normalized frames feeding the exercise classifier.

Two consumption policies:
- SLIDING: FIFO, the oldest frame is evicted once capacity is exceeded and the
  window is left intact after classification (overlapping windows).
- CLEAR_ON_CONSUME: same append behaviour, but the classifier resets the whole
  window after every successful call (non-overlapping windows).
"""

from __future__ import annotations

import logging
from collections import deque
from enum import Enum
from typing import Deque, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class WindowPolicy(str, Enum):
    SLIDING = "sliding"
    CLEAR_ON_CONSUME = "clear_on_consume"


class SequenceWindow:
    """Single-writer FIFO of (33, 4) frames with a hard capacity."""

    def __init__(self, capacity: int = 50, policy: WindowPolicy = WindowPolicy.SLIDING):
        if capacity <= 0:
            raise ValueError("Window capacity must be positive.")
        self.capacity = capacity
        self.policy = WindowPolicy(policy)
        self._frames: Deque[np.ndarray] = deque(maxlen=capacity)
        self.frames_appended = 0

    def __len__(self) -> int:
        return len(self._frames)

    def append(self, frame: np.ndarray) -> None:
        was_full = self.is_full()
        # deque(maxlen) drops the head on overflow
        self._frames.append(frame)
        self.frames_appended += 1
        if not was_full and self.is_full():
            logger.debug("Window full (%d frames).", self.capacity)

    def is_full(self) -> bool:
        return len(self._frames) == self.capacity

    def reset(self) -> None:
        self._frames.clear()

    def consume(self) -> None:
        """Called after a successful classification."""
        if self.policy is WindowPolicy.CLEAR_ON_CONSUME:
            self.reset()
            logger.debug("Cleared frame window after classification.")

    def snapshot(self) -> Tuple[np.ndarray, ...]:
        """Immutable copy of the current contents, oldest first."""
        frames = []
        for frame in self._frames:
            copy = np.array(frame, dtype=np.float32, copy=True)
            copy.setflags(write=False)
            frames.append(copy)
        return tuple(frames)

    @property
    def head(self):
        return self._frames[0] if self._frames else None

    @property
    def tail(self):
        return self._frames[-1] if self._frames else None

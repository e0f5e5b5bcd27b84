from __future__ import annotations

import enum
import logging
from typing import Optional

from .types import DetectionFrame


logger = logging.getLogger(__name__)


class PresenceState(enum.Enum):
    IDLE = "idle"
    ACTIVE = "active"


class PresenceController:
    """
    Two-state Idle/Active machine driven by body keypoint confidence.

    Any keypoint scoring above `threshold` makes the state ACTIVE and refreshes the
    last-seen time to when that pose result was detected (`DetectionFrame.body_t_ms`),
    not to when the frame was last read. Once `timeout_ms` has elapsed since then the
    state falls back to IDLE.
    """

    def __init__(self, threshold: float = 0.3, timeout_ms: float = 3000.0) -> None:
        self.threshold = float(threshold)
        self.timeout_ms = float(timeout_ms)
        self.state = PresenceState.IDLE
        self.last_seen_ms: Optional[float] = None

    @property
    def is_idle(self) -> bool:
        return self.state is PresenceState.IDLE

    def update(self, frame: DetectionFrame, now_ms: float) -> PresenceState:
        if frame.has_person(self.threshold):
            # A reused frame still counts from the tick its pose result arrived.
            seen_ms = frame.body_t_ms if frame.body_t_ms is not None else now_ms
            if self.last_seen_ms is None or seen_ms > self.last_seen_ms:
                self.last_seen_ms = seen_ms
            if now_ms - self.last_seen_ms < self.timeout_ms:
                self._set(PresenceState.ACTIVE, now_ms)
                return self.state

        if self.state is PresenceState.ACTIVE:
            if self.last_seen_ms is None or now_ms - self.last_seen_ms >= self.timeout_ms:
                self._set(PresenceState.IDLE, now_ms)
        return self.state

    def _set(self, state: PresenceState, now_ms: float) -> None:
        if state is not self.state:
            logger.info("Presence %s -> %s at %.0f ms", self.state.value, state.value, now_ms)
            self.state = state

from __future__ import annotations

from typing import Optional


class TickThrottle:
    """
    Rate limiter keyed on the tick counter rather than on wall-clock frame rate.

    `ready()` is true on the first tick offered and afterwards only once at least
    `every_n_ticks` ticks have passed since the last accepted one.
    """

    def __init__(self, every_n_ticks: int) -> None:
        if every_n_ticks < 1:
            raise ValueError(f"every_n_ticks must be >= 1, got {every_n_ticks}")
        self.every_n_ticks = int(every_n_ticks)
        self._last_tick: Optional[int] = None

    @property
    def last_tick(self) -> Optional[int]:
        return self._last_tick

    def ready(self, tick: int) -> bool:
        if self._last_tick is None:
            return True
        return tick - self._last_tick >= self.every_n_ticks

    def accept(self, tick: int) -> None:
        self._last_tick = tick

    def try_accept(self, tick: int) -> bool:
        if not self.ready(tick):
            return False
        self.accept(tick)
        return True

    def reset(self) -> None:
        self._last_tick = None

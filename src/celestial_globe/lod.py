"""Level-of-detail switch driven by zoom level.

Each level has separate enter/exit thresholds (hysteresis) so a zoom hovering
near a boundary does not flicker, and switching is suppressed while the zoom
is changing fast.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class LodLevel(str, Enum):
    LOW = "low"
    MID = "mid"
    HIGH = "high"
    FULL = "full"


@dataclass(frozen=True)
class LodThresholds:
    low_to_mid: float = 0.40
    mid_to_low: float = 0.35
    mid_to_high: float = 0.90
    high_to_mid: float = 0.85
    high_to_full: float = 1.40
    full_to_high: float = 1.30


VELOCITY_GATE = 2.0  # zoom units per second


def next_level(current: LodLevel, zoom: float, t: LodThresholds) -> LodLevel:
    """One hysteresis step from ``current`` at ``zoom``."""
    if current == LodLevel.LOW:
        return LodLevel.MID if zoom >= t.low_to_mid else LodLevel.LOW
    if current == LodLevel.MID:
        if zoom < t.mid_to_low:
            return LodLevel.LOW
        if zoom >= t.mid_to_high:
            return LodLevel.HIGH
        return LodLevel.MID
    if current == LodLevel.HIGH:
        if zoom < t.high_to_mid:
            return LodLevel.MID
        if zoom >= t.high_to_full:
            return LodLevel.FULL
        return LodLevel.HIGH
    return LodLevel.HIGH if zoom < t.full_to_high else LodLevel.FULL


class LodSwitch:
    """Tracks the current level across zoom samples.

    ``update(zoom, now)`` takes the zoom level and a timestamp in seconds and
    returns the (possibly unchanged) level. Each sample moves at most one level,
    so a large jump is reached over consecutive samples.
    """

    def __init__(self, initial_zoom: float, thresholds: LodThresholds | None = None) -> None:
        self.thresholds = thresholds or LodThresholds()
        self.level = next_level(LodLevel.MID, initial_zoom, self.thresholds)
        self._last_zoom: float | None = None
        self._last_time: float | None = None
        self.velocity = 0.0

    def update(self, zoom: float, now: float) -> LodLevel:
        if self._last_zoom is not None and self._last_time is not None:
            dt = now - self._last_time
            if dt > 0:
                self.velocity = abs(zoom - self._last_zoom) / dt
        self._last_zoom = zoom
        self._last_time = now

        if self.velocity < VELOCITY_GATE:
            self.level = next_level(self.level, zoom, self.thresholds)
        return self.level

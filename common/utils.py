from __future__ import annotations

import time


def epoch_ms() -> float:
    """Wall-clock time in epoch milliseconds (host timers feed this to tick())."""
    return time.time() * 1000.0


def clamp(v: float, lo: float, hi: float) -> float:
    return float(min(hi, max(lo, v)))


def angle_diff_deg(target: float, current: float) -> float:
    """
    Shortest signed difference target - current, in degrees, within [-180, 180].

        angle_diff_deg(1, 359)  ->  2
        angle_diff_deg(359, 1)  -> -2
    """
    diff = target - current
    if diff > 180.0:
        diff -= 360.0
    if diff < -180.0:
        diff += 360.0
    return diff

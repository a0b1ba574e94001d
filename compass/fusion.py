"""
Compass fusion: raw magnetometer -> calibrated, declination-corrected,
smoothed true heading.

Two modes:
    LIVE         every sample updates raw/smoothed heading
    CALIBRATING  samples with a plausible field magnitude are collected into a
                 bounded window; finalize_calibration() turns the window into
                 hard-iron offsets and returns to LIVE

Not thread-safe: the host delivers samples and declination updates serially.
"""
from __future__ import annotations

import math
from collections import deque
from enum import Enum
from typing import Deque, Iterable, Optional

import numpy as np

from common.config import CompassConfig
from common.geo import normalize_bearing
from common.logging_setup import get_logger
from common.types import CalibrationOffsets, CompassState, MagnetometerSample, now_iso
from common.utils import angle_diff_deg
from compass.declination import OfflineDeclinationProvider


log = get_logger("compass.fusion")

CARDINALS = ("N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
             "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW")


class InsufficientSamples(RuntimeError):
    pass


class CompassMode(str, Enum):
    LIVE = "live"
    CALIBRATING = "calibrating"


# -------------------------
# Pure helpers
# -------------------------
def magnetic_heading(x: float, y: float) -> float:
    """Heading of the horizontal field vector, clockwise from magnetic north."""
    h = normalize_bearing(math.degrees(math.atan2(x, y)))
    return normalize_bearing(360.0 - h)


def true_heading(x: float, y: float, declination_deg: float, manual_offset_deg: float = 0.0) -> float:
    return normalize_bearing(magnetic_heading(x, y) - declination_deg - manual_offset_deg)


def smooth_heading(current: float, target: float, alpha: float) -> float:
    """Exponential smoothing along the shortest arc (wraps at 0/360)."""
    return normalize_bearing(current + angle_diff_deg(target, current) * alpha)


def hard_iron_offsets(samples: Iterable[MagnetometerSample]) -> CalibrationOffsets:
    arr = np.array([(s.x, s.y, s.z) for s in samples], dtype=float)
    if arr.size == 0:
        raise InsufficientSamples("no samples")
    mid = (arr.max(axis=0) + arr.min(axis=0)) / 2.0
    return CalibrationOffsets(
        offset_x=float(mid[0]),
        offset_y=float(mid[1]),
        offset_z=float(mid[2]),
        sample_count=int(arr.shape[0]),
        computed_at=now_iso(),
    )


def heading_to_cardinal(heading_deg: float) -> str:
    """16-point compass rose label (N, NNE, NE, ...)."""
    return CARDINALS[int(round(normalize_bearing(heading_deg) / 22.5)) % 16]


class CompassFusion:
    """
    Usage:
        cf = CompassFusion(cfg.compass)
        cf.set_declination(-21.3)
        for s in source.samples():
            cf.on_magnetometer_sample(s.x, s.y, s.z, s.timestamp_ms)
        cf.state().smoothed_heading_deg
    """

    def __init__(self, config: Optional[CompassConfig] = None, provider=None,
                 offsets: Optional[CalibrationOffsets] = None):
        self.config = config or CompassConfig()
        self.provider = provider or OfflineDeclinationProvider()

        self.mode = CompassMode.LIVE
        self.offsets = offsets or CalibrationOffsets.zero()
        self.declination_deg = 0.0
        self.raw_heading_deg = 0.0
        self.smoothed_heading_deg = 0.0
        self._window: Deque[MagnetometerSample] = deque(maxlen=self.config.calibration_max_samples)

    # -------- calibration --------

    @property
    def calibrating(self) -> bool:
        return self.mode is CompassMode.CALIBRATING

    def start_calibration(self) -> None:
        self._window.clear()
        self.mode = CompassMode.CALIBRATING
        log.info("Compass calibration started")

    def abort_calibration(self) -> None:
        """Drop the window and return to LIVE; offsets are left untouched."""
        dropped = len(self._window)
        self._window.clear()
        self.mode = CompassMode.LIVE
        log.info("Compass calibration aborted", extra={"extra": {"dropped": dropped}})

    def finalize_calibration(self) -> CalibrationOffsets:
        """
        Compute hard-iron offsets from the window and return to LIVE.

        Raises InsufficientSamples (staying in CALIBRATING) while fewer than
        calibration_min_samples valid samples were collected.
        """
        n = len(self._window)
        if n < self.config.calibration_min_samples:
            raise InsufficientSamples(
                f"calibration needs {self.config.calibration_min_samples} samples, have {n}"
            )
        offsets = hard_iron_offsets(self._window)
        self._window.clear()
        self.mode = CompassMode.LIVE
        log.info("Compass calibration finished", extra={"extra": offsets.to_record()})
        return offsets

    def apply_offsets(self, offsets: CalibrationOffsets) -> None:
        """Subtract these hard-iron offsets from every subsequent live sample."""
        self.offsets = offsets

    # -------- samples --------

    def on_magnetometer_sample(self, x: float, y: float, z: float,
                               timestamp_ms: Optional[float] = None) -> Optional[float]:
        """
        Feed one raw reading (µT). Returns the smoothed heading in LIVE mode,
        None while calibrating.
        """
        if self.calibrating:
            s = MagnetometerSample(x, y, z, timestamp_ms or 0.0)
            if s.is_valid(self.config.min_magnitude_ut, self.config.max_magnitude_ut):
                self._window.append(s)
            else:
                log.debug("Discarding calibration sample", extra={"extra": {"magnitude": s.magnitude}})
            return None

        ox, oy, _ = self.offsets.as_tuple()
        self.raw_heading_deg = true_heading(x - ox, y - oy, self.declination_deg, self.config.manual_offset_deg)
        self.smoothed_heading_deg = smooth_heading(
            self.smoothed_heading_deg, self.raw_heading_deg, self.config.smoothing_alpha
        )
        return self.smoothed_heading_deg

    # -------- declination --------

    def set_declination(self, deg: float) -> None:
        if not math.isfinite(deg):
            raise ValueError("declination must be finite")
        self.declination_deg = float(deg)
        log.info("Declination set", extra={"extra": {"declination_deg": self.declination_deg}})

    def update_declination(self, lat: float, lon: float) -> float:
        """
        Query the configured provider synchronously and apply the value.

        With a remote provider this blocks on the network; hosts that must not
        wait use compass.declination.DeclinationLookup instead.
        """
        value = self.provider.declination(lat, lon)
        self.set_declination(value)
        return value

    # -------- read side --------

    @property
    def display_heading(self) -> int:
        """Latest unsmoothed true heading rounded to whole degrees, 0..359."""
        return int(round(self.raw_heading_deg)) % 360

    @property
    def sample_window(self) -> int:
        return len(self._window)

    def state(self) -> CompassState:
        return CompassState(
            raw_heading_deg=self.raw_heading_deg,
            smoothed_heading_deg=self.smoothed_heading_deg,
            declination_deg=self.declination_deg,
            calibrating=self.calibrating,
            sample_window=len(self._window),
        )

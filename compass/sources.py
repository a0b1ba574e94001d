from __future__ import annotations

import csv
import math
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple

import numpy as np

from common.types import MagnetometerSample
from common.utils import epoch_ms


CSV_HEADER = ["ts_ms", "x", "y", "z"]


@dataclass
class MagnetometerCSVSource:
    """
    Replay magnetometer readings from a CSV file with columns: ts_ms, x, y, z (µT).
    If realtime=True, sleeps the recorded gap between samples; else yields as fast as possible.
    """
    path: str
    realtime: bool = False
    scale_dt: float = 1.0  # multiply gaps by this factor (e.g., 0.5 = 2x speed)

    def samples(self) -> Iterator[MagnetometerSample]:
        if not Path(self.path).exists():
            raise FileNotFoundError(f"Magnetometer CSV not found: {self.path}")
        prev_ts: Optional[float] = None
        with open(self.path, newline="") as f:
            r = csv.DictReader(f)
            for row in r:
                ts = float(row.get("ts_ms") or epoch_ms())
                if self.realtime and prev_ts is not None and ts > prev_ts:
                    time.sleep((ts - prev_ts) / 1000.0 * float(self.scale_dt))
                prev_ts = ts
                yield MagnetometerSample(
                    x=float(row.get("x", "0.0")),
                    y=float(row.get("y", "0.0")),
                    z=float(row.get("z", "0.0")),
                    timestamp_ms=ts,
                )


@dataclass
class MagnetometerSyntheticSource:
    """
    Field seen by a device slowly turning on the spot, for hosts without a
    magnetometer and for tests.

    Args:
        rate_hz: sample rate (default ~20 Hz)
        field_ut: total field strength (µT)
        inclination_deg: dip of the field below the horizon
        start_heading_deg: magnetic heading of the device at t=0
        turn_rate_dps: heading change per second (deg/s); 0 holds still
        hard_iron: constant bias added to every axis (µT)
        noise_ut: white noise std per axis (µT)
        realtime: pace samples at rate_hz
    """
    rate_hz: float = 20.0
    field_ut: float = 45.0
    inclination_deg: float = 30.0
    start_heading_deg: float = 0.0
    turn_rate_dps: float = 5.0
    hard_iron: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    noise_ut: float = 0.0
    realtime: bool = False
    seed: int = 1234

    def field_at(self, heading_deg: float) -> Tuple[float, float, float]:
        """Noise-free (x, y, z) for a device pointing at `heading_deg` (magnetic)."""
        h = math.radians(heading_deg)
        inc = math.radians(self.inclination_deg)
        horiz = self.field_ut * math.cos(inc)
        # heading is 360 - atan2(x, y), so x carries -sin(h)
        return (
            -horiz * math.sin(h) + self.hard_iron[0],
            horiz * math.cos(h) + self.hard_iron[1],
            self.field_ut * math.sin(inc) + self.hard_iron[2],
        )

    def samples(self, duration_s: Optional[float] = None) -> Iterator[MagnetometerSample]:
        dt = 1.0 / max(1e-3, self.rate_hz)
        rng = np.random.default_rng(self.seed)
        t0 = epoch_ms()
        t = 0.0
        start = time.perf_counter()
        while (duration_s is None) or (t < duration_s):
            x, y, z = self.field_at(self.start_heading_deg + self.turn_rate_dps * t)
            if self.noise_ut > 0:
                n = rng.normal(0.0, self.noise_ut, size=3)
                x, y, z = x + float(n[0]), y + float(n[1]), z + float(n[2])
            yield MagnetometerSample(x, y, z, timestamp_ms=t0 + t * 1000.0)

            t += dt
            if self.realtime:
                sleep_s = t - (time.perf_counter() - start)
                if sleep_s > 0:
                    time.sleep(sleep_s)


def feed(fusion, samples: Iterable[MagnetometerSample], limit: int = 0) -> int:
    """
    Push a sample stream into a CompassFusion. If limit > 0, stops after that many samples.
    Returns the number of samples delivered.
    """
    n = 0
    for s in samples:
        fusion.on_magnetometer_sample(s.x, s.y, s.z, s.timestamp_ms)
        n += 1
        if limit > 0 and n >= limit:
            break
    return n


def write_magnetometer_csv(path: str, samples: Iterable[MagnetometerSample], max_rows: int = 0) -> None:
    """
    Write a magnetometer stream to CSV. If max_rows > 0, stops after that many rows.
    """
    n = 0
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", newline="") as f:
        w = csv.writer(f)
        w.writerow(CSV_HEADER)
        for s in samples:
            w.writerow([f"{s.timestamp_ms:.0f}", f"{s.x:.6f}", f"{s.y:.6f}", f"{s.z:.6f}"])
            n += 1
            if max_rows > 0 and n >= max_rows:
                break

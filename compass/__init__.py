"""
Compass: heading from a raw magnetometer

Provides:
- CompassFusion: LIVE / CALIBRATING state machine producing a smoothed,
  declination-corrected true heading and hard-iron calibration offsets
- Declination providers:
    - OfflineDeclinationProvider: deterministic approximation
    - RemoteDeclinationProvider: NOAA WMM calculator with offline fallback
    - DeclinationLookup: background query, value collected with poll()
- Magnetometer sources:
    - MagnetometerCSVSource: replay from CSV (ts_ms, x, y, z)
    - MagnetometerSyntheticSource: turning-device generator

Usage examples:
    from compass import CompassFusion, RemoteDeclinationProvider
    from compass.sources import MagnetometerSyntheticSource, feed
"""
from .declination import DeclinationLookup, OfflineDeclinationProvider, RemoteDeclinationProvider
from .fusion import CompassFusion, CompassMode, InsufficientSamples, heading_to_cardinal

__all__ = [
    "CompassFusion",
    "CompassMode",
    "InsufficientSamples",
    "heading_to_cardinal",
    "DeclinationLookup",
    "OfflineDeclinationProvider",
    "RemoteDeclinationProvider",
]

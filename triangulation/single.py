from __future__ import annotations

import math

from common.geo import destination
from common.types import GeoPoint, Observation


def project_single(obs: Observation) -> GeoPoint:
    """
    Place the target from one observation.

    The slant range is split by pitch into a ground distance along the
    heading and a height gain above the observer.
    """
    if obs.slant_range <= 0:
        raise ValueError("single-observer projection needs slant_range > 0")
    p = math.radians(obs.pitch)
    horizontal = obs.slant_range * math.cos(p)
    vertical = obs.slant_range * math.sin(p)
    ground = destination(obs.position, horizontal, obs.heading)
    return GeoPoint(ground.latitude, ground.longitude, obs.position.altitude + vertical)


def slant_range_from(horizontal_m: float, vertical_m: float) -> float:
    return math.hypot(horizontal_m, vertical_m)


def object_height(angle_deg: float, horizontal_m: float) -> float:
    """Height of an object seen `angle_deg` above the horizon at ground distance `horizontal_m`."""
    return abs(horizontal_m * math.tan(math.radians(angle_deg)))


def pitch_from_accelerometer(x: float, y: float, z: float) -> float:
    """Device pitch (deg) from the gravity vector."""
    return math.degrees(math.atan2(z, math.hypot(x, y)))

from __future__ import annotations

from typing import Dict, Iterable, Optional, Sequence
import math
import numpy as np

from common.types import GeoPoint


# --- Spherical Earth ---
EARTH_RADIUS_M = 6371000.0        # mean Earth radius (m)


def normalize_bearing(deg: float) -> float:
    """Wrap any angle in degrees into [0, 360)."""
    b = math.fmod(deg, 360.0)
    if b < 0.0:
        b += 360.0
    # fmod(-1e-17, 360) + 360 rounds to 360.0
    return 0.0 if b >= 360.0 else b


# -------------------------
# Great-circle & bearings
# -------------------------
def angular_distance(a: GeoPoint, b: GeoPoint) -> float:
    """Central angle between two points on the unit sphere (radians)."""
    p1 = math.radians(a.latitude)
    p2 = math.radians(b.latitude)
    dphi = p2 - p1
    dl = math.radians(b.longitude - a.longitude)
    h = math.sin(dphi / 2.0) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2.0) ** 2
    return 2.0 * math.asin(math.sqrt(min(1.0, h)))


def distance(a: GeoPoint, b: GeoPoint) -> float:
    """Haversine great-circle distance (m) on a sphere of radius EARTH_RADIUS_M."""
    return EARTH_RADIUS_M * angular_distance(a, b)


def bearing(a: GeoPoint, b: GeoPoint) -> float:
    """Initial great-circle bearing from a to b (degrees, 0..360)."""
    phi1, phi2 = math.radians(a.latitude), math.radians(b.latitude)
    dl = math.radians(b.longitude - a.longitude)
    y = math.sin(dl) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dl)
    return normalize_bearing(math.degrees(math.atan2(y, x)))


def destination(origin: GeoPoint, distance_m: float, bearing_deg: float) -> GeoPoint:
    """
    Forward projection: the point reached travelling `distance_m` from `origin`
    along the great circle with initial bearing `bearing_deg`.

    Altitude is carried over from the origin unchanged.
    """
    d = distance_m / EARTH_RADIUS_M
    th = math.radians(bearing_deg)
    phi1 = math.radians(origin.latitude)
    lam1 = math.radians(origin.longitude)

    sin_phi2 = math.sin(phi1) * math.cos(d) + math.cos(phi1) * math.sin(d) * math.cos(th)
    phi2 = math.asin(max(-1.0, min(1.0, sin_phi2)))
    lam2 = lam1 + math.atan2(
        math.sin(th) * math.sin(d) * math.cos(phi1),
        math.cos(d) - math.sin(phi1) * math.sin(phi2),
    )
    lon = (math.degrees(lam2) + 540.0) % 360.0 - 180.0
    return GeoPoint(latitude=math.degrees(phi2), longitude=lon, altitude=origin.altitude)


# -------------------------
# Local tangent plane (equirectangular)
# -------------------------
def to_local_cartesian(p: GeoPoint, origin: GeoPoint) -> np.ndarray:
    """
    Geodetic -> local (x=east, y=north, z=up) meters around `origin`.

      x = R * dlon * cos(origin.lat)
      y = R * dlat
      z = p.alt - origin.alt

    dlon is taken the short way round, so points either side of the
    antimeridian stay close.

    NOTE: flat-earth scaling; error grows with distance from origin and is not
    meaningful beyond a few hundred km.
    """
    dlat = math.radians(p.latitude - origin.latitude)
    dlon = math.radians(_wrap_longitude(p.longitude - origin.longitude))
    x = EARTH_RADIUS_M * dlon * math.cos(math.radians(origin.latitude))
    y = EARTH_RADIUS_M * dlat
    z = p.altitude - origin.altitude
    return np.array([x, y, z], dtype=float)


def from_local_cartesian(xyz: Sequence[float], origin: GeoPoint) -> GeoPoint:
    """
    Inverse of to_local_cartesian() for the same origin.

    Latitude past a pole is folded back over it (longitude shifted 180°),
    and longitude is wrapped into [-180, 180).
    """
    v = np.asarray(xyz, dtype=float).reshape(3)
    # cos(lat) vanishes at the poles
    coslat = max(math.cos(math.radians(origin.latitude)), 1e-12)
    lat = origin.latitude + math.degrees(v[1] / EARTH_RADIUS_M)
    lon = origin.longitude + math.degrees(v[0] / (EARTH_RADIUS_M * coslat))

    if abs(lat) > 90.0:
        lat = (lat + 90.0) % 360.0 - 90.0             # [-90, 270)
        if lat > 90.0:
            lat = 180.0 - lat
            lon += 180.0
    if not -180.0 <= lon < 180.0:
        lon = _wrap_longitude(lon)
    return GeoPoint(latitude=float(lat), longitude=float(lon), altitude=float(origin.altitude + v[2]))


def _wrap_longitude(deg: float) -> float:
    """Wrap into [-180, 180)."""
    return (deg + 540.0) % 360.0 - 180.0


# -------------------------
# Area helpers
# -------------------------
def bounding_box(center: GeoPoint, km: float = 100.0) -> Dict[str, float]:
    """
    Rough lat/lon box of half-size `km` around `center` (111 km per degree).
    Keys: min_lat, min_lon, max_lat, max_lon.
    """
    dlat = km / 111.0
    dlon = km / (111.0 * math.cos(math.radians(center.latitude)))
    return {
        "min_lat": center.latitude - dlat,
        "min_lon": center.longitude - dlon,
        "max_lat": center.latitude + dlat,
        "max_lon": center.longitude + dlon,
    }


def center_of(points: Iterable[GeoPoint]) -> Optional[GeoPoint]:
    """Arithmetic mean of lat/lon/alt; None for an empty input."""
    pts = list(points)
    if not pts:
        return None
    n = float(len(pts))
    return GeoPoint(
        latitude=sum(p.latitude for p in pts) / n,
        longitude=sum(p.longitude for p in pts) / n,
        altitude=sum(p.altitude for p in pts) / n,
    )

"""
Two-observer great-circle intersection.

Each observer contributes a position and a true bearing; the sightlines are
treated as great-circle paths and their first intersection ahead of both
observers is solved on the unit sphere (spherical triangle formed by the two
observers and the target).
"""
from __future__ import annotations

import math
from typing import Optional

from common.config import TriangulationConfig
from common.geo import EARTH_RADIUS_M, angular_distance, bearing, destination, distance
from common.logging_setup import get_logger
from common.types import GeoPoint, IntersectionResult
from common.utils import clamp


log = get_logger("triangulation.intersect")


class TriangulationError(ValueError):
    """Geometry that cannot yield a single target; ask the user to re-observe."""


class CoincidentObservers(TriangulationError):
    pass


class ParallelOrCollinearSightlines(TriangulationError):
    pass


class DivergentSightlines(TriangulationError):
    """The sightlines only meet behind at least one observer."""


def _check_bearing(b: float) -> None:
    if not (0.0 <= b < 360.0):
        raise ValueError(f"bearing must be in [0, 360), got {b}")


class TwoObserverIntersector:
    """
    Solve the intersection of two (position, bearing) sightlines.

    Usage:
        ix = TwoObserverIntersector()
        res = ix.intersect(p1, 45.0, p2, 315.0)
        res.target, res.distance_from_observer1
    """

    def __init__(self, config: Optional[TriangulationConfig] = None):
        self.config = config or TriangulationConfig()

    def intersect(self, p1: GeoPoint, bearing1_deg: float, p2: GeoPoint, bearing2_deg: float) -> IntersectionResult:
        _check_bearing(bearing1_deg)
        _check_bearing(bearing2_deg)

        d12 = angular_distance(p1, p2)
        if d12 < self.config.coincident_tolerance_rad:
            raise CoincidentObservers("Observers are at the same position")

        th13 = math.radians(bearing1_deg)
        th23 = math.radians(bearing2_deg)
        tha = math.radians(bearing(p1, p2))

        th1 = th13 - tha
        th2 = tha - th23 + math.pi
        s1, s2 = math.sin(th1), math.sin(th2)

        tol = self.config.parallel_tolerance
        if abs(s1) < tol and abs(s2) < tol:
            raise ParallelOrCollinearSightlines("Sightlines are parallel or collinear")
        if s1 * s2 < 0.0:
            raise DivergentSightlines("Sightlines diverge; no intersection ahead of both observers")

        c3 = -math.cos(th1) * math.cos(th2) + s1 * s2 * math.cos(d12)
        th3 = math.acos(clamp(c3, -1.0, 1.0))
        d13 = math.atan2(math.sin(d12) * s1 * s2, math.cos(th2) + math.cos(th1) * math.cos(th3))

        target = destination(p1, d13 * EARTH_RADIUS_M, bearing1_deg)
        res = IntersectionResult(
            target=target,
            distance_from_observer1=distance(p1, target),
            distance_from_observer2=distance(p2, target),
        )
        log.debug("Intersection solved", extra={"extra": res.to_dict()})
        return res


def intersect(p1: GeoPoint, bearing1_deg: float, p2: GeoPoint, bearing2_deg: float,
              config: Optional[TriangulationConfig] = None) -> IntersectionResult:
    """Functional shortcut for TwoObserverIntersector(config).intersect(...)."""
    return TwoObserverIntersector(config).intersect(p1, bearing1_deg, p2, bearing2_deg)

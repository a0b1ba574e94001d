"""
Triangulation: locating the plume from ground sightings

This package provides:
- Two-observer great-circle intersection (position + true bearing each)
- Multi-observer fusion of 2..5 observations with per-observer residuals
- Single-observer projection from heading, pitch and slant range
- ObservationSession: bounded collection (capacity 5) + JSON export

Usage:
    from triangulation import intersect, ObservationSession
"""
from .intersect import (
    CoincidentObservers,
    DivergentSightlines,
    ParallelOrCollinearSightlines,
    TriangulationError,
    TwoObserverIntersector,
    intersect,
)
from .fusion import MultiObserverFuser, fuse
from .single import project_single
from .session import ObservationSession

__all__ = [
    "CoincidentObservers",
    "DivergentSightlines",
    "ParallelOrCollinearSightlines",
    "TriangulationError",
    "TwoObserverIntersector",
    "intersect",
    "MultiObserverFuser",
    "fuse",
    "project_single",
    "ObservationSession",
]

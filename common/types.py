from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Optional, Tuple, Any, Dict
from datetime import datetime, timezone
import math
import uuid


IsoTime = str


def now_iso() -> IsoTime:
    """UTC timestamp in RFC3339/ISO-8601 with 'Z' suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """
    A position on the sphere.

    Attributes:
        latitude: WGS84 degrees, [-90, 90].
        longitude: WGS84 degrees, [-180, 180].
        altitude: meters (defaults to 0).
    """
    latitude: float
    longitude: float
    altitude: float = 0.0

    def __post_init__(self) -> None:
        if not (-90.0 <= self.latitude <= 90.0) or not (-180.0 <= self.longitude <= 180.0):
            raise ValueError("lat/lon out of range")
        if not math.isfinite(self.altitude):
            raise ValueError("altitude must be finite")

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude, "altitude": self.altitude}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GeoPoint":
        return cls(
            latitude=float(d["latitude"]),
            longitude=float(d["longitude"]),
            altitude=float(d.get("altitude") or 0.0),
        )


@dataclass(frozen=True, slots=True)
class Observation:
    """
    One committed sighting of the target.

    Attributes:
        position: where the observer stood.
        heading: true bearing of the sightline, degrees in [0, 360).
        pitch: elevation of the sightline above the horizon, degrees in [-90, 90].
        slant_range: straight-line distance to the target (m), >= 0.
        captured_at: ISO-8601 (UTC) timestamp.
        observer_label: display label, e.g. "Obs-1".
        id: opaque unique id.
    """
    position: GeoPoint
    heading: float
    pitch: float = 0.0
    slant_range: float = 0.0
    captured_at: IsoTime = field(default_factory=now_iso)
    observer_label: str = ""
    id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        if not (0.0 <= self.heading < 360.0):
            raise ValueError("heading must be in [0, 360)")
        if not (-90.0 <= self.pitch <= 90.0):
            raise ValueError("pitch must be in [-90, 90]")
        if not (self.slant_range >= 0.0) or not math.isfinite(self.slant_range):
            raise ValueError("slant_range must be >= 0")

    def to_record(self) -> Dict[str, Any]:
        """JSON-compatible dict for persistence."""
        return {
            "id": self.id,
            "position": self.position.to_dict(),
            "heading": self.heading,
            "pitch": self.pitch,
            "slant_range": self.slant_range,
            "captured_at": self.captured_at,
            "observer_label": self.observer_label,
        }

    @classmethod
    def from_record(cls, d: Dict[str, Any]) -> "Observation":
        return cls(
            position=GeoPoint.from_dict(d["position"]),
            heading=float(d["heading"]),
            pitch=float(d.get("pitch", 0.0)),
            slant_range=float(d.get("slant_range", 0.0)),
            captured_at=str(d.get("captured_at") or now_iso()),
            observer_label=str(d.get("observer_label", "")),
            id=str(d.get("id") or _new_id()),
        )


@dataclass(frozen=True, slots=True)
class TriangulationResult:
    """
    Output of the multi-observer fuser.

    Attributes:
        target: estimated target position.
        error_metric: mean angular residual in [0, 1]; relative quality only.
        observer_count: number of observations used.
        per_observer_residuals: residual per observation, same order as input.
        low_confidence: error_metric above the configured warning level.
    """
    target: GeoPoint
    error_metric: float
    observer_count: int
    per_observer_residuals: Tuple[float, ...]
    low_confidence: bool = False

    def __post_init__(self) -> None:
        if self.error_metric < 0:
            raise ValueError("error_metric must be >= 0")
        if self.observer_count != len(self.per_observer_residuals):
            raise ValueError("observer_count does not match residuals")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target.to_dict(),
            "error_metric": self.error_metric,
            "observer_count": self.observer_count,
            "per_observer_residuals": list(self.per_observer_residuals),
            "low_confidence": self.low_confidence,
        }


@dataclass(frozen=True, slots=True)
class IntersectionResult:
    """Great-circle intersection of two sightlines; distances in meters."""
    target: GeoPoint
    distance_from_observer1: float
    distance_from_observer2: float

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["target"] = self.target.to_dict()
        return d


@dataclass(frozen=True, slots=True)
class MagnetometerSample:
    """
    Raw 3-axis magnetometer reading (µT).

    Attributes:
        x, y, z: field components in device frame.
        timestamp_ms: epoch milliseconds.
    """
    x: float
    y: float
    z: float
    timestamp_ms: float = 0.0

    @property
    def magnitude(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def is_valid(self, min_mag: float, max_mag: float) -> bool:
        return min_mag <= self.magnitude <= max_mag


@dataclass(frozen=True, slots=True)
class CalibrationOffsets:
    """
    Hard-iron offsets from one calibration session.

    Attributes:
        offset_x, offset_y, offset_z: per-axis bias (µT).
        sample_count: number of window samples used.
        computed_at: ISO-8601 (UTC), None for the zero calibration.
    """
    offset_x: float
    offset_y: float
    offset_z: float
    sample_count: int = 0
    computed_at: Optional[IsoTime] = None

    @classmethod
    def zero(cls) -> "CalibrationOffsets":
        return cls(0.0, 0.0, 0.0)

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.offset_x, self.offset_y, self.offset_z)

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, d: Dict[str, Any]) -> "CalibrationOffsets":
        return cls(
            offset_x=float(d.get("offset_x", 0.0)),
            offset_y=float(d.get("offset_y", 0.0)),
            offset_z=float(d.get("offset_z", 0.0)),
            sample_count=int(d.get("sample_count", 0)),
            computed_at=d.get("computed_at"),
        )


@dataclass(slots=True)
class CompassState:
    """Read-only snapshot of CompassFusion (headings in degrees, [0, 360))."""
    raw_heading_deg: float
    smoothed_heading_deg: float
    declination_deg: float
    calibrating: bool
    sample_window: int


@dataclass(frozen=True, slots=True)
class Fix:
    """A single reported device position from the platform location service."""
    latitude: float
    longitude: float
    altitude: float = 0.0
    timestamp_ms: float = 0.0

    def __post_init__(self) -> None:
        if not (-90.0 <= self.latitude <= 90.0) or not (-180.0 <= self.longitude <= 180.0):
            raise ValueError("lat/lon out of range")

    def to_point(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude, self.altitude)


@dataclass(slots=True)
class FixHealthState:
    """
    Mutable bookkeeping of FixHealthMonitor (times in epoch ms).

    last_restart_at / stale_cycle_started_at are None until first set.
    """
    last_fix_at: float = 0.0
    grace_until: float = 0.0
    is_stale: bool = False
    is_restarting: bool = False
    last_restart_at: Optional[float] = None
    stale_cycle_started_at: Optional[float] = None
    recovery_attempted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

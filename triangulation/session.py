"""
Bounded, ordered set of observations backing one triangulation.

    session = ObservationSession()
    session.add(obs_a)
    session.add(obs_b)
    session.result          # TriangulationResult once >= 2 observations

Capacity is TriangulationConfig.max_observations (5). Adding beyond that
evicts the oldest observation. The result is recomputed from scratch on every
change and is None while fewer than min_observations are held. A change whose
triangulation fails is rejected whole: observations and result stay as they were.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Tuple

from common.config import TriangulationConfig
from common.logging_setup import get_logger
from common.types import GeoPoint, Observation, TriangulationResult, now_iso
from triangulation.fusion import MultiObserverFuser


log = get_logger("triangulation.session")

APP_NAME = "smoke-locator 0.1.0"


class ObservationSession:
    def __init__(self, config: Optional[TriangulationConfig] = None, fuser: Optional[MultiObserverFuser] = None):
        self.config = config or TriangulationConfig()
        self.fuser = fuser or MultiObserverFuser(self.config)
        self._items: List[Observation] = []
        self._result: Optional[TriangulationResult] = None
        self._seq = 0

    # -------- collection --------

    def __len__(self) -> int:
        return len(self._items)

    @property
    def observations(self) -> Tuple[Observation, ...]:
        return tuple(self._items)

    @property
    def result(self) -> Optional[TriangulationResult]:
        return self._result

    def add(self, obs: Observation) -> Optional[Observation]:
        """
        Append `obs`; returns the evicted observation when at capacity.
        If the new triangulation cannot be computed the session is left as it was.
        """
        seq = self._seq + 1
        if not obs.observer_label:
            obs = replace(obs, observer_label=f"Obs-{seq}")

        items = self._items + [obs]
        evicted = None
        if len(items) > self.config.max_observations:
            evicted = items.pop(0)
        self._commit(items)
        self._seq = seq
        if evicted is not None:
            log.info("Session full, oldest observation evicted",
                     extra={"extra": {"evicted": evicted.id, "label": evicted.observer_label}})
        return evicted

    def remove(self, obs_id: str) -> bool:
        items = [o for o in self._items if o.id != obs_id]
        if len(items) == len(self._items):
            return False
        self._commit(items)
        return True

    def clear(self) -> None:
        self._items = []
        self._seq = 0
        self._result = None

    def _commit(self, items: List[Observation]) -> None:
        """Swap in `items` together with their result; raises before touching state."""
        if len(items) < self.config.min_observations:
            result = None
        else:
            result = self.fuser.fuse(items)
        self._items, self._result = items, result
        if result is not None:
            log.info("Triangulation updated", extra={"extra": {
                "n": result.observer_count,
                "error_metric": result.error_metric,
                "target": result.target.to_dict(),
            }})

    # -------- persistence --------

    def to_records(self) -> List[Dict[str, Any]]:
        return [o.to_record() for o in self._items]

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]],
                     config: Optional[TriangulationConfig] = None) -> "ObservationSession":
        """Rebuild a session; records beyond capacity keep only the newest."""
        session = cls(config)
        for rec in records:
            session.add(Observation.from_record(rec))
        return session

    def export_report(self, user_position: Optional[GeoPoint] = None) -> Dict[str, Any]:
        """JSON-compatible summary for sharing a session."""
        user = user_position.to_dict() if user_position else {"latitude": 0.0, "longitude": 0.0, "altitude": 0.0}
        return {
            "exported_at": now_iso(),
            "app": APP_NAME,
            "user_location": user,
            "observations": [
                {
                    "number": i + 1,
                    "observer": o.observer_label,
                    "latitude": o.position.latitude,
                    "longitude": o.position.longitude,
                    "altitude": o.position.altitude,
                    "slant_range_m": o.slant_range,
                    "heading": o.heading,
                    "pitch": o.pitch,
                    "captured_at": o.captured_at,
                }
                for i, o in enumerate(self._items)
            ],
            "total": len(self._items),
            "triangulation": self._result.to_dict() if self._result else None,
        }

"""
Multi-observer target estimate (2..5 observations).

The estimate is extrapolated along the first observer's sightline by the mean
slant range of all observations; the other observers only grade it. Each
observer's residual is the cosine deviation between its own sightline and the
direction from it to the estimate, scaled to [0, 1]:

    residual_i = (1 - dot(u_to_estimate_i, u_observed_i)) / 2
    error_metric = mean(residual_i)

error_metric is a relative agreement signal, not a distance error.
"""
from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np

from common.config import TriangulationConfig
from common.geo import from_local_cartesian, to_local_cartesian
from common.logging_setup import get_logger
from common.types import Observation, TriangulationResult


log = get_logger("triangulation.fusion")


def sight_direction(heading_deg: float, pitch_deg: float) -> np.ndarray:
    """Unit sightline in local (east, north, up) for a heading/pitch pair."""
    h = math.radians(heading_deg)
    p = math.radians(pitch_deg)
    return np.array([math.sin(h) * math.cos(p), math.cos(h) * math.cos(p), math.sin(p)], dtype=float)


class MultiObserverFuser:
    def __init__(self, config: Optional[TriangulationConfig] = None):
        self.config = config or TriangulationConfig()

    def fuse(self, observations: Sequence[Observation]) -> TriangulationResult:
        n = len(observations)
        if n < self.config.min_observations or n > self.config.max_observations:
            raise ValueError(
                f"need {self.config.min_observations}..{self.config.max_observations} observations, got {n}"
            )

        origin = observations[0].position
        P = np.vstack([to_local_cartesian(o.position, origin) for o in observations])  # (N,3)
        D = np.vstack([sight_direction(o.heading, o.pitch) for o in observations])     # (N,3)
        mean_range = float(np.mean([o.slant_range for o in observations]))

        est = P[0] + D[0] * mean_range

        V = est - P                                   # observer -> estimate
        norms = np.linalg.norm(V, axis=1)
        residuals = np.zeros(n, dtype=float)
        ok = norms > 1e-9                             # estimate sits on the observer: nothing to grade
        cos_sim = np.einsum("ij,ij->i", V[ok], D[ok]) / norms[ok]
        residuals[ok] = np.clip((1.0 - cos_sim) / 2.0, 0.0, 1.0)

        err = float(residuals.mean())
        result = TriangulationResult(
            target=from_local_cartesian(est, origin),
            error_metric=err,
            observer_count=n,
            per_observer_residuals=tuple(float(r) for r in residuals),
            low_confidence=err > self.config.low_confidence_error,
        )
        if result.low_confidence:
            log.warning("Sightlines disagree with estimate", extra={"extra": {"error_metric": err, "n": n}})
        return result


def fuse(observations: Sequence[Observation], config: Optional[TriangulationConfig] = None) -> TriangulationResult:
    return MultiObserverFuser(config).fuse(observations)

"""
Fix-liveness monitor for the platform location service.

The host calls on_fix() for every position report and tick() on a timer
(GpsMonitorConfig.tick_interval_ms, 2.5 s by default). When fixes stop
arriving for longer than threshold·grace_multiplier the monitor goes STALE
and issues a RestartCommand; the host restarts its fix source with the
command's settings and keeps calling on_fix()/tick().

    LIVE --(no fix > limit)--> STALE --(gap ok, no attempt yet)--> RESTARTING
      ^                          |                                   |
      +------- fix / fresh ------+---------------- fix --------------+

Restart policy:
- never inside a grace period (start, post-restart, post-recovery)
- at most one command per min_restart_gap_ms
- one attempt per stale cycle; once a cycle outlives max_stale_cycle_ms the
  attempt flag is cleared and a new cycle starts, permitting one more try

Times are epoch milliseconds supplied by the caller; the monitor never reads
a clock and never raises from on_fix()/tick().
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from common.config import GpsMonitorConfig
from common.logging_setup import get_logger
from common.types import Fix, FixHealthState


log = get_logger("fixhealth.monitor")


class HealthState(str, Enum):
    LIVE = "live"
    STALE = "stale"
    RESTARTING = "restarting"


@dataclass(frozen=True, slots=True)
class FixSourceSettings:
    """How the host should (re)subscribe to the fix source for a mode."""
    accuracy: str
    distance_interval_m: float
    time_interval_ms: float


FIX_SOURCE_SETTINGS: Dict[str, FixSourceSettings] = {
    "precise": FixSourceSettings("best_for_navigation", 1.0, 1000.0),
    "normal": FixSourceSettings("high", 3.0, 2000.0),
    "eco": FixSourceSettings("balanced", 10.0, 5000.0),
}


@dataclass(frozen=True, slots=True)
class RestartCommand:
    issued_at_ms: float
    mode: str
    settings: FixSourceSettings
    inactive_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "issued_at_ms": self.issued_at_ms,
            "mode": self.mode,
            "accuracy": self.settings.accuracy,
            "distance_interval_m": self.settings.distance_interval_m,
            "time_interval_ms": self.settings.time_interval_ms,
            "inactive_ms": self.inactive_ms,
        }


class FixHealthMonitor:
    def __init__(
        self,
        config: Optional[GpsMonitorConfig] = None,
        mode: str = "normal",
        started_at_ms: float = 0.0,
        on_restart: Optional[Callable[[RestartCommand], None]] = None,
    ):
        self.config = config or GpsMonitorConfig()
        self.config.stale_limit_ms(mode)  # validates mode
        self.mode = mode
        self.on_restart = on_restart
        self.last_fix: Optional[Fix] = None
        self._s = FixHealthState(
            last_fix_at=started_at_ms,
            grace_until=started_at_ms + self.config.grace_period_ms,
        )

    # -------- read side --------

    @property
    def state(self) -> HealthState:
        if self._s.is_restarting:
            return HealthState.RESTARTING
        if self._s.is_stale:
            return HealthState.STALE
        return HealthState.LIVE

    @property
    def health(self) -> FixHealthState:
        return self._s

    @property
    def stale_limit_ms(self) -> float:
        return self.config.stale_limit_ms(self.mode) * self.config.grace_multiplier

    def snapshot(self) -> Dict[str, Any]:
        d = self._s.to_dict()
        d.update({"state": self.state.value, "mode": self.mode, "stale_limit_ms": self.stale_limit_ms})
        return d

    def settings(self) -> FixSourceSettings:
        return FIX_SOURCE_SETTINGS[self.mode]

    # -------- inputs --------

    def set_mode(self, mode: str) -> None:
        self.config.stale_limit_ms(mode)
        if mode != self.mode:
            log.info("Fix monitor mode changed", extra={"extra": {"from": self.mode, "to": mode}})
        self.mode = mode

    def on_fix(self, timestamp_ms: float, fix: Optional[Fix] = None) -> None:
        s = self._s
        s.last_fix_at = timestamp_ms
        if s.is_restarting:
            s.is_restarting = False
            s.grace_until = timestamp_ms + self.config.recovery_grace_ms
            log.info("Fix source recovered", extra={"extra": {"at": timestamp_ms}})
        s.is_stale = False
        s.recovery_attempted = False
        s.stale_cycle_started_at = None

        if fix is not None and self._moved(fix):
            self.last_fix = fix

    def _moved(self, fix: Fix) -> bool:
        if self.last_fix is None:
            return True
        eps = self.config.moved_epsilon_deg
        return (abs(self.last_fix.latitude - fix.latitude) > eps
                or abs(self.last_fix.longitude - fix.longitude) > eps)

    def tick(self, now_ms: float) -> Optional[RestartCommand]:
        """Evaluate liveness at `now_ms`; returns a RestartCommand when one is due."""
        s = self._s
        if now_ms < s.grace_until:
            return None

        inactive = now_ms - s.last_fix_at
        if inactive <= self.stale_limit_ms:
            if s.is_stale or s.is_restarting:
                log.info("Fix source live again", extra={"extra": {"inactive_ms": inactive}})
            s.is_stale = False
            s.is_restarting = False
            s.recovery_attempted = False
            s.stale_cycle_started_at = None
            return None

        if not s.is_stale:
            s.is_stale = True
            s.stale_cycle_started_at = now_ms
            log.warning("Fix source stale", extra={"extra": {"inactive_ms": inactive, "mode": self.mode}})

        since_restart = float("inf") if s.last_restart_at is None else now_ms - s.last_restart_at
        gap_ok = since_restart > self.config.min_restart_gap_ms

        if not s.recovery_attempted and gap_ok and not s.is_restarting:
            return self._restart(now_ms, inactive)

        cycle = now_ms - (s.stale_cycle_started_at if s.stale_cycle_started_at is not None else now_ms)
        if s.recovery_attempted and gap_ok and cycle > self.config.max_stale_cycle_ms:
            # the previous restart never produced a fix: open a new cycle with one more attempt
            s.recovery_attempted = False
            s.is_restarting = False
            s.stale_cycle_started_at = now_ms
            log.info("Stale cycle exceeded, another restart permitted",
                     extra={"extra": {"cycle_ms": cycle}})
        return None

    def _restart(self, now_ms: float, inactive: float) -> RestartCommand:
        s = self._s
        s.recovery_attempted = True
        s.is_restarting = True
        s.last_restart_at = now_ms
        s.grace_until = now_ms + self.config.restart_grace_ms

        cmd = RestartCommand(issued_at_ms=now_ms, mode=self.mode, settings=self.settings(), inactive_ms=inactive)
        log.warning("Restarting fix source", extra={"extra": cmd.to_dict()})
        if self.on_restart is not None:
            try:
                self.on_restart(cmd)
            except Exception:
                log.exception("Restart callback failed")
        return cmd

"""
Fix health: keeps the satellite fix source alive

Provides:
- FixHealthMonitor: LIVE / STALE / RESTARTING tracking with bounded restarts
- RestartCommand + FixSourceSettings: what the host should resubscribe with

Usage:
    from fixhealth import FixHealthMonitor
    mon = FixHealthMonitor(cfg.gps, mode="normal", started_at_ms=epoch_ms(), on_restart=host.restart)
"""
from .monitor import FIX_SOURCE_SETTINGS, FixHealthMonitor, FixSourceSettings, HealthState, RestartCommand

__all__ = ["FIX_SOURCE_SETTINGS", "FixHealthMonitor", "FixSourceSettings", "HealthState", "RestartCommand"]

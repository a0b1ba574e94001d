"""
Runtime configuration for the locator core.

Loads from config/params.yaml if present, with environment variable overrides.
Environment variables use the pattern SMOKELOC_<SECTION>_<KEY> (uppercase), e.g.
SMOKELOC_GPS_MIN_RESTART_GAP_MS=20000.

Every component receives its own section at construction; nothing in the
package reads module-level tunables.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


@dataclass
class TriangulationConfig:
    max_observations: int = 5
    min_observations: int = 2
    coincident_tolerance_rad: float = 1e-10
    parallel_tolerance: float = 1e-12
    low_confidence_error: float = 0.05  # error_metric above this is flagged


@dataclass
class CompassConfig:
    update_interval_ms: int = 50  # ~20 Hz
    min_magnitude_ut: float = 20.0
    max_magnitude_ut: float = 80.0
    smoothing_alpha: float = 0.15
    manual_offset_deg: float = 0.0
    calibration_min_samples: int = 30
    calibration_max_samples: int = 200
    declination_url: str = "https://www.ngdc.noaa.gov/geomag-web/calculators/calculateDeclination"
    declination_api_key: str = ""
    declination_timeout_s: float = 10.0


@dataclass
class GpsMonitorConfig:
    stale_limit_precise_ms: float = 6000.0
    stale_limit_normal_ms: float = 10000.0
    stale_limit_eco_ms: float = 15000.0
    grace_multiplier: float = 1.5
    grace_period_ms: float = 15000.0
    restart_grace_ms: float = 8000.0
    recovery_grace_ms: float = 7000.0
    min_restart_gap_ms: float = 15000.0
    max_stale_cycle_ms: float = 90000.0
    tick_interval_ms: float = 2500.0
    moved_epsilon_deg: float = 0.000005

    def stale_limit_ms(self, mode: str) -> float:
        """Base staleness threshold for an accuracy mode (precise/normal/eco)."""
        limits = {
            "precise": self.stale_limit_precise_ms,
            "normal": self.stale_limit_normal_ms,
            "eco": self.stale_limit_eco_ms,
        }
        if mode not in limits:
            raise ValueError(f"Unknown accuracy mode: {mode!r}")
        return float(limits[mode])


@dataclass
class StorageConfig:
    base_dir: str = "data/store"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = ""


@dataclass
class AppConfig:
    triangulation: TriangulationConfig = field(default_factory=TriangulationConfig)
    compass: CompassConfig = field(default_factory=CompassConfig)
    gps: GpsMonitorConfig = field(default_factory=GpsMonitorConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _coerce(value: Any, like: Any) -> Any:
    """Cast `value` to the type of the dataclass default `like`."""
    if isinstance(like, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if isinstance(like, int):
        return int(value)
    if isinstance(like, float):
        return float(value)
    return str(value)


def _apply_section(section: Any, raw: Optional[Dict[str, Any]]) -> None:
    if not raw:
        return
    for f in fields(section):
        if f.name in raw:
            setattr(section, f.name, _coerce(raw[f.name], getattr(section, f.name)))


def _apply_env_overrides(config: AppConfig, environ: Optional[Dict[str, str]] = None) -> None:
    """Override config values from SMOKELOC_<SECTION>_<KEY> environment variables."""
    env = os.environ if environ is None else environ
    for sec in fields(config):
        section = getattr(config, sec.name)
        for f in fields(section):
            key = f"SMOKELOC_{sec.name}_{f.name}".upper()
            if key in env:
                setattr(section, f.name, _coerce(env[key], getattr(section, f.name)))


def load_config(path: str | Path | None = None, environ: Optional[Dict[str, str]] = None) -> AppConfig:
    """Load configuration from YAML file (defaults if absent) + environment overrides."""
    config = AppConfig()
    config_path = Path(path) if path is not None else Path("config/params.yaml")

    if config_path.exists():
        with open(config_path, "r") as f:
            raw = yaml.safe_load(f) or {}
        for sec in fields(config):
            _apply_section(getattr(config, sec.name), raw.get(sec.name))

    # Environment overrides always win
    _apply_env_overrides(config, environ)
    return config

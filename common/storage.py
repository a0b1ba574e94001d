from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from common.config import StorageConfig
from common.types import CalibrationOffsets, Observation


log = logging.getLogger(__name__)

OBSERVATIONS_KEY = "observations"
COMPASS_OFFSETS_KEY = "compass_offsets"


class JsonStore:
    """
    Key-value store backed by one JSON document per key:

        base_dir/
          ├─ observations.json
          └─ compass_offsets.json

    Load-at-start / save-on-change only; there is no schema versioning.
    """
    def __init__(self, base_dir: str = "data/store"):
        self.base_dir = Path(base_dir)

    @classmethod
    def from_config(cls, cfg: StorageConfig) -> "JsonStore":
        return cls(cfg.base_dir)

    # -------- public API --------

    def get(self, key: str, default: Any = None) -> Any:
        p = self._path(key)
        if not p.exists():
            return default
        try:
            return json.loads(p.read_text())
        except (OSError, ValueError) as e:
            log.warning("Unreadable store entry %s: %s", key, e)
            return default

    def set(self, key: str, value: Any) -> None:
        p = self._path(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        # write-then-rename so a crash never leaves half a document
        tmp = p.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(value, ensure_ascii=False))
        os.replace(tmp, p)

    def delete(self, key: str) -> None:
        p = self._path(key)
        if p.exists():
            p.unlink()

    def keys(self) -> List[str]:
        if not self.base_dir.exists():
            return []
        return sorted(p.stem for p in self.base_dir.glob("*.json"))

    # -------- internals --------

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"Invalid store key: {key!r}")
        return self.base_dir / f"{key}.json"


# -------------------------
# Typed helpers used by the host
# -------------------------
def save_observations(store: JsonStore, observations: List[Observation]) -> None:
    store.set(OBSERVATIONS_KEY, [o.to_record() for o in observations])
    log.info("Observations saved", extra={"extra": {"count": len(observations)}})


def load_observations(store: JsonStore) -> List[Observation]:
    """Return stored observations; malformed records are skipped."""
    out: List[Observation] = []
    for rec in store.get(OBSERVATIONS_KEY, []) or []:
        try:
            out.append(Observation.from_record(rec))
        except (KeyError, TypeError, ValueError) as e:
            log.warning("Skipping malformed observation record: %s", e)
    return out


def save_offsets(store: JsonStore, offsets: CalibrationOffsets) -> None:
    store.set(COMPASS_OFFSETS_KEY, offsets.to_record())


def load_offsets(store: JsonStore) -> CalibrationOffsets:
    """Stored calibration, or zero offsets when none was saved."""
    rec: Optional[Dict[str, Any]] = store.get(COMPASS_OFFSETS_KEY)
    if not rec:
        return CalibrationOffsets.zero()
    try:
        return CalibrationOffsets.from_record(rec)
    except (TypeError, ValueError) as e:
        log.warning("Ignoring malformed compass offsets: %s", e)
        return CalibrationOffsets.zero()

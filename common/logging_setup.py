from __future__ import annotations

import logging
import os
import sys
import json
import time
from typing import Optional


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line:
      { "t": <epoch ms>, "lvl": "WARNING", "name": "fixhealth.monitor", "msg": "...", "extra": {...} }
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "t": int(time.time() * 1000),
            "lvl": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        # Structured fields travel as extra={"extra": {...}}
        if isinstance(getattr(record, "extra", None), dict):
            payload["extra"] = record.extra  # type: ignore[attr-defined]
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    lvl = logging.getLevelName(name)
    return lvl if isinstance(lvl, int) else logging.INFO


def setup_logging(level: Optional[str] = None, file: Optional[str] = None, force: bool = False) -> None:
    """
    Route the root logger to JSON on stdout, plus `file` when given.
    Level: `level` arg, then env LOG_LEVEL, then INFO.
    Runs once unless `force` is set.
    """
    root = logging.getLogger()
    if getattr(root, "_smokeloc_configured", False) and not force:
        return

    formatter = JsonFormatter()
    handlers: list = [logging.StreamHandler(sys.stdout)]
    if file:
        os.makedirs(os.path.dirname(os.path.abspath(file)), exist_ok=True)
        handlers.append(logging.FileHandler(file))

    root.handlers.clear()
    for h in handlers:
        h.setFormatter(formatter)
        root.addHandler(h)
    root.setLevel(_resolve_level(level))
    root._smokeloc_configured = True  # type: ignore[attr-defined]


def get_logger(name: str) -> logging.Logger:
    """Module logger; configures the root on first use."""
    setup_logging()
    return logging.getLogger(name)


def setup_from_config(cfg) -> None:
    """Apply a LoggingConfig section (replaces any earlier setup)."""
    setup_logging(level=cfg.level, file=cfg.file or None, force=True)

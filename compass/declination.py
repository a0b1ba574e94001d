"""
Magnetic declination providers.

- OfflineDeclinationProvider: coarse deterministic approximation, no I/O.
- RemoteDeclinationProvider: NOAA geomagnetic calculator (WMM) over HTTPS,
  falling back to the offline value on any failure. No retries.
- DeclinationLookup: runs a provider on a daemon thread and keeps the value
  for the owning thread to collect, so heading updates never wait on the
  network and the fusion is only ever touched by its owner.

Usage (on the thread that owns `fusion`):
    lookup = DeclinationLookup(RemoteDeclinationProvider(cfg.compass))
    lookup.request(lat, lon)
    ...
    value = lookup.poll()
    if value is not None:
        fusion.set_declination(value)
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

import requests

from common.config import CompassConfig


log = logging.getLogger(__name__)


class OfflineDeclinationProvider:
    """declination ≈ 0.2·(lon − 100) − 0.02·lat (degrees, east positive)."""

    def declination(self, lat: float, lon: float) -> float:
        return 0.2 * (lon - 100.0) - 0.02 * lat


class RemoteDeclinationProvider:
    def __init__(self, config: Optional[CompassConfig] = None, session: Optional[requests.Session] = None,
                 fallback: Optional[OfflineDeclinationProvider] = None):
        """
        Params:
            config: compass section (URL, API key, timeout)
            session: optional requests.Session for connection reuse
            fallback: provider used when the service cannot answer
        """
        self.config = config or CompassConfig()
        self.session = session or requests.Session()
        self.fallback = fallback or OfflineDeclinationProvider()

    def build_params(self, lat: float, lon: float) -> Dict[str, Any]:
        params: Dict[str, Any] = {"lat": lat, "lon": lon, "resultFormat": "json"}
        if self.config.declination_api_key:
            params["key"] = self.config.declination_api_key
        return params

    def fetch(self, lat: float, lon: float) -> Optional[float]:
        """Declination from the service, or None when it cannot be obtained."""
        try:
            r = self.session.get(
                self.config.declination_url,
                params=self.build_params(lat, lon),
                timeout=self.config.declination_timeout_s,
            )
            if r.status_code != 200:
                log.warning("Declination service returned %s", r.status_code)
                return None
            text = r.text
            # the service answers some errors with an HTML page and status 200
            if "<" in text or "html" in text.lower():
                log.warning("Declination service returned HTML, not JSON")
                return None
            return self._parse(r.json())
        except (requests.RequestException, ValueError) as e:
            log.warning("Declination lookup failed: %s", e)
            return None

    @staticmethod
    def _parse(data: Dict[str, Any]) -> Optional[float]:
        result = data.get("result") if isinstance(data, dict) else None
        if isinstance(result, list):
            result = result[0] if result else None
        if not isinstance(result, dict) or result.get("declination") is None:
            log.warning("Declination payload has no result.declination")
            return None
        return float(result["declination"])

    def declination(self, lat: float, lon: float) -> float:
        value = self.fetch(lat, lon)
        if value is None:
            value = self.fallback.declination(lat, lon)
            log.info("Using offline declination", extra={"extra": {"lat": lat, "lon": lon, "declination": value}})
        return value


class DeclinationLookup:
    """
    Declination query on a daemon worker thread.

    The worker only stores the value; the thread that owns the CompassFusion
    collects it with poll(). `callback`, when given, also runs on the worker
    thread and must only hand the value over (e.g. queue.put), never touch
    the fusion itself.
    """

    def __init__(self, provider, callback: Optional[Callable[[float], None]] = None):
        self.provider = provider
        self.callback = callback
        self._lock = threading.Lock()
        self._pending: Optional[float] = None
        self._thread: Optional[threading.Thread] = None

    def _run(self, lat: float, lon: float) -> None:
        try:
            value = self.provider.declination(lat, lon)
            with self._lock:
                self._pending = value
            if self.callback is not None:
                self.callback(value)
        except Exception:
            log.exception("Declination lookup worker failed")

    def request(self, lat: float, lon: float) -> threading.Thread:
        t = threading.Thread(target=self._run, args=(lat, lon), daemon=True, name="declination-lookup")
        t.start()
        self._thread = t
        return t

    def poll(self) -> Optional[float]:
        """Latest value not yet collected, or None."""
        with self._lock:
            value, self._pending = self._pending, None
        return value

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

"""
Unit tests for declination providers
"""

import os
import sys
import threading
from unittest.mock import Mock

import pytest
import requests

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.config import CompassConfig
from compass.declination import DeclinationLookup, OfflineDeclinationProvider, RemoteDeclinationProvider
from compass.fusion import CompassFusion

LAT, LON = -15.8, -47.9
OFFLINE = 0.2 * (LON - 100.0) - 0.02 * LAT


def _response(status=200, text="", payload=None):
    r = Mock()
    r.status_code = status
    r.text = text
    r.json.return_value = payload
    return r


def _provider(response=None, side_effect=None, **cfg):
    session = Mock()
    if side_effect is not None:
        session.get.side_effect = side_effect
    else:
        session.get.return_value = response
    return RemoteDeclinationProvider(CompassConfig(**cfg), session=session), session


class TestOfflineDeclinationProvider:
    def test_formula(self):
        assert OfflineDeclinationProvider().declination(LAT, LON) == pytest.approx(OFFLINE)

    def test_reference_point(self):
        assert OfflineDeclinationProvider().declination(0.0, 100.0) == pytest.approx(0.0)


class TestRemoteDeclinationProvider:
    """Cases for the NOAA-backed provider and its fallback"""

    def test_success_list_payload(self):
        payload = {"result": [{"declination": -21.5, "date": 2026.8}]}
        provider, session = _provider(_response(text='{"result": [{"declination": -21.5}]}', payload=payload))

        assert provider.declination(LAT, LON) == pytest.approx(-21.5)

        _, kwargs = session.get.call_args
        assert kwargs["params"]["lat"] == LAT
        assert kwargs["params"]["lon"] == LON
        assert kwargs["params"]["resultFormat"] == "json"
        assert "key" not in kwargs["params"]
        assert kwargs["timeout"] == 10.0

    def test_success_dict_payload(self):
        provider, _ = _provider(_response(text='{"result": {"declination": 3.25}}',
                                          payload={"result": {"declination": 3.25}}))
        assert provider.fetch(LAT, LON) == pytest.approx(3.25)

    def test_api_key_and_timeout_from_config(self):
        provider, session = _provider(_response(text="{}", payload={}),
                                      declination_api_key="abc", declination_timeout_s=2.5)
        provider.declination(LAT, LON)
        _, kwargs = session.get.call_args
        assert kwargs["params"]["key"] == "abc"
        assert kwargs["timeout"] == 2.5

    def test_html_response_falls_back(self):
        provider, _ = _provider(_response(text="<html><body>Service unavailable</body></html>"))
        assert provider.fetch(LAT, LON) is None
        assert provider.declination(LAT, LON) == pytest.approx(OFFLINE)

    def test_http_error_falls_back(self):
        provider, _ = _provider(_response(status=503, text="busy"))
        assert provider.declination(LAT, LON) == pytest.approx(OFFLINE)

    def test_network_error_falls_back(self):
        provider, session = _provider(side_effect=requests.ConnectionError("unreachable"))
        assert provider.declination(LAT, LON) == pytest.approx(OFFLINE)
        assert session.get.call_count == 1  # no retries

    def test_missing_field_falls_back(self):
        provider, _ = _provider(_response(text='{"result": []}', payload={"result": []}))
        assert provider.declination(LAT, LON) == pytest.approx(OFFLINE)

    def test_invalid_json_falls_back(self):
        r = _response(text="not json")
        r.json.side_effect = ValueError("bad json")
        provider, _ = _provider(r)
        assert provider.declination(LAT, LON) == pytest.approx(OFFLINE)


class TestDeclinationLookup:
    def test_value_delivered_to_callback(self):
        got = []
        done = threading.Event()

        def cb(v):
            got.append(v)
            done.set()

        lookup = DeclinationLookup(OfflineDeclinationProvider(), cb)
        t = lookup.request(LAT, LON)

        assert t.daemon is True
        assert done.wait(timeout=5.0)
        lookup.join(timeout=5.0)
        assert got == [pytest.approx(OFFLINE)]

    def test_callback_failure_stays_in_worker(self):
        def cb(_):
            raise RuntimeError("host gone")

        lookup = DeclinationLookup(OfflineDeclinationProvider(), cb)
        t = lookup.request(LAT, LON)
        lookup.join(timeout=5.0)
        assert not t.is_alive()

    def test_owner_collects_value_with_poll(self):
        fusion = CompassFusion(CompassConfig())
        lookup = DeclinationLookup(OfflineDeclinationProvider())
        assert lookup.poll() is None

        lookup.request(LAT, LON)
        lookup.join(timeout=5.0)

        value = lookup.poll()
        assert value == pytest.approx(OFFLINE)
        assert fusion.declination_deg == 0.0  # worker never touched the fusion
        fusion.set_declination(value)
        assert fusion.declination_deg == pytest.approx(OFFLINE)
        assert lookup.poll() is None

    def test_poll_keeps_latest_value(self):
        provider = Mock()
        provider.declination.side_effect = [-21.0, -22.5]
        lookup = DeclinationLookup(provider)
        for _ in range(2):
            lookup.request(LAT, LON)
            lookup.join(timeout=5.0)
        assert lookup.poll() == pytest.approx(-22.5)

    def test_failed_provider_leaves_nothing_to_collect(self):
        provider = Mock()
        provider.declination.side_effect = RuntimeError("boom")
        lookup = DeclinationLookup(provider)
        lookup.request(LAT, LON)
        lookup.join(timeout=5.0)
        assert lookup.poll() is None

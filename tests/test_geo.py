# tests/test_geo.py
import asyncio
import random

import httpx
import pytest

from hub.config import Settings
from hub.geo import (
    Geocoder,
    estimate_distance,
    format_distance,
    full_address,
    haversine_km,
    initials,
    parse_distance_filter,
    should_show_distance,
    whatsapp_url,
)


def test_haversine():
    assert haversine_km(0, 0, 0, 1) == pytest.approx(111.19, abs=0.01)
    assert haversine_km(-23.5, -46.6, -23.5, -46.6) == 0
    # zero is a real coordinate, only None means missing
    assert haversine_km(0, 0, 0, 0) == 0
    assert haversine_km(0, 0, None, 1) is None


def test_format_distance():
    assert format_distance(0.85) == "850m"
    assert format_distance(12.4) == "12km"
    assert format_distance(None) is None


def test_parse_distance_filter():
    assert parse_distance_filter("50km") == 50
    assert parse_distance_filter(" 25 KM ") == 25
    assert parse_distance_filter("10") == 10
    assert parse_distance_filter(30) == 30
    with pytest.raises(ValueError):
        parse_distance_filter("far")


def test_should_show_distance():
    assert should_show_distance(99.9)
    assert should_show_distance(100)
    assert not should_show_distance(100.1)
    assert not should_show_distance(None)


def test_address_helpers():
    assert full_address({"address": "Rua A, 1", "cidade": "Santos", "estado": "SP"}) == "Rua A, 1, Santos, SP, Brasil"
    assert full_address({}) == "Brasil"
    assert initials("Empório Campinas") == "EC"
    assert initials("") == "XX"
    assert whatsapp_url("(11) 98765-4321") == "https://wa.me/11987654321"
    assert whatsapp_url(None) is None


def test_estimate_distance_ranges():
    rng = random.Random(1)
    record = {"cidade": "Santos", "estado": "SP"}
    for _ in range(20):
        assert 500 <= estimate_distance(record, None, None, rng) <= 1000
        assert 0 <= estimate_distance(record, "SP", "santos", rng) <= 10
        assert 20 <= estimate_distance(record, "SP", "Campinas", rng) <= 100
        assert 150 <= estimate_distance(record, "RJ", "Niterói", rng) <= 500


def test_estimate_distance_is_reproducible_with_seed():
    record = {"cidade": "Recife", "estado": "PE"}
    a = estimate_distance(record, "SP", "São Paulo", random.Random(3))
    b = estimate_distance(record, "SP", "São Paulo", random.Random(3))
    assert a == b


def test_blank_search_does_not_call_out():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=[])

    geocoder = Geocoder(Settings(geocode_interval=0), transport=httpx.MockTransport(handler))
    assert asyncio.run(geocoder.search("   ")) == []
    assert calls == []


def test_search_sends_country_and_user_agent():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        seen["agent"] = request.headers["user-agent"]
        return httpx.Response(200, json=[])

    settings = Settings(geocode_interval=0, geocoder_user_agent="hub-tests")
    asyncio.run(Geocoder(settings, transport=httpx.MockTransport(handler)).search("Campinas"))
    assert seen["params"]["countrycodes"] == "br"
    assert seen["params"]["q"] == "Campinas"
    assert seen["agent"] == "hub-tests"


def test_geocode_all_reports_progress():
    def handler(request):
        if "Nowhere" in request.url.params["q"]:
            return httpx.Response(200, json=[])
        return httpx.Response(200, json=[{"display_name": "x", "lat": "-22.9", "lon": "-47.06"}])

    records = [
        {"id": 1, "address": "Rua A", "cidade": "Campinas", "estado": "SP"},
        {"id": 2, "address": "Nowhere"},
        {"id": 3},
    ]
    progress = []
    geocoder = Geocoder(Settings(geocode_interval=0), transport=httpx.MockTransport(handler))
    placed, status = asyncio.run(geocoder.geocode_all(records, on_progress=progress.append))

    assert [r["id"] for r in placed] == [1]
    assert (placed[0]["lat"], placed[0]["lng"]) == (-22.9, -47.06)
    assert (status.total, status.processed, status.succeeded) == (3, 3, 1)
    assert [p.processed for p in progress] == [1, 2, 3]


def test_geocode_logs_and_swallows_http_errors():
    geocoder = Geocoder(
        Settings(geocode_interval=0), transport=httpx.MockTransport(lambda request: httpx.Response(500))
    )
    assert asyncio.run(geocoder.geocode("Rua A, Santos")) is None


def test_geocode_all_waits_before_each_request(monkeypatch):
    sleeps = []
    real_sleep = asyncio.sleep

    async def fake_sleep(seconds):
        sleeps.append(seconds)
        await real_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)

    def handler(request):
        return httpx.Response(200, json=[{"display_name": "x", "lat": "-22.9", "lon": "-47.06"}])

    records = [{"address": "Rua A"}, {"address": "Rua B"}, {}]
    geocoder = Geocoder(Settings(geocode_interval=1.5), transport=httpx.MockTransport(handler))
    placed, status = asyncio.run(geocoder.geocode_all(records))
    assert sleeps == [1.5, 1.5]
    assert status.succeeded == 2

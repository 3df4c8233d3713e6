"""Tests for location resolution and reverse geocoding."""

import asyncio

import httpx
import pytest

from locl_api.services.location import (
    Accuracy,
    GeocodingError,
    LocationService,
    NominatimGeocoder,
    ReportedPosition,
    coordinates_label,
)

from conftest import nominatim_reply


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class CountingTransport(httpx.MockTransport):
    def __init__(self, handler):
        self.requests = []

        def record(request):
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


class SlowGeocoder:
    async def reverse(self, latitude, longitude):
        await asyncio.sleep(1)
        return {"city": "Too late"}


def run(coro):
    return asyncio.run(coro)


def test_parse_us_address():
    parsed = NominatimGeocoder.parse(nominatim_reply(None).json())
    assert parsed["city"] == "Mountain View"
    assert parsed["region"] == "California"
    assert parsed["postcode"] == "94041"
    assert parsed["address"] == "Castro Street, Mountain View, California, 94041, United States"
    assert parsed["is_complete"] is True


def test_parse_appends_foreign_country():
    parsed = NominatimGeocoder.parse({"address": {"town": "Annecy", "country": "France"}})
    assert parsed["city"] == "Annecy, France"


def test_parse_without_address():
    assert NominatimGeocoder.parse({"error": "Unable to geocode"}) is None


def test_reverse_sends_query_and_caches():
    transport = CountingTransport(nominatim_reply)
    clock = FakeClock()
    geocoder = NominatimGeocoder(base_url="https://geo.test", transport=transport, clock=clock)

    first = run(geocoder.reverse(37.386101, -122.083901))
    second = run(geocoder.reverse(37.386102, -122.083902))

    assert first == second
    assert len(transport.requests) == 1
    request = transport.requests[0]
    assert request.url.path == "/reverse"
    assert request.url.params["format"] == "json"
    assert request.url.params["zoom"] == "18"
    assert request.headers["User-Agent"]

    clock.now += geocoder.cache_seconds + 1
    run(geocoder.reverse(37.386101, -122.083901))
    assert len(transport.requests) == 2


def test_reverse_http_error_raises():
    geocoder = NominatimGeocoder(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
    with pytest.raises(GeocodingError):
        run(geocoder.reverse(1, 2))


def test_resolve_with_place_name():
    service = LocationService(geocoder=NominatimGeocoder(transport=httpx.MockTransport(nominatim_reply)))

    location = run(service.resolve(ReportedPosition(37.3861, -122.0839)))

    assert location.city == "Mountain View"
    assert (location.latitude, location.longitude) == (37.3861, -122.0839)
    assert location.is_complete is True
    assert location.to_dict()["country"] == "United States"


def test_permission_denied_returns_none():
    service = LocationService(geocoder=NominatimGeocoder(transport=httpx.MockTransport(nominatim_reply)))
    assert run(service.resolve(ReportedPosition(1, 2, permission_granted=False))) is None


def test_no_fix_returns_none():
    service = LocationService(geocoder=NominatimGeocoder(transport=httpx.MockTransport(nominatim_reply)))
    assert run(service.resolve(ReportedPosition(None, None))) is None


def test_balanced_fix_accepted_after_high_fails():
    service = LocationService(geocoder=NominatimGeocoder(transport=httpx.MockTransport(nominatim_reply)))
    location = run(service.resolve(ReportedPosition(37.3861, -122.0839, accuracy=Accuracy.BALANCED)))
    assert location is not None
    assert location.latitude == 37.3861


def test_geocoder_failure_uses_generic_label():
    failing = NominatimGeocoder(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
    service = LocationService(geocoder=failing)

    location = run(service.resolve(ReportedPosition(10, 20)))

    assert location.city == "Nearby"
    assert location.is_complete is True


def test_geocoder_timeout_uses_coordinates_label():
    service = LocationService(geocoder=SlowGeocoder(), resolve_timeout=0.01)

    location = run(service.resolve(ReportedPosition(10.123456, 20.654321)))

    assert location.city == coordinates_label(10.123456, 20.654321) == "Location (10.1235, 20.6543)"
    assert location.region is None


def test_cache_expires_after_five_minutes():
    transport = CountingTransport(nominatim_reply)
    clock = FakeClock()
    geocoder = NominatimGeocoder(transport=transport, cache_seconds=0)
    service = LocationService(geocoder=geocoder, clock=clock)

    first = run(service.resolve(ReportedPosition(37.3861, -122.0839), cache_key="u1"))
    moved = ReportedPosition(37.4041, -122.0839)

    clock.now += 299
    assert run(service.resolve(moved, cache_key="u1")) is first

    clock.now += 2
    refreshed = run(service.resolve(moved, cache_key="u1"))
    assert refreshed is not first
    assert refreshed.latitude == 37.4041
    assert run(service.resolve(moved, cache_key="u1", use_cache=False)).latitude == 37.4041

"""Tests for location helpers."""

import pytest
import requests

from consultai import location


class FakeHttpResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def json(self):
        return self.payload


def refuse(*args, **kwargs):
    raise requests.ConnectionError("offline")


class TestCalculateDistance:
    def test_london_to_paris(self):
        assert location.calculate_distance(51.5074, -0.1278, 48.8566, 2.3522) == pytest.approx(343.5, abs=1)

    def test_same_point_is_zero(self):
        assert location.calculate_distance(10, 20, 10, 20) == 0


class TestReverseGeocode:
    def test_display_name(self, monkeypatch):
        monkeypatch.setattr(location.requests, "get",
                            lambda *a, **kw: FakeHttpResponse({"display_name": "Baker Street, London"}))
        assert location.reverse_geocode(51.52, -0.15) == "Baker Street, London"

    def test_no_display_name_uses_coordinates(self, monkeypatch):
        monkeypatch.setattr(location.requests, "get", lambda *a, **kw: FakeHttpResponse({}))
        assert location.reverse_geocode(1.5, 2.25) == "1.500000, 2.250000"

    def test_network_failure(self, monkeypatch):
        monkeypatch.setattr(location.requests, "get", refuse)
        assert location.reverse_geocode(1.5, 2.25) == "Location not found"

    def test_http_error(self, monkeypatch):
        monkeypatch.setattr(location.requests, "get", lambda *a, **kw: FakeHttpResponse({}, status=503))
        assert location.reverse_geocode(1.5, 2.25) == "Location not found"


class TestNearbyFacilities:
    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            location.find_nearby_facilities(0, 0, "spa")

    def test_without_api_key_returns_sample(self, monkeypatch):
        monkeypatch.setattr(location, "GOOGLE_PLACES_API_KEY", None)
        facilities = location.find_nearby_facilities(0, 0, "pharmacy")
        assert facilities[0]["name"] == "Sample pharmacy"

    def test_places_results_get_distances(self, monkeypatch):
        monkeypatch.setattr(location, "GOOGLE_PLACES_API_KEY", "test-key")
        payload = {"results": [{
            "name": "City Clinic",
            "vicinity": "1 High St",
            "geometry": {"location": {"lat": 51.5174, "lng": -0.1278}},
            "opening_hours": {"open_now": False},
            "rating": 4.2,
            "place_id": "abc",
        }]}
        monkeypatch.setattr(location.requests, "get", lambda *a, **kw: FakeHttpResponse(payload))

        facilities = location.find_nearby_facilities(51.5074, -0.1278, "clinic")
        assert facilities[0]["name"] == "City Clinic"
        assert facilities[0]["distance"] == "1.1 km"
        assert facilities[0]["open_now"] is False

    def test_places_failure_returns_sample(self, monkeypatch):
        monkeypatch.setattr(location, "GOOGLE_PLACES_API_KEY", "test-key")
        monkeypatch.setattr(location.requests, "get", refuse)
        assert location.find_nearby_facilities(0, 0, "hospital")[0]["name"] == "Sample hospital"


def test_static_map_url_has_marker():
    url = location.static_map_url(51.5, -0.1)
    assert url.startswith("https://www.openstreetmap.org/export/embed.html")
    assert "marker=51.5,-0.1" in url

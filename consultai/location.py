"""Location helpers — reverse geocoding, nearby facilities and distances."""

import math
import os

import requests

GOOGLE_PLACES_API_KEY = os.environ.get("GOOGLE_PLACES_API_KEY")
NOMINATIM_URL = "https://nominatim.openstreetmap.org/reverse"
PLACES_URL = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
USER_AGENT = "ConsultAI Medical Assistant"
EARTH_RADIUS_KM = 6371

FACILITY_TYPES = ("pharmacy", "clinic", "hospital")


def coordinates_label(latitude: float, longitude: float) -> str:
    return f"{latitude:.6f}, {longitude:.6f}"


def reverse_geocode(latitude: float, longitude: float) -> str:
    try:
        response = requests.get(
            NOMINATIM_URL,
            params={
                "format": "json",
                "lat": latitude,
                "lon": longitude,
                "zoom": 18,
                "addressdetails": 1,
            },
            headers={"User-Agent": USER_AGENT},
            timeout=10,
        )
        response.raise_for_status()
        return response.json().get("display_name") or coordinates_label(latitude, longitude)
    except (requests.RequestException, ValueError) as e:
        print(f"[Location] Reverse geocoding failed: {e}")
        return "Location not found"


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres (haversine)."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _sample_facility(facility_type: str) -> list[dict]:
    return [{
        "name": f"Sample {facility_type}",
        "address": "123 Medical St",
        "distance": "0.5 km",
        "open_now": True,
    }]


def find_nearby_facilities(
    latitude: float,
    longitude: float,
    facility_type: str,
    radius: int = 5000,
) -> list[dict]:
    if facility_type not in FACILITY_TYPES:
        raise ValueError(f"Unknown facility type: {facility_type}")
    if not GOOGLE_PLACES_API_KEY:
        return _sample_facility(facility_type)

    try:
        response = requests.get(
            PLACES_URL,
            params={
                "location": f"{latitude},{longitude}",
                "radius": radius,
                "type": facility_type,
                "key": GOOGLE_PLACES_API_KEY,
            },
            timeout=10,
        )
        response.raise_for_status()
        places = response.json().get("results", [])
    except (requests.RequestException, ValueError) as e:
        print(f"[Location] Nearby search failed: {e}")
        return _sample_facility(facility_type)

    facilities = []
    for place in places:
        geo = place.get("geometry", {}).get("location", {})
        distance = calculate_distance(latitude, longitude, geo.get("lat", latitude), geo.get("lng", longitude))
        facilities.append({
            "name": place.get("name"),
            "address": place.get("vicinity"),
            "distance": f"{distance:.1f} km",
            "open_now": place.get("opening_hours", {}).get("open_now"),
            "rating": place.get("rating"),
            "place_id": place.get("place_id"),
        })
    return facilities


def static_map_url(latitude: float, longitude: float) -> str:
    return (
        "https://www.openstreetmap.org/export/embed.html?bbox="
        f"{longitude - 0.01},{latitude - 0.01},{longitude + 0.01},{latitude + 0.01}"
        f"&layer=mapnik&marker={latitude},{longitude}"
    )

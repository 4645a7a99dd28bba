# hub/geo.py
import asyncio
import math
import random
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote

import httpx
from loguru import logger

from .config import Settings, get_settings
from .models import GeocodingStatus, Place

EARTH_RADIUS_KM = 6371.0
CURRENT_LOCATION = "Localização atual"
COUNTRY_NAME = "Brasil"


def haversine_km(lat1, lng1, lat2, lng2) -> Optional[float]:
    """Great-circle distance in km, or None when a coordinate is missing."""
    if lat1 is None or lng1 is None or lat2 is None or lng2 is None:
        return None
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def format_distance(km: Optional[float]) -> Optional[str]:
    if km is None:
        return None
    if km < 1:
        return f"{round(km * 1000)}m"
    return f"{round(km)}km"


def parse_distance_filter(value) -> int:
    """'50km' -> 50"""
    if isinstance(value, (int, float)):
        return int(value)
    match = re.match(r"^\s*(\d+)\s*(km)?\s*$", str(value), re.IGNORECASE)
    if not match:
        raise ValueError(f"invalid distance filter: {value!r}")
    return int(match.group(1))


def should_show_distance(km: Optional[float], limit: float = 100) -> bool:
    return km is not None and km <= limit


def full_address(record: Dict[str, Any]) -> str:
    parts = [record.get("address"), record.get("cidade"), record.get("estado"), COUNTRY_NAME]
    return ", ".join(p for p in parts if p)


def initials(name: Optional[str]) -> str:
    if not name:
        return "XX"
    return "".join(word[0] for word in name.split()[:2] if word)


def whatsapp_url(phone: Optional[str]) -> Optional[str]:
    digits = re.sub(r"\D", "", phone or "")
    return f"https://wa.me/{digits}" if digits else None


def maps_url(address: Optional[str]) -> Optional[str]:
    if not address:
        return None
    return f"https://www.google.com/maps/search/?api=1&query={quote(address)}"


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.strip().lower() == b.strip().lower()


def estimate_distance(
    record: Dict[str, Any],
    user_state: Optional[str],
    user_city: Optional[str],
    rng: Optional[random.Random] = None,
) -> float:
    """Rough distance for a record without coordinates, from city/state proximity."""
    rng = rng or random
    if not user_state and not user_city:
        return 500 + rng.random() * 500
    if _same(record.get("cidade"), user_city):
        return rng.random() * 10
    if _same(record.get("estado"), user_state):
        return 20 + rng.random() * 80
    return 150 + rng.random() * 350


# ---------------------------
# Nominatim client
# ---------------------------
class Geocoder:
    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.geocoder_url.rstrip("/"),
            timeout=self.settings.geocoder_timeout,
            headers={"User-Agent": self.settings.geocoder_user_agent},
            transport=self.transport,
        )

    @staticmethod
    def _place(item: Dict[str, Any]) -> Place:
        address = item.get("address") or {}
        iso = address.get("ISO3166-2-lvl4") or ""
        return Place(
            display_name=item.get("display_name", ""),
            lat=float(item["lat"]),
            lng=float(item["lon"]),
            city=address.get("city") or address.get("town") or address.get("village") or address.get("municipality"),
            state=address.get("state"),
            state_code=iso.split("-")[-1] if "-" in iso else None,
        )

    async def search(self, query: str, limit: int = 5) -> List[Place]:
        if not query or not query.strip():
            return []
        params = {
            "format": "json",
            "q": query,
            "countrycodes": self.settings.geocoder_country,
            "limit": limit,
            "addressdetails": 1,
        }
        async with self._client() as client:
            res = await client.get("/search", params=params)
            res.raise_for_status()
            return [self._place(item) for item in res.json()]

    async def geocode(self, address: str) -> Optional[Tuple[float, float]]:
        try:
            places = await self.search(address, limit=1)
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.error(f"Geocoding failed for {address!r}: {e}")
            return None
        if not places:
            return None
        return places[0].lat, places[0].lng

    async def reverse(self, lat: float, lng: float) -> Place:
        params = {"format": "json", "lat": lat, "lon": lng, "zoom": 18, "addressdetails": 1}
        try:
            async with self._client() as client:
                res = await client.get("/reverse", params=params)
                res.raise_for_status()
                data = res.json()
            if "error" in data:
                raise ValueError(data["error"])
            place = self._place({**data, "lat": lat, "lon": lng})
            return place
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.warning(f"Reverse geocoding failed for ({lat}, {lng}): {e}")
            return Place(display_name=CURRENT_LOCATION, lat=lat, lng=lng)

    async def geocode_all(
        self,
        records: Iterable[Dict[str, Any]],
        on_progress: Optional[Callable[[GeocodingStatus], None]] = None,
    ) -> Tuple[List[Dict[str, Any]], GeocodingStatus]:
        """Geocode records one by one, waiting `geocode_interval` before each request."""
        records = list(records)
        status = GeocodingStatus(total=len(records))
        placed = []
        for record in records:
            address = record.get("full_address") or full_address(record)
            # the country suffix alone is not an address
            if not address or address == COUNTRY_NAME:
                status.processed += 1
                if on_progress:
                    on_progress(status.model_copy())
                continue

            await asyncio.sleep(self.settings.geocode_interval)
            coords = await self.geocode(address)
            status.processed += 1
            if coords:
                status.succeeded += 1
                placed.append({**record, "lat": coords[0], "lng": coords[1]})
            if on_progress:
                on_progress(status.model_copy())
        logger.info(f"Geocoded {status.succeeded}/{status.total} records")
        return placed, status


_geocoder: Optional[Geocoder] = None


def get_geocoder() -> Geocoder:
    global _geocoder
    if _geocoder is None:
        _geocoder = Geocoder()
    return _geocoder


def set_geocoder(geocoder: Optional[Geocoder]) -> None:
    global _geocoder
    _geocoder = geocoder

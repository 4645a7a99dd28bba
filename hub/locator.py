# hub/locator.py
import random
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from .baas import get_baas
from .config import get_settings
from .errors import BaaSError
from .geo import (
    Geocoder,
    estimate_distance,
    format_distance,
    full_address,
    get_geocoder,
    haversine_km,
    initials,
    maps_url,
    should_show_distance,
    whatsapp_url,
)
from .models import GeocodingStatus, Place

# Distributor locator: listing, distance filter and geocoding for the map view.

DISTRIBUTOR_COLUMNS = (
    "id, name, email, phone, address, instagram, logo_url, plan_id, cidade, estado, latitude, longitude"
)


async def get_distributors() -> List[Dict[str, Any]]:
    client = get_baas()

    plans_map: Dict[str, Dict[str, Any]] = {}
    try:
        plans = (await client.table("plans").select("*").execute()).data
        plans_map = {plan["id"]: plan for plan in plans}
    except BaaSError as e:
        logger.error(f"Failed to load plans: {e.message}")

    distributors = (await client.table("distribuidores").select(DISTRIBUTOR_COLUMNS).execute()).data
    for distributor in distributors:
        plan = plans_map.get(distributor.get("plan_id"))
        if plan:
            distributor["plan"] = plan
    logger.debug(f"Loaded {len(distributors)} distributors")
    return distributors


def _decorate(distributor: Dict[str, Any], km: float) -> Dict[str, Any]:
    address = full_address(distributor)
    return {
        **distributor,
        "distance_km": km,
        "distance": format_distance(km),
        "full_address": address,
        "show_distance": should_show_distance(km),
        "whatsapp_url": whatsapp_url(distributor.get("phone")),
        "maps_url": maps_url(address),
        "initials": initials(distributor.get("name")),
    }


def _user_state_for(distributor: Dict[str, Any], place: Place) -> Optional[str]:
    # records store either the UF code ("SP") or the state name
    estado = (distributor.get("estado") or "").strip()
    if len(estado) == 2:
        return place.state_code or place.state
    return place.state or place.state_code


async def get_distributors_by_distance(
    latitude: float,
    longitude: float,
    radius: Optional[float] = None,
    rng: Optional[random.Random] = None,
    geocoder: Optional[Geocoder] = None,
) -> List[Dict[str, Any]]:
    radius = radius if radius is not None else get_settings().default_radius_km
    geocoder = geocoder or get_geocoder()
    logger.info(f"Searching distributors within {radius}km of ({latitude}, {longitude})")

    distributors = await get_distributors()
    place = await geocoder.reverse(latitude, longitude)

    decorated = []
    for distributor in distributors:
        km = haversine_km(latitude, longitude, distributor.get("latitude"), distributor.get("longitude"))
        if km is None:
            km = estimate_distance(distributor, _user_state_for(distributor, place), place.city, rng)
        decorated.append(_decorate(distributor, km))

    nearby = []
    for distributor in decorated:
        if distributor["distance_km"] <= radius:
            nearby.append(distributor)
        else:
            logger.debug(f"Dropping {distributor['name']!r}: {distributor['distance_km']:.1f}km > {radius}km")
    logger.info(f"{len(nearby)} of {len(decorated)} distributors within {radius}km")
    return sorted(nearby, key=lambda d: d["distance_km"])


async def search_addresses(query: str, geocoder: Optional[Geocoder] = None) -> List[Place]:
    return await (geocoder or get_geocoder()).search(query)


async def locate(latitude: float, longitude: float, geocoder: Optional[Geocoder] = None) -> Place:
    return await (geocoder or get_geocoder()).reverse(latitude, longitude)


async def geocode_distributors(geocoder: Optional[Geocoder] = None) -> Tuple[List[Dict[str, Any]], GeocodingStatus]:
    distributors = await get_distributors()
    known, pending = [], []
    for distributor in distributors:
        if distributor.get("latitude") is not None and distributor.get("longitude") is not None:
            known.append({**distributor, "lat": distributor["latitude"], "lng": distributor["longitude"]})
        else:
            pending.append(distributor)

    placed, status = await (geocoder or get_geocoder()).geocode_all(pending)
    status.total += len(known)
    status.processed += len(known)
    status.succeeded += len(known)
    return known + placed, status

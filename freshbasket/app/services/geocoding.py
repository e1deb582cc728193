"""
Address geocoding through OpenStreetMap Nominatim.

Delivery addresses are turned into coordinates when an order is placed.
Any failure (network, empty result, open circuit) falls back to the store
location so an order is never rejected because the geocoder is down.
"""

import logging
from typing import Optional

import httpx

from freshbasket.app.core.config import settings
from freshbasket.app.core.reliability import CircuitOpenError, geocoder_circuit_breaker
from freshbasket.app.schemas.tracking import LocationPoint
from freshbasket.app.services.cache import CacheService

logger = logging.getLogger("freshbasket.geocoding")

CACHE_PREFIX = "geocode:"


def store_location() -> LocationPoint:
    """The configured store, used as pickup point and geocoding fallback."""
    return LocationPoint(
        latitude=settings.store_latitude,
        longitude=settings.store_longitude,
        address=settings.store_address,
    )


async def _query_nominatim(address: str) -> Optional[LocationPoint]:
    async with httpx.AsyncClient(timeout=settings.geocoder_timeout_seconds) as client:
        response = await client.get(
            settings.geocoder_url,
            params={
                "q": address,
                "format": "json",
                "limit": 1,
                "countrycodes": settings.geocoder_country_codes,
            },
            headers={"User-Agent": settings.geocoder_user_agent},
        )
        response.raise_for_status()
        results = response.json()

    if not results:
        return None

    first = results[0]
    return LocationPoint(
        latitude=float(first["lat"]),
        longitude=float(first["lon"]),
        address=first.get("display_name", address),
    )


async def geocode_address(address: str) -> LocationPoint:
    """
    Resolve an address to a coordinate.

    Returns:
        The geocoded point, or the store location carrying the original
        address when the lookup fails or finds nothing.
    """
    cache_key = f"{CACHE_PREFIX}{address.strip().lower()}"
    cached = await CacheService.get(cache_key)
    if cached is not None:
        return cached

    try:
        location = await geocoder_circuit_breaker.call(_query_nominatim, address)
    except CircuitOpenError:
        logger.warning("Geocoder circuit open, using store location for %r", address)
        location = None
    except (httpx.HTTPError, ValueError, KeyError) as e:
        logger.warning("Geocoding failed for %r: %s", address, e)
        location = None

    if location is None:
        fallback = store_location()
        fallback.address = address
        return fallback

    await CacheService.set(cache_key, location, ttl_seconds=settings.geocode_cache_ttl_seconds)
    return location

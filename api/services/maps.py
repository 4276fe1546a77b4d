"""
Geolocation Service — address geocoding for service drafts.

Lookup order:
  1. Redis cache (30-day TTL)
  2. Geoapify
  3. Nominatim (OpenStreetMap) as free fallback

The service is best effort: callers get coordinates or None and decide
what to tell the provider. There is no retry here.
"""

import hashlib
import logging

import httpx
import redis.asyncio as aioredis

from config import settings
from services.errors import GeolocationUnavailable

logger = logging.getLogger(__name__)

_redis: aioredis.Redis | None = None
_http: httpx.AsyncClient | None = None

GEOAPIFY_GEOCODE_URL = "https://api.geoapify.com/v1/geocode/search"
NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"

GEOCODE_CACHE_TTL = 30 * 24 * 3600


async def _get_redis() -> aioredis.Redis:
    global _redis
    if _redis is None:
        _redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis


async def _get_http() -> httpx.AsyncClient:
    global _http
    if _http is None:
        _http = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT)
    return _http


def _address_hash(address: str) -> str:
    """Normalize and hash an address for the cache key."""
    normalized = " ".join(address.strip().lower().split())
    return hashlib.sha256(normalized.encode()).hexdigest()[:16]


def _parse_lat_lng(text: str) -> tuple[float, float] | None:
    """Accept a raw 'lat,lng' pair as already geocoded."""
    if not text or "," not in text:
        return None
    parts = text.strip().split(",", 1)
    try:
        lat, lng = float(parts[0].strip()), float(parts[1].strip())
    except ValueError:
        return None
    if -90 <= lat <= 90 and -180 <= lng <= 180:
        return lat, lng
    return None


async def _geoapify(query: str) -> dict | None:
    http = await _get_http()
    resp = await http.get(
        GEOAPIFY_GEOCODE_URL,
        params={"text": query, "apiKey": settings.GEOAPIFY_API_KEY},
    )
    features = resp.json().get("features") or []
    if not features:
        return None
    props = features[0].get("properties", {}) or {}
    if props.get("lat") is None or props.get("lon") is None:
        return None
    return {
        "lat": float(props["lat"]),
        "lng": float(props["lon"]),
        "formatted": props.get("formatted") or query,
    }


async def _nominatim(query: str) -> dict | None:
    http = await _get_http()
    resp = await http.get(
        NOMINATIM_URL,
        params={"q": query, "format": "json", "limit": 1},
        headers={"User-Agent": "DoggyWalk/1.0 (providers@doggywalk.app)"},
    )
    hits = resp.json()
    if not hits:
        return None
    return {
        "lat": float(hits[0]["lat"]),
        "lng": float(hits[0]["lon"]),
        "formatted": hits[0].get("display_name", query),
    }


async def geocode(address: str) -> dict | None:
    """
    Geocode an address to lat/lng.

    Returns:
        {"lat": float, "lng": float, "formatted": str} or None
    """
    coords = _parse_lat_lng(address)
    if coords is not None:
        return {"lat": coords[0], "lng": coords[1], "formatted": address}

    r = await _get_redis()
    cache_key = f"geo:{_address_hash(address)}"
    cached = await r.hgetall(cache_key)
    if cached and "lat" in cached:
        return {
            "lat": float(cached["lat"]),
            "lng": float(cached["lng"]),
            "formatted": cached.get("formatted", address),
        }

    result = None
    if settings.GEOAPIFY_API_KEY:
        try:
            result = await _geoapify(address)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Geoapify geocode failed: address=%s error=%s", address, e)

    if result is None:
        try:
            result = await _nominatim(address)
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.warning("Nominatim geocode failed: address=%s error=%s", address, e)

    if result:
        await r.hset(cache_key, mapping={
            "lat": str(result["lat"]),
            "lng": str(result["lng"]),
            "formatted": result["formatted"],
        })
        await r.expire(cache_key, GEOCODE_CACHE_TTL)

    return result


async def locate(address: str, city: str, country: str = "") -> tuple[float, float]:
    """Coordinates for a draft's address, or GeolocationUnavailable."""
    query = ", ".join(part.strip() for part in (address, city, country) if part and part.strip())
    if not query:
        raise GeolocationUnavailable("Enter an address or city first")

    try:
        result = await geocode(query)
    except aioredis.RedisError as e:
        logger.error("Geocode cache unavailable: %s", e)
        raise GeolocationUnavailable("Location service unavailable") from e
    if result is None:
        raise GeolocationUnavailable(f"Could not locate '{query}'")
    return result["lat"], result["lng"]

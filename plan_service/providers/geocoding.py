import asyncio
import logging
import math
import time
from typing import Awaitable, Callable, Dict, Optional

import httpx

from plan_service.config import ServiceConfig
from plan_service.http import open_client
from plan_service.models import (
  Coordinates,
  ForwardGeocodeResult,
  GeoResult,
  ResolvedLocation,
  ReverseGeocodeResult,
)

logger = logging.getLogger("outing_planner")

UNKNOWN_LOCATION = "Unknown location"

# Async callable standing in for the device's position API.
DevicePositionSource = Callable[..., Awaitable[Coordinates]]

DETECTED_LOCATION_TTL_SEC = 24 * 60 * 60
CURRENT_LOCATION_TTL_SEC = 60 * 60


class GeocodeError(Exception):
  """Raised when reverse geocoding is unreachable or finds nothing."""


def _coords_or_none(lat, lon) -> Optional[Coordinates]:
  try:
    lat_f, lon_f = float(lat), float(lon)
  except (TypeError, ValueError):
    return None
  if not (math.isfinite(lat_f) and math.isfinite(lon_f)):
    return None
  if not (-90 <= lat_f <= 90 and -180 <= lon_f <= 180):
    return None
  return Coordinates(lat=lat_f, lon=lon_f)


def _upper(code: Optional[str]) -> Optional[str]:
  return code.upper() if isinstance(code, str) and code else None


class GeocodingGateway:
  def __init__(self, config: ServiceConfig, client: Optional[httpx.AsyncClient] = None) -> None:
    self.config = config
    self.client = client
    self.headers = {"User-Agent": config.user_agent, "Accept": "application/json", "Accept-Language": "en"}

  async def reverse_geocode(self, coords: Coordinates) -> ReverseGeocodeResult:
    params = {"latitude": coords.lat, "longitude": coords.lon, "localityLanguage": "en"}
    try:
      async with open_client(self.client, self.config.http_timeout_sec) as client:
        resp = await client.get(
          f"{self.config.bigdatacloud_base}/reverse-geocode-client", params=params, headers=self.headers
        )
      if resp.status_code != 200:
        raise GeocodeError(f"Reverse geocode failed: {resp.status_code}")
      data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
      raise GeocodeError(f"Reverse geocode request failed: {exc}") from exc

    if not isinstance(data, dict) or not data:
      raise GeocodeError("Reverse geocode returned no result")
    admin = ((data.get("localityInfo") or {}).get("administrative") or [{}])[0] or {}
    city = data.get("city") or data.get("locality") or data.get("principalSubdivision") or admin.get("name")
    region = data.get("principalSubdivision") or data.get("countryCode")
    country = data.get("countryName") or data.get("countryCode")
    parts = [p for p in dict.fromkeys([city, region]) if p]
    label = ", ".join(parts) if parts else country
    if not label:
      raise GeocodeError("Reverse geocode returned no label")
    return ReverseGeocodeResult(label=label, countryCode=_upper(data.get("countryCode")))

  async def describe_location(self, coords: Coordinates) -> ReverseGeocodeResult:
    try:
      return await self.reverse_geocode(coords)
    except GeocodeError as exc:
      logger.warning("Reverse geocode degraded to %r: %s", UNKNOWN_LOCATION, exc)
      return ReverseGeocodeResult(label=UNKNOWN_LOCATION)

  async def _nominatim_search(self, query: str) -> Optional[dict]:
    params = {"q": query, "format": "jsonv2", "limit": 1, "addressdetails": 1}
    try:
      async with open_client(self.client, self.config.http_timeout_sec) as client:
        resp = await client.get(f"{self.config.nominatim_base}/search", params=params, headers=self.headers)
      if resp.status_code != 200:
        logger.warning("Nominatim search failed (status=%s, q=%s)", resp.status_code, query)
        return None
      data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
      logger.warning("Nominatim request failed for %s: %s", query, exc)
      return None
    if not isinstance(data, list) or not data:
      return None
    return data[0]

  async def forward_geocode_city(self, name: str) -> Optional[ForwardGeocodeResult]:
    if not name or not name.strip():
      return None
    first = await self._nominatim_search(name.strip())
    if not first:
      return None
    coords = _coords_or_none(first.get("lat"), first.get("lon"))
    if coords is None:
      return None
    country = _upper((first.get("address") or {}).get("country_code"))
    return ForwardGeocodeResult(coords=coords, countryCode=country)

  async def _google_text_lookup(self, text: str) -> Optional[ResolvedLocation]:
    params = {"address": text, "key": self.config.google_places_api_key}
    try:
      async with open_client(self.client, self.config.http_timeout_sec) as client:
        resp = await client.get(f"{self.config.google_maps_base}/geocode/json", params=params)
      if resp.status_code != 200:
        logger.warning("Google geocode failed (status=%s, body=%s)", resp.status_code, resp.text[:200])
        return None
      data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
      logger.warning("Google geocode request failed: %s", exc)
      return None

    first = (data.get("results") or [None])[0] if isinstance(data, dict) else None
    if not isinstance(first, dict):
      return None
    loc = (first.get("geometry") or {}).get("location") or {}
    coords = _coords_or_none(loc.get("lat"), loc.get("lng"))
    if coords is None:
      return None
    country = None
    for component in first.get("address_components") or []:
      if "country" in (component.get("types") or []):
        country = _upper(component.get("short_name"))
        break
    return ResolvedLocation(label=first.get("formatted_address") or text, coords=coords, countryCode=country)

  async def find_place_from_text(self, text: str) -> Optional[ResolvedLocation]:
    """Looser lookup for conversational phrasing; Google first when keyed, then Nominatim."""
    if not text or not text.strip():
      return None
    text = text.strip()
    if self.config.google_places_api_key:
      place = await self._google_text_lookup(text)
      if place:
        return place

    first = await self._nominatim_search(text)
    if not first:
      return None
    coords = _coords_or_none(first.get("lat"), first.get("lon"))
    if coords is None:
      return None
    address = first.get("address") or {}
    city = address.get("city") or address.get("town") or address.get("village") or first.get("name")
    region = address.get("state") or address.get("country")
    parts = [p for p in dict.fromkeys([city, region]) if p]
    label = ", ".join(parts) if parts else (first.get("display_name") or text)
    return ResolvedLocation(label=label, coords=coords, countryCode=_upper(address.get("country_code")))

  async def _from_device(self, device: DevicePositionSource) -> Optional[GeoResult]:
    coords = await asyncio.wait_for(
      device(high_accuracy=True, maximum_age=60.0), timeout=self.config.device_timeout_sec
    )
    described = await self.describe_location(coords)
    return GeoResult(label=described.label, coords=coords, countryCode=described.countryCode)

  async def _from_ip(self, url: str, country_key: str, code_key: str) -> Optional[GeoResult]:
    async with open_client(self.client, self.config.http_timeout_sec) as client:
      resp = await client.get(url, headers=self.headers)
    if resp.status_code != 200:
      return None
    data = resp.json()
    if not isinstance(data, dict) or data.get("success") is False or data.get("error"):
      return None
    coords = _coords_or_none(data.get("latitude"), data.get("longitude"))
    if coords is None:
      return None
    parts = [p for p in dict.fromkeys([data.get("city"), data.get("region")]) if p]
    label = ", ".join(parts) or data.get(country_key) or UNKNOWN_LOCATION
    return GeoResult(label=label, coords=coords, countryCode=_upper(data.get(code_key)))

  async def detect_current_location(self, device: Optional[DevicePositionSource] = None) -> Optional[GeoResult]:
    """Device position first, then IP geolocation; None when every tier fails."""
    if device is not None:
      try:
        return await self._from_device(device)
      except (asyncio.TimeoutError, GeocodeError, httpx.HTTPError, ValueError, RuntimeError) as exc:
        logger.info("Device location unavailable: %s", exc)

    for url, country_key, code_key in (
      (self.config.ipwho_url, "country", "country_code"),
      (self.config.ipapi_url, "country_name", "country_code"),
    ):
      try:
        found = await self._from_ip(url, country_key, code_key)
      except (httpx.HTTPError, ValueError) as exc:
        logger.info("IP geolocation via %s failed: %s", url, exc)
        continue
      if found:
        return found
    return None


class LocationCache:
  """Caller-owned freshness store for detected ("detected") and live ("current") locations."""

  TTLS = {"detected": DETECTED_LOCATION_TTL_SEC, "current": CURRENT_LOCATION_TTL_SEC}

  def __init__(self, clock: Callable[[], float] = time.time) -> None:
    self.clock = clock
    self._store: Dict[str, tuple[float, GeoResult]] = {}

  def get(self, kind: str) -> Optional[GeoResult]:
    entry = self._store.get(kind)
    if not entry:
      return None
    stored_at, value = entry
    if self.clock() - stored_at >= self.TTLS[kind]:
      self._store.pop(kind, None)
      return None
    return value

  def set(self, kind: str, value: GeoResult) -> None:
    if kind not in self.TTLS:
      raise ValueError(f"unknown location kind: {kind}")
    self._store[kind] = (self.clock(), value)

import logging
import math
from typing import List, Optional
from urllib.parse import quote

import httpx

from plan_service.config import ServiceConfig
from plan_service.http import open_client
from plan_service.intent_normalizer import classify_place_intents, google_place_types, osm_selectors
from plan_service.models import Coordinates, PlaceSuggestion

logger = logging.getLogger("outing_planner")

EARTH_RADIUS_KM = 6371.0
MAX_PLACES = 8
DEFAULT_RADIUS_M = 4000

# Google's maxprice scale stops at 4.
_BUDGET_TO_MAXPRICE = {1: 1, 2: 2, 3: 3, 4: 4, 5: 4}


def haversine_km(origin: Coordinates, lat: float, lon: float) -> float:
  d_lat = math.radians(lat - origin.lat)
  d_lon = math.radians(lon - origin.lon)
  a = (
    math.sin(d_lat / 2) ** 2
    + math.cos(math.radians(origin.lat)) * math.cos(math.radians(lat)) * math.sin(d_lon / 2) ** 2
  )
  return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _finite(*values) -> bool:
  try:
    return all(math.isfinite(float(v)) for v in values)
  except (TypeError, ValueError):
    return False


def _as_dict(value) -> dict:
  return value if isinstance(value, dict) else {}


def _rank(origin: Coordinates, rows: List[dict]) -> List[PlaceSuggestion]:
  """Drop rows without usable coordinates, attach distance, sort and cap."""
  ranked: List[PlaceSuggestion] = []
  for row in rows:
    lat, lon = row.get("lat"), row.get("lon")
    if not _finite(lat, lon) or not (-90 <= float(lat) <= 90 and -180 <= float(lon) <= 180):
      continue
    lat, lon = float(lat), float(lon)
    try:
      place = PlaceSuggestion(
        name=row.get("name") or "Unnamed place",
        type=row.get("type") or "poi",
        coords=Coordinates(lat=lat, lon=lon),
        distanceKm=haversine_km(origin, lat, lon),
        url=row.get("url") or "",
        address=row.get("address"),
        priceLevel=row.get("priceLevel"),
      )
    except ValueError as exc:
      logger.debug("Skipping malformed place %r: %s", row.get("name"), exc)
      continue
    ranked.append(place)
  ranked.sort(key=lambda p: p.distanceKm)
  return ranked[:MAX_PLACES]


def build_overpass_query(selectors: List[str], origin: Coordinates, radius_m: int) -> str:
  around = f"(around:{radius_m},{origin.lat},{origin.lon})"
  clauses = [
    f"{element}{selector}{around};"
    for selector in selectors
    for element in ("node", "way", "relation")
  ]
  body = "\n  ".join(clauses)
  return f"[out:json][timeout:25];\n(\n  {body}\n);\nout center 20;"


class ProximitySearchGateway:
  """Nearby places: Google Places when keyed, OpenStreetMap Overpass otherwise."""

  def __init__(self, config: ServiceConfig, client: Optional[httpx.AsyncClient] = None) -> None:
    self.config = config
    self.client = client
    if not config.google_places_api_key:
      logger.info("GOOGLE_PLACES_API_KEY not set; nearby search uses Overpass only.")

  async def search_nearby(
    self,
    query_text: str,
    origin: Optional[Coordinates],
    radius_m: int = DEFAULT_RADIUS_M,
    budget: Optional[int] = None,
  ) -> List[PlaceSuggestion]:
    if origin is None:
      return []
    classified = classify_place_intents(query_text)
    intents: List[str] = classified["intents"]  # type: ignore[assignment]
    cuisine: Optional[str] = classified["cuisine"]  # type: ignore[assignment]

    if self.config.google_places_api_key:
      places = await self._search_google(query_text, intents, origin, radius_m, budget)
      if places:
        return places

    selectors: List[str] = []
    for intent in intents:
      selectors.extend(osm_selectors(intent, cuisine))
    if not selectors:
      return []
    return await self._search_overpass(selectors, origin, radius_m)

  async def _search_google(
    self,
    query_text: str,
    intents: List[str],
    origin: Coordinates,
    radius_m: int,
    budget: Optional[int],
  ) -> List[PlaceSuggestion]:
    base_params = {
      "location": f"{origin.lat},{origin.lon}",
      "radius": radius_m,
      "key": self.config.google_places_api_key,
    }
    if budget in _BUDGET_TO_MAXPRICE:
      base_params["maxprice"] = _BUDGET_TO_MAXPRICE[budget]

    types = google_place_types(intents)
    requests = [{"type": t} for t in types] if types else [{"keyword": (query_text or "")[:100]}]

    rows: List[dict] = []
    url = f"{self.config.google_maps_base}/place/nearbysearch/json"
    try:
      async with open_client(self.client, self.config.http_timeout_sec) as client:
        for extra in requests:
          resp = await client.get(url, params={**base_params, **extra})
          if resp.status_code != 200:
            logger.warning(
              "Google Places search failed (status=%s, params=%s, body=%s)",
              resp.status_code,
              extra,
              resp.text[:200],
            )
            continue
          data = resp.json()
          results = data.get("results") if isinstance(data, dict) else None
          for item in results if isinstance(results, list) else []:
            if not isinstance(item, dict):
              continue
            rows.append(self._google_row(item, extra.get("type")))
      return _rank(origin, rows)
    except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
      logger.warning("Google Places request failed: %s", exc)
      return []

  @staticmethod
  def _google_row(item: dict, requested_type: Optional[str]) -> dict:
    geometry = _as_dict(item.get("geometry"))
    loc = _as_dict(geometry.get("location"))
    types = item.get("types")
    place_id = item.get("place_id")
    name = str(item.get("name") or "Unnamed place")
    if place_id:
      url = f"https://www.google.com/maps/place/?q=place_id:{place_id}"
    else:
      url = f"https://www.google.com/maps/search/?api=1&query={quote(name)}"
    return {
      "name": name,
      "type": requested_type or (types[0] if isinstance(types, list) and types else "poi"),
      "lat": loc.get("lat"),
      "lon": loc.get("lng"),
      "url": url,
      "address": item.get("vicinity") or item.get("formatted_address"),
      "priceLevel": item.get("price_level"),
    }

  async def _search_overpass(self, selectors: List[str], origin: Coordinates, radius_m: int) -> List[PlaceSuggestion]:
    query = build_overpass_query(selectors, origin, radius_m)
    headers = {"User-Agent": self.config.user_agent}
    try:
      async with open_client(self.client, self.config.http_timeout_sec) as client:
        resp = await client.post(self.config.overpass_url, data={"data": query}, headers=headers)
      if resp.status_code != 200:
        logger.warning("Overpass query failed (status=%s, body=%s)", resp.status_code, resp.text[:200])
        return []
      data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
      logger.warning("Overpass request failed: %s", exc)
      return []

    elements = data.get("elements") if isinstance(data, dict) else None
    if not isinstance(elements, list):
      return []
    rows: List[dict] = []
    for el in elements:
      if not isinstance(el, dict):
        continue
      tags = _as_dict(el.get("tags"))
      center = _as_dict(el.get("center"))
      el_type = el.get("type") or "node"
      street = " ".join(p for p in [tags.get("addr:housenumber"), tags.get("addr:street")] if p)
      rows.append({
        "name": tags.get("name"),
        "type": tags.get("amenity") or tags.get("leisure") or tags.get("tourism") or "poi",
        "lat": el.get("lat", center.get("lat")),
        "lon": el.get("lon", center.get("lon")),
        "url": f"https://www.openstreetmap.org/{el_type}/{el['id']}" if el.get("id") else "",
        "address": street or None,
      })
    return _rank(origin, rows)

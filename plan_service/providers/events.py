import logging
from datetime import datetime, time, timezone
from typing import List, Optional
from urllib.parse import quote_plus

import httpx

from plan_service.config import ServiceConfig
from plan_service.http import open_client
from plan_service.intent_normalizer import categorize_event
from plan_service.models import Coordinates, DateRange, EventSearchResult, EventSuggestion

logger = logging.getLogger("outing_planner")

MAX_EVENTS = 5
DEFAULT_RADIUS_KM = 10


def _parse_start(value) -> Optional[datetime]:
  if not isinstance(value, str) or not value:
    return None
  try:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
  except ValueError:
    return None
  if parsed.tzinfo is None:
    parsed = parsed.replace(tzinfo=timezone.utc)
  return parsed


def _format_iso(dt: datetime) -> str:
  return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _search_url(title: str, place: Optional[str]) -> str:
  terms = " ".join(p for p in [title, place] if p)
  return f"https://www.google.com/search?q={quote_plus(terms)}"


def _venue_name(item: dict) -> Optional[str]:
  place = item.get("place")
  if isinstance(place, dict) and place.get("name"):
    return place["name"]
  entities = item.get("entities")
  for entity in entities if isinstance(entities, list) else []:
    if isinstance(entity, dict) and entity.get("name"):
      return entity["name"]
  return None


def _event_from_item(item: dict, now: datetime) -> Optional[EventSuggestion]:
  start = _parse_start(item.get("start"))
  if start is not None and start < now:
    return None
  title = item.get("title") or "Untitled event"
  place = _venue_name(item)
  return EventSuggestion(
    title=title,
    place=place,
    startTime=start,
    url=item.get("url") or _search_url(title, place),
    category=item.get("category") or categorize_event(title, item.get("description")),
  )


class EventSearchGateway:
  """Upcoming events around an origin from the PredictHQ events index."""

  def __init__(self, config: ServiceConfig, client: Optional[httpx.AsyncClient] = None) -> None:
    self.config = config
    self.client = client
    if not config.predicthq_token:
      logger.info("PREDICTHQ_TOKEN not set; event search disabled.")

  async def search_events(
    self,
    query: Optional[str] = None,
    origin: Optional[Coordinates] = None,
    radius_km: int = DEFAULT_RADIUS_KM,
    date_window: Optional[DateRange] = None,
    country: Optional[str] = None,
    limit: int = MAX_EVENTS,
    now: Optional[datetime] = None,
  ) -> EventSearchResult:
    if origin is None or not self.config.predicthq_token:
      return EventSearchResult()

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
      now = now.replace(tzinfo=timezone.utc)
    limit = max(1, min(limit, MAX_EVENTS))

    lower = now
    params = {
      "limit": limit,
      "sort": "start",
      "location_around.origin": f"{origin.lat},{origin.lon}",
      "location_around.offset": f"{radius_km}km",
    }
    if query and query.strip():
      params["q"] = query.strip()[:100]
    if country:
      params["country"] = country.upper()
    if date_window:
      window_start = datetime.combine(date_window.startDate, time.min, tzinfo=timezone.utc)
      lower = max(now, window_start)
      upper = datetime.combine(date_window.endDate, time(23, 59, 59), tzinfo=timezone.utc)
      params["active.lte"] = _format_iso(upper)
    params["active.gte"] = _format_iso(lower)

    headers = {"Authorization": f"Bearer {self.config.predicthq_token}", "Accept": "application/json"}
    try:
      async with open_client(self.client, self.config.http_timeout_sec) as client:
        resp = await client.get(f"{self.config.predicthq_base}/events/", params=params, headers=headers)
      if resp.status_code != 200:
        logger.warning("PredictHQ search failed (status=%s, body=%s)", resp.status_code, resp.text[:200])
        return EventSearchResult(error=f"Event search failed ({resp.status_code}).")
      data = resp.json()
    except httpx.HTTPError as exc:
      logger.warning("PredictHQ request failed: %s", exc)
      return EventSearchResult(error="Could not reach the events service.")
    except ValueError as exc:
      logger.warning("PredictHQ returned unreadable JSON: %s", exc)
      return EventSearchResult(error="The events service returned an unreadable response.")

    results = data.get("results") if isinstance(data, dict) else None
    if not isinstance(results, list):
      return EventSearchResult()

    events: List[EventSuggestion] = []
    for item in results:
      if not isinstance(item, dict):
        continue
      try:
        event = _event_from_item(item, now)
      except (ValueError, TypeError) as exc:
        logger.debug("Skipping malformed event %r: %s", item.get("id"), exc)
        continue
      if event is not None:
        events.append(event)
    # Undated events sort last.
    events.sort(key=lambda e: (e.startTime is None, e.startTime or now))
    return EventSearchResult(events=events[:limit])

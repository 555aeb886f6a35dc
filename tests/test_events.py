import asyncio
from datetime import date, datetime, timezone

import httpx

from plan_service.config import ServiceConfig
from plan_service.models import Coordinates, DateRange
from plan_service.providers.events import EventSearchGateway

SF = Coordinates(lat=37.7749, lon=-122.4194)
NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
KEYED = ServiceConfig(predicthq_token="token")


def _events(request):
  return httpx.Response(200, json={"results": [
    {"title": "Yesterday's Gig", "start": "2026-10-17T20:00:00Z", "category": "concerts"},
    {"title": "Late Show", "start": "2026-10-20T21:00:00Z", "category": "concerts",
     "entities": [{"name": "The Fillmore", "type": "venue"}]},
    {"title": "Food Truck Friday", "start": "2026-10-19T17:00:00Z"},
    {"title": "Marathon", "start": "2026-10-25T07:00:00Z", "category": "sports",
     "url": "https://example.org/marathon"},
  ]})


def test_no_origin_or_token_is_empty_without_error(router):
  assert asyncio.run(EventSearchGateway(KEYED, router.client()).search_events("jazz", None)).events == []
  result = asyncio.run(EventSearchGateway(ServiceConfig(), router.client()).search_events("jazz", SF))
  assert result.events == [] and result.error is None
  assert router.requests == []


def test_upcoming_events_sorted_and_normalized(router):
  router.routes["api.predicthq.com"] = _events
  gateway = EventSearchGateway(KEYED, router.client())
  result = asyncio.run(gateway.search_events("live music", SF, country="us", now=NOW))

  assert result.error is None
  assert [e.title for e in result.events] == ["Food Truck Friday", "Late Show", "Marathon"]
  late_show = result.events[1]
  assert late_show.place == "The Fillmore"
  assert late_show.url == "https://www.google.com/search?q=Late+Show+The+Fillmore"
  assert result.events[2].url == "https://example.org/marathon"
  assert result.events[0].category == "Food & Dining"

  request = router.requests[0]
  assert request.headers["authorization"] == "Bearer token"
  params = request.url.params
  assert params["q"] == "live music"
  assert params["country"] == "US"
  assert params["active.gte"] == "2026-10-18T12:00:00Z"
  assert params["location_around.origin"] == "37.7749,-122.4194"
  assert params["location_around.offset"] == "10km"


def test_window_start_after_now_is_used_as_lower_bound(router):
  router.routes["api.predicthq.com"] = lambda r: httpx.Response(200, json={"results": []})
  gateway = EventSearchGateway(KEYED, router.client())
  window = DateRange(startDate=date(2026, 10, 24), endDate=date(2026, 10, 25))
  asyncio.run(gateway.search_events("brunch", SF, date_window=window, now=NOW))
  params = router.requests[0].url.params
  assert params["active.gte"] == "2026-10-24T00:00:00Z"
  assert params["active.lte"] == "2026-10-25T23:59:59Z"


def test_window_start_in_past_is_clamped_to_now(router):
  router.routes["api.predicthq.com"] = lambda r: httpx.Response(200, json={"results": []})
  gateway = EventSearchGateway(KEYED, router.client())
  window = DateRange(startDate=date(2026, 10, 1), endDate=date(2026, 10, 31))
  asyncio.run(gateway.search_events("brunch", SF, date_window=window, now=NOW))
  assert router.requests[0].url.params["active.gte"] == "2026-10-18T12:00:00Z"


def test_cap_at_five(router):
  many = [{"title": f"Event {i}", "start": f"2026-11-{i + 1:02d}T10:00:00Z"} for i in range(9)]
  router.routes["api.predicthq.com"] = lambda r: httpx.Response(200, json={"results": many})
  gateway = EventSearchGateway(KEYED, router.client())
  result = asyncio.run(gateway.search_events(None, SF, limit=20, now=NOW))
  assert len(result.events) == 5
  assert router.requests[0].url.params["limit"] == "5"


def test_failures_surface_an_error_string(router):
  router.routes["api.predicthq.com"] = lambda r: httpx.Response(401, text="bad token")
  gateway = EventSearchGateway(KEYED, router.client())
  result = asyncio.run(gateway.search_events("jazz", SF, now=NOW))
  assert result.events == []
  assert "401" in result.error

  def unreachable(request):
    raise httpx.ConnectError("down", request=request)

  router.routes["api.predicthq.com"] = unreachable
  result = asyncio.run(gateway.search_events("jazz", SF, now=NOW))
  assert result.events == []
  assert result.error == "Could not reach the events service."


def test_malformed_items_are_skipped(router):
  router.routes["api.predicthq.com"] = lambda r: httpx.Response(200, json={"results": [
    "bogus",
    {"title": "Odd Venue", "start": "2026-10-19T18:00:00Z", "entities": 7},
    {"title": 42, "start": "2026-10-19T19:00:00Z"},
    {"title": "Gallery Walk", "start": "2026-10-19T20:00:00Z", "category": "expos"},
  ]})
  result = asyncio.run(EventSearchGateway(KEYED, router.client()).search_events("art", SF, now=NOW))
  assert result.error is None
  assert [e.title for e in result.events] == ["Odd Venue", "Gallery Walk"]
  assert result.events[0].place is None

import asyncio

import httpx
import pytest

from plan_service.config import ServiceConfig
from plan_service.models import Coordinates, GeoResult
from plan_service.providers.geocoding import (
  CURRENT_LOCATION_TTL_SEC,
  DETECTED_LOCATION_TTL_SEC,
  GeocodeError,
  GeocodingGateway,
  LocationCache,
)

SF = Coordinates(lat=37.7749, lon=-122.4194)


def _bigdatacloud(request):
  return httpx.Response(200, json={
    "city": "San Francisco",
    "principalSubdivision": "California",
    "countryCode": "US",
    "countryName": "United States",
  })


def _nominatim_kyoto(request):
  return httpx.Response(200, json=[{
    "lat": "35.0116",
    "lon": "135.7681",
    "name": "Kyoto",
    "address": {"city": "Kyoto", "state": "Kyoto Prefecture", "country_code": "jp"},
  }])


def test_reverse_geocode_builds_label(config, router):
  router.routes["api.bigdatacloud.net"] = _bigdatacloud
  gateway = GeocodingGateway(config, router.client())
  result = asyncio.run(gateway.reverse_geocode(SF))
  assert result.label == "San Francisco, California"
  assert result.countryCode == "US"
  assert router.requests[0].url.params["latitude"] == "37.7749"


def test_reverse_geocode_failure_raises_and_describe_degrades(config, router):
  router.routes["api.bigdatacloud.net"] = lambda r: httpx.Response(500, text="boom")
  gateway = GeocodingGateway(config, router.client())
  with pytest.raises(GeocodeError):
    asyncio.run(gateway.reverse_geocode(SF))
  assert asyncio.run(gateway.describe_location(SF)).label == "Unknown location"


def test_forward_geocode_city(config, router):
  router.routes["nominatim.openstreetmap.org"] = _nominatim_kyoto
  gateway = GeocodingGateway(config, router.client())
  result = asyncio.run(gateway.forward_geocode_city("Kyoto"))
  assert result.coords == Coordinates(lat=35.0116, lon=135.7681)
  assert result.countryCode == "JP"
  assert router.requests[0].url.params["q"] == "Kyoto"
  assert "OutingPlanner" in router.requests[0].headers["user-agent"]


def test_forward_geocode_no_match(config, router):
  router.routes["nominatim.openstreetmap.org"] = lambda r: httpx.Response(200, json=[])
  gateway = GeocodingGateway(config, router.client())
  assert asyncio.run(gateway.forward_geocode_city("Atlantis")) is None
  assert asyncio.run(gateway.forward_geocode_city("   ")) is None
  assert len(router.requests) == 1


def test_find_place_prefers_google_when_keyed(router):
  router.routes["maps.googleapis.com"] = lambda r: httpx.Response(200, json={"results": [{
    "formatted_address": "Paris, France",
    "geometry": {"location": {"lat": 48.8566, "lng": 2.3522}},
    "address_components": [{"short_name": "FR", "types": ["country", "political"]}],
  }]})
  gateway = GeocodingGateway(ServiceConfig(google_places_api_key="k"), router.client())
  place = asyncio.run(gateway.find_place_from_text("Paris"))
  assert place.label == "Paris, France"
  assert place.countryCode == "FR"
  assert router.hosts() == ["maps.googleapis.com"]


def test_find_place_falls_back_to_nominatim(router):
  router.routes["maps.googleapis.com"] = lambda r: httpx.Response(403, text="denied")
  router.routes["nominatim.openstreetmap.org"] = _nominatim_kyoto
  gateway = GeocodingGateway(ServiceConfig(google_places_api_key="k"), router.client())
  place = asyncio.run(gateway.find_place_from_text("Kyoto"))
  assert place.label == "Kyoto, Kyoto Prefecture"
  assert place.countryCode == "JP"
  assert router.hosts() == ["maps.googleapis.com", "nominatim.openstreetmap.org"]


def test_detect_uses_device_position_first(config, router):
  router.routes["api.bigdatacloud.net"] = _bigdatacloud
  calls = []

  async def device(**kwargs):
    calls.append(kwargs)
    return SF

  gateway = GeocodingGateway(config, router.client())
  found = asyncio.run(gateway.detect_current_location(device))
  assert found.label == "San Francisco, California"
  assert found.coords == SF
  assert calls[0]["high_accuracy"] is True
  assert "ipwho.is" not in router.hosts()


def test_detect_falls_back_to_ip_after_device_timeout(router):
  router.routes["ipwho.is"] = lambda r: httpx.Response(200, json={"success": False})
  router.routes["ipapi.co"] = lambda r: httpx.Response(200, json={
    "latitude": 37.8044,
    "longitude": -122.2712,
    "city": "Oakland",
    "region": "California",
    "country_name": "United States",
    "country_code": "us",
  })

  async def slow_device(**kwargs):
    await asyncio.sleep(1)
    return SF

  gateway = GeocodingGateway(ServiceConfig(device_timeout_sec=0.01), router.client())
  found = asyncio.run(gateway.detect_current_location(slow_device))
  assert found.label == "Oakland, California"
  assert found.countryCode == "US"
  assert router.hosts() == ["ipwho.is", "ipapi.co"]


def test_detect_returns_none_when_every_tier_fails(config, router):
  async def denied(**kwargs):
    raise RuntimeError("permission denied")

  gateway = GeocodingGateway(config, router.client())
  assert asyncio.run(gateway.detect_current_location(denied)) is None


def test_location_cache_freshness():
  now = [1000.0]
  cache = LocationCache(clock=lambda: now[0])
  here = GeoResult(label="Here", coords=SF)
  cache.set("detected", here)
  cache.set("current", here)

  now[0] += CURRENT_LOCATION_TTL_SEC - 1
  assert cache.get("current") == here
  now[0] += 1
  assert cache.get("current") is None
  assert cache.get("detected") == here

  now[0] = 1000.0 + DETECTED_LOCATION_TTL_SEC
  assert cache.get("detected") is None
  with pytest.raises(ValueError):
    cache.set("somewhere", here)

from plan_service.providers.geocoding import (
  DevicePositionSource,
  GeocodeError,
  GeocodingGateway,
  LocationCache,
)
from plan_service.providers.places import ProximitySearchGateway, haversine_km
from plan_service.providers.events import EventSearchGateway

__all__ = [
  "DevicePositionSource",
  "GeocodeError",
  "GeocodingGateway",
  "LocationCache",
  "ProximitySearchGateway",
  "haversine_km",
  "EventSearchGateway",
]

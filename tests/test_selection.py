from datetime import datetime, timezone

from plan_service.models import Coordinates, EventSuggestion, FeedEvent, PlaceSuggestion
from plan_service.selection import (
  SelectionSet,
  event_to_feed_event,
  place_to_feed_event,
  selection_key,
  toggle_select,
)

PLACE = PlaceSuggestion(
  name="Blue Bottle",
  type="cafe",
  coords=Coordinates(lat=37.7825, lon=-122.4073),
  distanceKm=1.234,
  url="https://www.google.com/maps/place/?q=place_id:abc",
  address="66 Mint St",
  priceLevel=2,
)


def test_toggle_twice_restores_selection_with_distinct_instances():
  existing = [FeedEvent(title="Picnic")]
  first = FeedEvent(title="Jazz Night", start="2026-10-20T21:00:00+00:00", locationName="The Fillmore")
  twin = FeedEvent(title="Jazz Night", start="2026-10-20T21:00:00+00:00", locationName="The Fillmore")

  added = toggle_select(existing, first)
  assert len(added) == 2
  assert toggle_select(added, twin) == existing


def test_different_coordinates_are_different_selections():
  a = FeedEvent(title="Park", coords=Coordinates(lat=1, lon=2))
  b = FeedEvent(title="Park", coords=Coordinates(lat=1, lon=3))
  assert selection_key(a) != selection_key(b)
  assert len(toggle_select(toggle_select([], a), b)) == 2


def test_place_conversion_carries_context_in_description():
  event = place_to_feed_event(PLACE)
  assert event.title == "Blue Bottle"
  assert "1.2 km away" in event.description
  assert "Price: $$" in event.description
  assert "Address: 66 Mint St" in event.description
  assert event.coords == PLACE.coords
  assert event.sourceUrl == PLACE.url
  assert event.category == "Food & Dining"


def test_event_conversion():
  suggestion = EventSuggestion(
    title="Jazz Night",
    place="The Fillmore",
    startTime=datetime(2026, 10, 20, 21, 0, tzinfo=timezone.utc),
    url="https://example.org/jazz",
  )
  event = event_to_feed_event(suggestion)
  assert event.start == "2026-10-20T21:00:00+00:00"
  assert event.locationName == "The Fillmore"
  assert event.category == "Other"


def test_selection_set_accepts_places_directly():
  picked = SelectionSet()
  assert picked.toggle(PLACE) is True
  assert PLACE in picked
  assert len(picked) == 1
  assert picked.toggle(PLACE.model_copy()) is False
  assert picked.items() == []

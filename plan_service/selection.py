"""Turn picked suggestions into feed events and keep the picked set free of duplicates."""

import json
from typing import Iterable, Iterator, List, Sequence, Union

from plan_service.intent_normalizer import categorize_event
from plan_service.models import EventSuggestion, FeedEvent, PlaceSuggestion

Suggestion = Union[FeedEvent, PlaceSuggestion, EventSuggestion]

PRICE_LABELS = {0: "Free", 1: "$", 2: "$$", 3: "$$$", 4: "$$$$"}


def place_to_feed_event(place: PlaceSuggestion) -> FeedEvent:
  details = [f"{place.type.replace('_', ' ')} | {place.distanceKm:.1f} km away"]
  if place.priceLevel is not None:
    details.append(f"Price: {PRICE_LABELS.get(place.priceLevel, place.priceLevel)}")
  if place.address:
    details.append(f"Address: {place.address}")
  return FeedEvent(
    title=place.name,
    description="\n".join(details),
    category=categorize_event(place.name, place.type),
    locationName=place.name,
    sourceUrl=place.url or None,
    coords=place.coords,
    address=place.address,
  )


def event_to_feed_event(event: EventSuggestion) -> FeedEvent:
  return FeedEvent(
    title=event.title,
    category=event.category or categorize_event(event.title),
    start=event.startTime.isoformat() if event.startTime else None,
    locationName=event.place,
    sourceUrl=event.url,
  )


def as_feed_event(suggestion: Suggestion) -> FeedEvent:
  if isinstance(suggestion, FeedEvent):
    return suggestion
  if isinstance(suggestion, PlaceSuggestion):
    return place_to_feed_event(suggestion)
  if isinstance(suggestion, EventSuggestion):
    return event_to_feed_event(suggestion)
  raise TypeError(f"Cannot select {type(suggestion).__name__}")


def selection_key(event: FeedEvent) -> str:
  coords = [event.coords.lat, event.coords.lon] if event.coords else None
  return json.dumps([
    event.title,
    event.start or "",
    event.locationName or "",
    event.sourceUrl or "",
    event.address or "",
    coords,
  ])


def toggle_select(selection: Sequence[FeedEvent], suggestion: Suggestion) -> List[FeedEvent]:
  """Add the suggestion, or remove it when an equal one is already selected."""
  incoming = as_feed_event(suggestion)
  key = selection_key(incoming)
  kept = [item for item in selection if selection_key(item) != key]
  if len(kept) != len(selection):
    return kept
  return [*selection, incoming]


class SelectionSet:
  def __init__(self, items: Iterable[FeedEvent] = ()) -> None:
    self._items: List[FeedEvent] = []
    for item in items:
      if item not in self:
        self._items.append(item)

  def toggle(self, suggestion: Suggestion) -> bool:
    """Returns True when the suggestion ends up selected."""
    before = len(self._items)
    self._items = toggle_select(self._items, suggestion)
    return len(self._items) > before

  def __contains__(self, suggestion: object) -> bool:
    if not isinstance(suggestion, (FeedEvent, PlaceSuggestion, EventSuggestion)):
      return False
    key = selection_key(as_feed_event(suggestion))
    return any(selection_key(item) == key for item in self._items)

  def __iter__(self) -> Iterator[FeedEvent]:
    return iter(list(self._items))

  def __len__(self) -> int:
    return len(self._items)

  def items(self) -> List[FeedEvent]:
    return list(self._items)

from datetime import date, datetime
from typing import List, Optional, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class Coordinates(BaseModel):
  lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
  lon: float = Field(..., ge=-180, le=180, allow_inf_nan=False)


class ResolvedLocation(BaseModel):
  """A place name pinned to coordinates, as produced by geocoding."""

  label: str
  coords: Coordinates
  countryCode: Optional[str] = None


GeoResult = ResolvedLocation


class ReverseGeocodeResult(BaseModel):
  label: str
  countryCode: Optional[str] = None


class ForwardGeocodeResult(BaseModel):
  coords: Coordinates
  countryCode: Optional[str] = None


class DateRange(BaseModel):
  startDate: date
  endDate: date

  @model_validator(mode="after")
  def _ordered(self) -> "DateRange":
    if self.endDate < self.startDate:
      raise ValueError("endDate must not be before startDate")
    return self


class PlaceSuggestion(BaseModel):
  name: str
  type: str
  coords: Coordinates
  distanceKm: float = Field(..., ge=0)
  url: str
  address: Optional[str] = None
  priceLevel: Optional[int] = None


class EventSuggestion(BaseModel):
  title: str
  place: Optional[str] = None
  startTime: Optional[datetime] = None
  url: Optional[str] = None
  category: Optional[str] = None


class EventSearchResult(BaseModel):
  events: List[EventSuggestion] = []
  error: Optional[str] = None


class FeedEvent(BaseModel):
  """Normalized selection unit shared by event and place suggestions."""

  title: str
  description: Optional[str] = None
  category: Optional[str] = None
  start: Optional[str] = None
  end: Optional[str] = None
  locationName: Optional[str] = None
  sourceUrl: Optional[str] = None
  coords: Optional[Coordinates] = None
  address: Optional[str] = None


class PlanResult(BaseModel):
  narrativeText: str
  model: Optional[str] = None
  provider: Optional[str] = None
  source: Literal["api", "provider-direct", "local"]
  places: List[PlaceSuggestion] = []
  events: List[EventSuggestion] = []
  locationLabel: Optional[str] = None
  extractedLocation: Optional[str] = None
  dateRange: Optional[DateRange] = None
  eventsError: Optional[str] = None


class PlanRequest(BaseModel):
  """Arguments of one orchestration call: idea text, explicit filters and caller context."""

  ideaText: str = Field(..., min_length=1)
  agentId: str = "planner"
  explicitCoords: Optional[Coordinates] = None
  explicitCityLabel: Optional[str] = None
  explicitCountry: Optional[str] = None
  explicitBudget: Optional[int] = Field(default=None, ge=1, le=5)
  explicitStartDate: Optional[date] = None
  explicitEndDate: Optional[date] = None
  autoDetectedLocation: Optional[ResolvedLocation] = None
  currentCity: Optional[str] = None
  currentCoords: Optional[Coordinates] = None
  userCountry: Optional[str] = None

  @field_validator("ideaText")
  @classmethod
  def _not_blank(cls, value: str) -> str:
    value = value.strip()
    if not value:
      raise ValueError("ideaText must not be blank")
    return value


class LocationConflict(BaseModel):
  extractedPhrase: str
  extractedCountry: str
  filterLabel: str
  filterCountry: str

  def message(self) -> str:
    return (
      f'Your idea mentions "{self.extractedPhrase}" but the location filter is set to '
      f'"{self.filterLabel}". Do you want to continue with {self.filterLabel}?'
    )


class BookingRequest(BaseModel):
  planText: str = Field(..., min_length=1)
  places: List[PlaceSuggestion] = []
  events: List[EventSuggestion] = []
  coords: Optional[Coordinates] = None
  city: Optional[str] = None
  country: Optional[str] = None
  budget: Optional[int] = Field(default=None, ge=1, le=5)
  startDate: Optional[date] = None
  endDate: Optional[date] = None

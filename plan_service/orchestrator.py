import asyncio
import inspect
import logging
from datetime import date
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Tuple, Union

import httpx

from plan_service.attempts import RECOVERABLE_ERRORS, Attempt, attempt, first_success
from plan_service.config import ServiceConfig
from plan_service.date_extraction import parse_semantic_dates
from plan_service.llm.agents import (
  AGENT_GRAPH,
  AgentGraphConfig,
  compose_prompt,
  get_agent,
  resolve_model,
  split_prompt,
)
from plan_service.llm.client import (
  Generation,
  GenerationRequest,
  LlmClient,
  LlmError,
  build_llm_clients,
  pinned_anthropic_model,
)
from plan_service.location_extraction import extract_location_phrase
from plan_service.models import (
  BookingRequest,
  Coordinates,
  DateRange,
  EventSearchResult,
  EventSuggestion,
  LocationConflict,
  PlaceSuggestion,
  PlanRequest,
  PlanResult,
)
from plan_service.providers.events import EventSearchGateway
from plan_service.providers.geocoding import GeocodingGateway
from plan_service.providers.places import ProximitySearchGateway

logger = logging.getLogger("outing_planner")

ConfirmCallback = Callable[[LocationConflict], Union[bool, Awaitable[bool]]]

_GENERATION_ERRORS = (LlmError, *RECOVERABLE_ERRORS)


class PlanState(str, Enum):
  IDLE = "IDLE"
  EXTRACTING_CONTEXT = "EXTRACTING_CONTEXT"
  RESOLVING_LOCATION = "RESOLVING_LOCATION"
  GATHERING_SUGGESTIONS = "GATHERING_SUGGESTIONS"
  GENERATING = "GENERATING"
  DONE = "DONE"
  FAILED = "FAILED"
  CANCELLED = "CANCELLED"


class _Origin:
  def __init__(self, coords: Optional[Coordinates] = None, label: Optional[str] = None, country: Optional[str] = None):
    self.coords = coords
    self.label = label
    self.country = country


def _same_country(a: Optional[str], b: Optional[str]) -> bool:
  return (a or "").strip().lower() == (b or "").strip().lower()


def nearby_context(places: List[PlaceSuggestion], city: Optional[str]) -> str:
  if not places:
    return ""
  header = f"\n\nNearby options{f' in {city}' if city else ''} (within ~4km):\n"
  lines = [
    f"{i}. {p.name} ({p.type.replace('_', ' ')}) - {p.distanceKm:.1f} km - {p.url}"
    for i, p in enumerate(places, start=1)
  ]
  return header + "\n".join(lines)


def events_context(events: List[EventSuggestion], idea: str) -> str:
  if not events:
    return ""
  lines = []
  for i, e in enumerate(events, start=1):
    when = e.startTime.strftime("%Y-%m-%d %H:%M") if e.startTime else "date TBA"
    where = f" @ {e.place}" if e.place else ""
    cat = f" | {e.category}" if e.category else ""
    title = f"[{e.title}]({e.url})" if e.url else e.title
    lines.append(f"{i}. {title}{where}{cat} - {when}")
  return f'\n\nUpcoming events related to "{idea}" nearby:\n' + "\n".join(lines)


def local_plan_text(idea: str, places: List[PlaceSuggestion], events: List[EventSuggestion]) -> str:
  """Deterministic outline used when no generation backend answers."""
  text = (
    "Plan Outline\n\n"
    "1) Clarify constraints (budget, time, location).\n"
    f'2) Generate 3 options relevant to: "{idea}" using nearby places.\n'
    "3) Compare pros/cons, pick a lead.\n"
    "4) Propose date/time and rough budget.\n"
    "5) Next steps: confirm attendees, book venue."
  )
  if places:
    text += "\n\nNearby suggestions:\n" + "\n".join(
      f"{i}. {p.name} - {int(p.distanceKm * 1000)} m | {p.url}" for i, p in enumerate(places, start=1)
    )
  if events:
    text += "\n\nRelevant nearby events:\n" + "\n".join(
      f"{i}. {f'[{e.title}]({e.url})' if e.url else e.title}{f' @ {e.place}' if e.place else ''}"
      for i, e in enumerate(events, start=1)
    )
  return text


def local_booking_text(request: BookingRequest) -> str:
  first_line = request.planText.strip().splitlines()[0]
  lines = [
    "Booking Checklist",
    "",
    f'For the plan: "{first_line}"',
    "1) Confirm the date, time and headcount with the group.",
    "2) Call or book online early for the top choice; ask about group tables.",
    "3) Keep a backup option in case the first choice is full.",
    "4) Share confirmations and cancellation terms with everyone.",
  ]
  options = [p.name for p in request.places] + [e.title for e in request.events]
  if options:
    lines.append("")
    lines.append("Options to book:")
    lines.extend(f"- {name}" for name in options)
  return "\n".join(lines)


class PlanOrchestrator:
  """Runs one idea through extraction, location resolution, gathering and generation."""

  def __init__(
    self,
    config: Optional[ServiceConfig] = None,
    client: Optional[httpx.AsyncClient] = None,
    geocoder: Optional[GeocodingGateway] = None,
    places: Optional[ProximitySearchGateway] = None,
    events: Optional[EventSearchGateway] = None,
    llm_clients: Optional[List[LlmClient]] = None,
    graph: AgentGraphConfig = AGENT_GRAPH,
    today: Optional[Callable[[], date]] = None,
  ) -> None:
    self.config = config or ServiceConfig()
    self.client = client
    self.geocoder = geocoder or GeocodingGateway(self.config, client)
    self.places = places or ProximitySearchGateway(self.config, client)
    self.events = events or EventSearchGateway(self.config, client)
    self.llm_clients = llm_clients
    self.graph = graph
    self.today = today or date.today
    self.state = PlanState.IDLE
    self.history: List[PlanState] = [PlanState.IDLE]

  def _enter(self, state: PlanState) -> None:
    self.state = state
    self.history.append(state)

  async def plan(self, request: Union[PlanRequest, str], confirm: Optional[ConfirmCallback] = None) -> Optional[PlanResult]:
    """Return the merged plan, or None when the user declines a location conflict.

    Raises ValueError for structurally invalid requests (blank idea, unknown agent).
    """
    self.history = [PlanState.IDLE]
    self.state = PlanState.IDLE

    self._enter(PlanState.EXTRACTING_CONTEXT)
    try:
      if isinstance(request, str):
        request = PlanRequest(ideaText=request)
      get_agent(request.agentId, self.graph)
      date_range = self._date_range(request)
      extracted = extract_location_phrase(request.ideaText)
    except ValueError:
      self._enter(PlanState.FAILED)
      raise

    self._enter(PlanState.RESOLVING_LOCATION)
    if extracted and (request.explicitCoords or request.explicitCityLabel):
      conflict = await self._find_conflict(extracted, request)
      if conflict is not None and not await self._confirm(confirm, conflict):
        logger.info("Location conflict declined (%s vs %s)", conflict.extractedPhrase, conflict.filterLabel)
        self._enter(PlanState.CANCELLED)
        return None
    origin = await self._resolve_origin(request, extracted)

    self._enter(PlanState.GATHERING_SUGGESTIONS)
    places, events = await self._gather(request, origin, date_range)

    self._enter(PlanState.GENERATING)
    user_input = (
      request.ideaText
      + nearby_context(places, origin.label)
      + events_context(events.events, request.ideaText)
    )
    generation, source = await self._generate(
      request.agentId,
      user_input,
      coords=origin.coords,
      city=origin.label,
      country=origin.country,
      local_text=lambda: local_plan_text(request.ideaText, places, events.events),
    )

    self._enter(PlanState.DONE)
    return PlanResult(
      narrativeText=generation.text,
      model=generation.model,
      provider=generation.provider,
      source=source,
      places=places,
      events=events.events,
      locationLabel=origin.label,
      extractedLocation=extracted,
      dateRange=date_range,
      eventsError=events.error,
    )

  async def book(self, request: BookingRequest) -> PlanResult:
    """Run the booking agent over a chosen plan and its picked places and events."""
    self.history = [PlanState.IDLE]
    self._enter(PlanState.GENERATING)
    context = [request.planText.strip()]
    if request.city:
      context.append(f"City: {request.city}")
    if request.startDate:
      end = request.endDate or request.startDate
      context.append(f"Dates: {request.startDate.isoformat()} to {end.isoformat()}")
    if request.budget:
      context.append(f"Budget level: {request.budget} of 5")
    user_input = "\n".join(context) + nearby_context(request.places, request.city)
    user_input += events_context(request.events, request.planText.strip().splitlines()[0])

    generation, source = await self._generate(
      "booking",
      user_input,
      coords=request.coords,
      city=request.city,
      country=request.country,
      local_text=lambda: local_booking_text(request),
    )
    self._enter(PlanState.DONE)
    return PlanResult(
      narrativeText=generation.text,
      model=generation.model,
      provider=generation.provider,
      source=source,
      places=request.places,
      events=request.events,
      locationLabel=request.city,
    )

  def _date_range(self, request: PlanRequest) -> Optional[DateRange]:
    if request.explicitStartDate:
      return DateRange(
        startDate=request.explicitStartDate,
        endDate=request.explicitEndDate or request.explicitStartDate,
      )
    return parse_semantic_dates(request.ideaText, today=self.today())

  async def _filter_country(self, request: PlanRequest) -> Optional[str]:
    if request.explicitCountry:
      return request.explicitCountry
    if request.explicitCoords:
      return (await self.geocoder.describe_location(request.explicitCoords)).countryCode
    found = await self.geocoder.forward_geocode_city(request.explicitCityLabel or "")
    return found.countryCode if found else None

  async def _find_conflict(self, extracted: str, request: PlanRequest) -> Optional[LocationConflict]:
    # The phrase is geocoded again here only to learn its country.
    place = await self.geocoder.find_place_from_text(extracted)
    if place is None or not place.countryCode:
      return None
    filter_country = await self._filter_country(request)
    if not filter_country or _same_country(place.countryCode, filter_country):
      return None
    return LocationConflict(
      extractedPhrase=extracted,
      extractedCountry=place.countryCode,
      filterLabel=request.explicitCityLabel or f"{request.explicitCoords.lat:.4f}, {request.explicitCoords.lon:.4f}",
      filterCountry=filter_country,
    )

  @staticmethod
  async def _confirm(confirm: Optional[ConfirmCallback], conflict: LocationConflict) -> bool:
    if confirm is None:
      return False
    answer = confirm(conflict)
    if inspect.isawaitable(answer):
      answer = await answer
    return bool(answer)

  async def _resolve_origin(self, request: PlanRequest, extracted: Optional[str]) -> _Origin:
    fallback_country = request.explicitCountry or request.userCountry
    if request.explicitCoords:
      return _Origin(request.explicitCoords, request.explicitCityLabel, fallback_country)
    if request.explicitCityLabel:
      found = await self.geocoder.forward_geocode_city(request.explicitCityLabel)
      if found is None:
        logger.warning("Could not geocode location filter %r; skipping nearby search.", request.explicitCityLabel)
      return _Origin(
        found.coords if found else None,
        request.explicitCityLabel,
        request.explicitCountry or (found.countryCode if found else None) or request.userCountry,
      )
    if request.autoDetectedLocation:
      detected = request.autoDetectedLocation
      return _Origin(detected.coords, detected.label, detected.countryCode or request.userCountry)
    # Without a recognizable phrase, let the geocoder parse the whole idea.
    place = await self.geocoder.find_place_from_text(extracted or request.ideaText)
    if place:
      return _Origin(place.coords, place.label, place.countryCode or request.userCountry)
    if request.currentCoords:
      return _Origin(request.currentCoords, request.currentCity, request.userCountry)
    if request.currentCity:
      found = await self.geocoder.forward_geocode_city(request.currentCity)
      if found:
        return _Origin(found.coords, request.currentCity, found.countryCode or request.userCountry)
    return _Origin(None, request.currentCity, request.userCountry)

  async def _gather(
    self, request: PlanRequest, origin: _Origin, date_range: Optional[DateRange]
  ) -> Tuple[List[PlaceSuggestion], EventSearchResult]:
    if origin.coords is None:
      return [], EventSearchResult()
    places_out, events_out = await asyncio.gather(
      self.places.search_nearby(request.ideaText, origin.coords, budget=request.explicitBudget),
      self.events.search_events(
        query=request.ideaText,
        origin=origin.coords,
        date_window=date_range,
        country=origin.country,
      ),
      return_exceptions=True,
    )
    if isinstance(places_out, Exception):
      logger.warning("Nearby search failed: %s", places_out)
      places_out = []
    if isinstance(events_out, Exception):
      logger.warning("Event search failed: %s", events_out)
      events_out = EventSearchResult(error="Event search failed.")
    return places_out, events_out

  def _clients_for(self, agent_id: str) -> List[LlmClient]:
    if self.llm_clients is not None:
      return self.llm_clients
    resolved = resolve_model(agent_id, "base", graph=self.graph)
    model = pinned_anthropic_model(resolved.model, resolved.provider, self.config.anthropic_model)
    return build_llm_clients(self.config, self.client, anthropic_model=model)

  async def _generate(
    self,
    agent_id: str,
    user_input: str,
    coords: Optional[Coordinates],
    city: Optional[str],
    country: Optional[str],
    local_text: Callable[[], str],
  ) -> Tuple[Generation, str]:
    agent = get_agent(agent_id, self.graph)
    resolved = resolve_model(agent_id, "base", graph=self.graph)
    graph_prompt = self.config.agent_graph_prompt or self.graph.graphPrompt
    system_prompt, _ = split_prompt(compose_prompt(agent.prompt, graph_prompt, user_input))
    gen_request = GenerationRequest(
      agentId=agent_id,
      mode="base",
      systemPrompt=system_prompt,
      userInput=user_input,
      coords=coords,
      city=city,
      country=country,
    )

    attempts: List[Attempt] = []
    for llm in self._clients_for(agent_id):
      attempts.append(attempt(llm.source, lambda llm=llm: llm.generate(gen_request), _GENERATION_ERRORS))

    async def _local() -> Generation:
      return Generation(text=local_text())

    attempts.append(attempt("local", _local))
    # The local tier never fails, so the chain always ends in a Success.
    chain = await first_success(attempts)
    success_value, tier = chain.success.value, chain.success.tier

    if tier == "api":
      # The proxy may omit model details; fall back to what was resolved.
      success_value = Generation(
        text=success_value.text,
        model=success_value.model or resolved.model,
        provider=success_value.provider or resolved.provider,
      )
    logger.info("Plan narrative for agent %s produced by %s tier", agent_id, tier)
    return success_value, tier

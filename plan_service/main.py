import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

import httpx
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from plan_service.config import ServiceConfig
from plan_service.models import (
  BookingRequest,
  Coordinates,
  EventSuggestion,
  FeedEvent,
  GeoResult,
  LocationConflict,
  PlaceSuggestion,
  PlanRequest,
  PlanResult,
  ResolvedLocation,
  ReverseGeocodeResult,
)
from plan_service.orchestrator import PlanOrchestrator
from plan_service.providers import DevicePositionSource, GeocodingGateway, LocationCache
from plan_service.selection import toggle_select

# Load .env file when running locally so provider/LLM keys are picked up.
load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("outing_planner")


@asynccontextmanager
async def lifespan(app: FastAPI):
  config = ServiceConfig.from_env()
  http_client = httpx.AsyncClient(timeout=config.http_timeout_sec)
  app.state.config = config
  app.state.http_client = http_client
  app.state.location_cache = LocationCache()
  try:
    yield
  finally:
    await http_client.aclose()


app = FastAPI(
  title="Outing Planner Service",
  version="0.1.0",
  description="Turns free-text outing ideas into plans with nearby places and events.",
  lifespan=lifespan,
)

app.add_middleware(
  CORSMiddleware,
  allow_origins=["*"],
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)


class PlanApiRequest(PlanRequest):
  confirmLocationConflict: bool = False


class ToggleSelectionRequest(BaseModel):
  selection: List[FeedEvent] = []
  feedEvent: Optional[FeedEvent] = None
  place: Optional[PlaceSuggestion] = None
  event: Optional[EventSuggestion] = None


class ToggleSelectionResponse(BaseModel):
  selection: List[FeedEvent]
  selected: bool


class DetectLocationRequest(BaseModel):
  refresh: bool = False
  # Live position reported by the caller's device, if it has one.
  deviceCoords: Optional[Coordinates] = None


class ResolveLocationRequest(BaseModel):
  text: str = Field(..., min_length=1)


def _reported_position(coords: Coordinates) -> DevicePositionSource:
  async def device(**_options) -> Coordinates:
    return coords

  return device


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
  logger.warning("HTTP %s: %s", exc.status_code, exc.detail)
  return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
  logger.warning("Rejected request to %s: %s", request.url.path, exc)
  return JSONResponse(status_code=422, content={"error": str(exc)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
  logger.exception("Unhandled exception")
  return JSONResponse(status_code=500, content={"error": "Server error"})


def get_config(request: Request) -> ServiceConfig:
  return request.app.state.config


def get_http_client(request: Request) -> httpx.AsyncClient:
  return request.app.state.http_client


def get_location_cache(request: Request) -> LocationCache:
  return request.app.state.location_cache


def get_orchestrator(
  config: ServiceConfig = Depends(get_config),
  client: httpx.AsyncClient = Depends(get_http_client),
) -> PlanOrchestrator:
  return PlanOrchestrator(config, client)


def get_geocoder(
  config: ServiceConfig = Depends(get_config),
  client: httpx.AsyncClient = Depends(get_http_client),
) -> GeocodingGateway:
  return GeocodingGateway(config, client)


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.post("/plan", response_model=PlanResult)
async def plan(payload: PlanApiRequest, orchestrator: PlanOrchestrator = Depends(get_orchestrator)) -> PlanResult:
  conflicts: List[LocationConflict] = []

  def confirm(conflict: LocationConflict) -> bool:
    conflicts.append(conflict)
    return payload.confirmLocationConflict

  request = PlanRequest(**payload.model_dump(exclude={"confirmLocationConflict"}))
  result = await orchestrator.plan(request, confirm=confirm)
  if result is None:
    conflict = conflicts[-1]
    return JSONResponse(
      status_code=409,
      content={"error": conflict.message(), "conflict": conflict.model_dump()},
    )
  return result


@app.post("/booking", response_model=PlanResult)
async def booking(payload: BookingRequest, orchestrator: PlanOrchestrator = Depends(get_orchestrator)) -> PlanResult:
  return await orchestrator.book(payload)


@app.post("/selection/toggle", response_model=ToggleSelectionResponse)
async def toggle_selection(payload: ToggleSelectionRequest) -> ToggleSelectionResponse:
  picked = [s for s in (payload.feedEvent, payload.place, payload.event) if s is not None]
  if len(picked) != 1:
    raise HTTPException(status_code=422, detail="Provide exactly one of feedEvent, place or event.")
  selection = toggle_select(payload.selection, picked[0])
  return ToggleSelectionResponse(selection=selection, selected=len(selection) > len(payload.selection))


@app.post("/location/detect", response_model=GeoResult)
async def detect_location(
  payload: DetectLocationRequest,
  geocoder: GeocodingGateway = Depends(get_geocoder),
  cache: LocationCache = Depends(get_location_cache),
) -> GeoResult:
  kind = "current" if payload.deviceCoords else "detected"
  if not payload.refresh:
    cached = cache.get(kind)
    if cached:
      return cached

  device = _reported_position(payload.deviceCoords) if payload.deviceCoords else None
  found = await geocoder.detect_current_location(device)
  if found is None:
    raise HTTPException(status_code=404, detail="Could not detect a location.")
  cache.set(kind, found)
  return found


@app.post("/location/resolve", response_model=ResolvedLocation)
async def resolve_location(
  payload: ResolveLocationRequest,
  geocoder: GeocodingGateway = Depends(get_geocoder),
) -> ResolvedLocation:
  text = payload.text.strip()
  place = await geocoder.find_place_from_text(text)
  if place:
    return place
  found = await geocoder.forward_geocode_city(text)
  if found is None:
    raise HTTPException(status_code=404, detail=f"No location found for {text!r}.")
  return ResolvedLocation(label=text, coords=found.coords, countryCode=found.countryCode)


@app.get("/location/reverse", response_model=ReverseGeocodeResult)
async def reverse_location(
  lat: float = Query(..., ge=-90, le=90),
  lon: float = Query(..., ge=-180, le=180),
  geocoder: GeocodingGateway = Depends(get_geocoder),
) -> ReverseGeocodeResult:
  return await geocoder.describe_location(Coordinates(lat=lat, lon=lon))


if __name__ == "__main__":
  import uvicorn

  host = os.getenv("HOST", "0.0.0.0")
  port = int(os.getenv("PORT", "8000"))
  uvicorn.run("plan_service.main:app", host=host, port=port, reload=True)

import os
from typing import Optional

from pydantic import BaseModel


def _float_env(name: str, default: float) -> float:
  try:
    return float(os.getenv(name, str(default)))
  except ValueError:
    return default


class ServiceConfig(BaseModel):
  """Provider keys, endpoints and timeouts shared by every gateway."""

  google_places_api_key: Optional[str] = None
  predicthq_token: Optional[str] = None
  anthropic_api_key: Optional[str] = None
  anthropic_model: str = "claude-sonnet-4-20250514"
  agent_api_url: Optional[str] = None
  agent_graph_prompt: Optional[str] = None

  http_timeout_sec: float = 12.0
  device_timeout_sec: float = 10.0
  user_agent: str = "OutingPlanner/0.1 (+https://github.com/outing-planner)"

  nominatim_base: str = "https://nominatim.openstreetmap.org"
  bigdatacloud_base: str = "https://api.bigdatacloud.net/data"
  google_maps_base: str = "https://maps.googleapis.com/maps/api"
  overpass_url: str = "https://overpass-api.de/api/interpreter"
  predicthq_base: str = "https://api.predicthq.com/v1"
  anthropic_base: str = "https://api.anthropic.com/v1"
  ipwho_url: str = "https://ipwho.is/?output=json"
  ipapi_url: str = "https://ipapi.co/json/"

  @classmethod
  def from_env(cls) -> "ServiceConfig":
    defaults = cls()
    return cls(
      google_places_api_key=os.getenv("GOOGLE_PLACES_API_KEY") or os.getenv("GOOGLE_MAPS_API_KEY") or None,
      predicthq_token=os.getenv("PREDICTHQ_TOKEN") or None,
      anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
      anthropic_model=os.getenv("ANTHROPIC_MODEL", defaults.anthropic_model),
      agent_api_url=os.getenv("AGENT_API_URL") or None,
      agent_graph_prompt=os.getenv("AGENT_GRAPH_PROMPT") or None,
      http_timeout_sec=_float_env("HTTP_TIMEOUT_SEC", defaults.http_timeout_sec),
      device_timeout_sec=_float_env("DEVICE_LOCATION_TIMEOUT_SEC", defaults.device_timeout_sec),
      user_agent=os.getenv("PLANNER_USER_AGENT", defaults.user_agent),
      nominatim_base=os.getenv("NOMINATIM_BASE", defaults.nominatim_base),
      overpass_url=os.getenv("OVERPASS_URL", defaults.overpass_url),
      predicthq_base=os.getenv("PREDICTHQ_BASE", defaults.predicthq_base),
    )

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx
from pydantic import BaseModel

from plan_service.config import ServiceConfig
from plan_service.http import open_client
from plan_service.models import Coordinates

logger = logging.getLogger("outing_planner")

ANTHROPIC_VERSION = "2023-06-01"
MAX_TOKENS = 800


class LlmError(Exception):
  """A generation backend was reachable but did not produce usable text."""


class GenerationRequest(BaseModel):
  agentId: str
  mode: str = "base"
  systemPrompt: str
  userInput: str
  coords: Optional[Coordinates] = None
  city: Optional[str] = None
  country: Optional[str] = None


class Generation(BaseModel):
  text: str
  model: Optional[str] = None
  provider: Optional[str] = None


class LlmClient(ABC):
  source: str = ""

  @abstractmethod
  async def generate(self, request: GenerationRequest) -> Generation:
    raise NotImplementedError


class ProxyLlmClient(LlmClient):
  """Backend agent endpoint that keeps provider keys off the caller."""

  source = "api"

  def __init__(self, api_url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0) -> None:
    self.api_url = api_url
    self.client = client
    self.timeout = timeout

  async def generate(self, request: GenerationRequest) -> Generation:
    payload = {
      "agentId": request.agentId,
      "userInput": request.userInput,
      "mode": request.mode,
      "coords": request.coords.model_dump() if request.coords else None,
      "city": request.city,
      "country": request.country,
    }
    async with open_client(self.client, self.timeout) as client:
      resp = await client.post(self.api_url, json=payload)
    if resp.status_code != 200:
      raise LlmError(f"Agent proxy returned {resp.status_code}: {resp.text[:200]}")
    try:
      data = resp.json()
    except ValueError:
      data = resp.text
    if isinstance(data, dict):
      text = data.get("text")
      if not isinstance(text, str) or not text.strip():
        raise LlmError("Agent proxy response had no text")
      return Generation(text=text, model=data.get("model"), provider=data.get("provider"))
    if isinstance(data, str) and data.strip():
      return Generation(text=data)
    raise LlmError("Agent proxy response was empty")


class AnthropicLlmClient(LlmClient):
  source = "provider-direct"

  def __init__(
    self,
    api_key: str,
    model: str,
    base_url: str = "https://api.anthropic.com/v1",
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 30.0,
  ) -> None:
    self.api_key = api_key
    self.model = model
    self.base_url = base_url.rstrip("/")
    self.client = client
    self.timeout = timeout

  async def generate(self, request: GenerationRequest) -> Generation:
    headers = {
      "content-type": "application/json",
      "x-api-key": self.api_key,
      "anthropic-version": ANTHROPIC_VERSION,
    }
    payload = {
      "model": self.model,
      "max_tokens": MAX_TOKENS,
      "system": request.systemPrompt,
      "messages": [{"role": "user", "content": request.userInput}],
    }
    async with open_client(self.client, self.timeout) as client:
      resp = await client.post(f"{self.base_url}/messages", json=payload, headers=headers)
    if resp.status_code != 200:
      raise LlmError(f"Anthropic returned {resp.status_code}: {resp.text[:200]}")
    try:
      data = resp.json()
    except ValueError as exc:
      raise LlmError(f"Anthropic returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
      raise LlmError("Anthropic response was not an object")
    content = data.get("content")
    text = ""
    for block in content if isinstance(content, list) else []:
      if isinstance(block, dict) and block.get("type", "text") == "text":
        text += block.get("text") or ""
    if not text.strip():
      raise LlmError("Anthropic response had no text content")
    return Generation(text=text, model=data.get("model") or self.model, provider="anthropic")


def pinned_anthropic_model(resolved_model: Optional[str], resolved_provider: Optional[str], default: str) -> str:
  """The direct tier always talks to Anthropic; reuse the resolved model only when it is Anthropic's."""
  if resolved_model and resolved_model.startswith("anthropic/"):
    return resolved_model.split("/", 1)[1]
  if resolved_provider == "anthropic" and resolved_model and "/" not in resolved_model:
    return resolved_model
  return default


def build_llm_clients(
  config: ServiceConfig,
  client: Optional[httpx.AsyncClient] = None,
  anthropic_model: Optional[str] = None,
) -> List[LlmClient]:
  clients: List[LlmClient] = []
  if config.agent_api_url:
    clients.append(ProxyLlmClient(config.agent_api_url, client=client, timeout=config.http_timeout_sec))
  else:
    logger.info("AGENT_API_URL not set; proxy generation disabled.")

  if config.anthropic_api_key:
    clients.append(
      AnthropicLlmClient(
        api_key=config.anthropic_api_key,
        model=anthropic_model or config.anthropic_model,
        base_url=config.anthropic_base,
        client=client,
        timeout=config.http_timeout_sec,
      )
    )
  else:
    logger.info("ANTHROPIC_API_KEY not set; direct provider generation disabled.")
  return clients

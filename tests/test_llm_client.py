import asyncio
import json

import httpx
import pytest

from plan_service.config import ServiceConfig
from plan_service.llm.client import (
  AnthropicLlmClient,
  GenerationRequest,
  LlmError,
  ProxyLlmClient,
  build_llm_clients,
  pinned_anthropic_model,
)
from plan_service.models import Coordinates

REQUEST = GenerationRequest(
  agentId="planner",
  systemPrompt="[Graph Prompt]\n\n\n[Agent Prompt]\nplan",
  userInput="brunch in Brooklyn",
  coords=Coordinates(lat=40.6782, lon=-73.9442),
  city="Brooklyn",
)


def test_proxy_posts_agent_payload(router):
  router.routes["agents.example.com"] = lambda r: httpx.Response(200, json={"text": "Go to brunch", "model": "m"})
  llm = ProxyLlmClient("https://agents.example.com/run", client=router.client())
  result = asyncio.run(llm.generate(REQUEST))
  assert result.text == "Go to brunch"
  assert result.model == "m"
  body = json.loads(router.requests[0].content)
  assert body["agentId"] == "planner"
  assert body["userInput"] == "brunch in Brooklyn"
  assert body["mode"] == "base"
  assert body["coords"] == {"lat": 40.6782, "lon": -73.9442}


def test_proxy_error_status_raises(router):
  router.routes["agents.example.com"] = lambda r: httpx.Response(502, text="bad gateway")
  llm = ProxyLlmClient("https://agents.example.com/run", client=router.client())
  with pytest.raises(LlmError):
    asyncio.run(llm.generate(REQUEST))


def test_anthropic_messages_call(router):
  router.routes["api.anthropic.com"] = lambda r: httpx.Response(200, json={
    "model": "claude-sonnet-4-20250514",
    "content": [{"type": "text", "text": "1) Book a table"}],
  })
  llm = AnthropicLlmClient("secret", "claude-sonnet-4-20250514", client=router.client())
  result = asyncio.run(llm.generate(REQUEST))
  assert result.text == "1) Book a table"
  assert result.provider == "anthropic"

  request = router.requests[0]
  assert request.url.path == "/v1/messages"
  assert request.headers["x-api-key"] == "secret"
  assert request.headers["anthropic-version"] == "2023-06-01"
  body = json.loads(request.content)
  assert body["max_tokens"] == 800
  assert body["system"] == REQUEST.systemPrompt
  assert body["messages"] == [{"role": "user", "content": "brunch in Brooklyn"}]


def test_pinned_anthropic_model():
  assert pinned_anthropic_model("anthropic/claude-x", "anthropic", "fallback") == "claude-x"
  assert pinned_anthropic_model("openai/gpt-4.1-mini", "openai", "fallback") == "fallback"
  assert pinned_anthropic_model(None, None, "fallback") == "fallback"


def test_build_llm_clients_follows_config():
  assert build_llm_clients(ServiceConfig()) == []
  clients = build_llm_clients(ServiceConfig(agent_api_url="https://a.example/run", anthropic_api_key="k"))
  assert [c.source for c in clients] == ["api", "provider-direct"]


@pytest.mark.parametrize("reply", [
  httpx.Response(200, json=["overloaded"]),
  httpx.Response(200, json="overloaded"),
  httpx.Response(200, text="<html>busy</html>"),
  httpx.Response(200, json={"content": "not a list"}),
])
def test_anthropic_malformed_body_is_an_llm_error(router, reply):
  router.routes["api.anthropic.com"] = lambda r: reply
  llm = AnthropicLlmClient("secret", "claude-sonnet-4-20250514", client=router.client())
  with pytest.raises(LlmError):
    asyncio.run(llm.generate(REQUEST))

from typing import Callable, Dict, List

import httpx
import pytest

from plan_service.config import ServiceConfig


class Router:
  """MockTransport handler that dispatches on host and records every request."""

  def __init__(self, routes: Dict[str, Callable[[httpx.Request], httpx.Response]] | None = None) -> None:
    self.routes = dict(routes or {})
    self.requests: List[httpx.Request] = []

  def __call__(self, request: httpx.Request) -> httpx.Response:
    self.requests.append(request)
    handler = self.routes.get(request.url.host)
    if handler is None:
      return httpx.Response(503, text=f"no route for {request.url.host}")
    return handler(request)

  def hosts(self) -> List[str]:
    return [r.url.host for r in self.requests]

  def client(self) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def config() -> ServiceConfig:
  return ServiceConfig()


@pytest.fixture
def router() -> Router:
  return Router()

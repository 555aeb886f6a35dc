from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx


@asynccontextmanager
async def open_client(client: Optional[httpx.AsyncClient], timeout: float) -> AsyncIterator[httpx.AsyncClient]:
  """Yield the shared client when one was injected, otherwise a short-lived one."""
  if client is not None:
    yield client
    return
  async with httpx.AsyncClient(timeout=timeout) as owned:
    yield owned

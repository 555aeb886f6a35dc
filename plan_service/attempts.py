"""Ordered fallback chains: each attempt reports Success or Failure, the first Success wins."""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, Tuple, TypeVar, Union

import httpx

logger = logging.getLogger("outing_planner")

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
  tier: str
  value: T


@dataclass(frozen=True)
class Failure:
  tier: str
  reason: str


Outcome = Union[Success[T], Failure]
Attempt = Callable[[], Awaitable[Outcome]]

# Errors an attempt converts into a Failure instead of propagating.
RECOVERABLE_ERRORS: Tuple[type, ...] = (httpx.HTTPError, ValueError, KeyError, TypeError)


def attempt(tier: str, run: Callable[[], Awaitable[T]], recoverable: Tuple[type, ...] = RECOVERABLE_ERRORS) -> Attempt:
  """Wrap a coroutine factory so recoverable errors come back as Failure."""

  async def _run() -> Outcome:
    try:
      return Success(tier, await run())
    except recoverable as exc:
      return Failure(tier, f"{exc.__class__.__name__}: {exc}")

  return _run


@dataclass
class ChainResult(Generic[T]):
  success: Optional[Success[T]] = None
  failures: List[Failure] = field(default_factory=list)


async def first_success(attempts: Sequence[Attempt]) -> ChainResult:
  """Run attempts in order and stop at the first Success."""
  result: ChainResult = ChainResult()
  for run in attempts:
    outcome = await run()
    if isinstance(outcome, Success):
      result.success = outcome
      return result
    logger.warning("Attempt %s failed: %s", outcome.tier, outcome.reason)
    result.failures.append(outcome)
  return result

"""Agent registry, model resolution and prompt assembly.

Nothing here touches the network; the orchestrator hands the resolved model
and composed prompt to an LLM client.
"""

from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel

Mode = Literal["base", "structuredOutput", "summarizer"]
MODES: Tuple[str, ...] = ("base", "structuredOutput", "summarizer")

USER_SECTION = "\n\n[User]\n"


class ModelConfig(BaseModel):
  provider: str
  model: str
  providerOptions: Dict[str, Any] = {}


class ModelsSettings(BaseModel):
  base: Optional[ModelConfig] = None
  structuredOutput: Optional[ModelConfig] = None
  summarizer: Optional[ModelConfig] = None


class AgentOptions(BaseModel):
  id: str
  name: str
  description: str
  prompt: str
  models: Optional[ModelsSettings] = None
  canTransferTo: List[str] = []
  canDelegateTo: List[str] = []


class AgentGraphConfig(BaseModel):
  graphPrompt: Optional[str] = None
  models: Optional[ModelsSettings] = None
  agents: List[AgentOptions]


class UnknownAgentError(ValueError):
  pass


DEFAULT_MODELS = ModelsSettings(
  base=ModelConfig(
    provider="anthropic",
    model="anthropic/claude-sonnet-4-20250514",
    providerOptions={"temperature": 0.2, "timeout": 30},
  ),
  structuredOutput=ModelConfig(
    provider="openai",
    model="openai/gpt-4.1-mini-2025-04-14",
    providerOptions={"temperature": 0, "timeout": 30},
  ),
  summarizer=ModelConfig(
    provider="openai",
    model="openai/gpt-4.1-nano-2025-04-14",
    providerOptions={"temperature": 0.2, "timeout": 20},
  ),
)

GRAPH_PROMPT = (
  "You are part of a small team of planning agents.\n"
  "Be concise, kind, and specific. Prefer actionable next steps.\n"
  "Share assumptions and ask for missing context."
)

AGENT_GRAPH = AgentGraphConfig(
  graphPrompt=GRAPH_PROMPT,
  agents=[
    AgentOptions(
      id="planner",
      name="Planner Agent",
      description="Turns user ideas into concrete planning steps and options.",
      prompt=(
        "Generate a short, prioritized plan with 3-5 concrete steps. Include any dependencies "
        "and suggested order. Prefer local venues and budget-friendly ideas when applicable."
      ),
      canTransferTo=["booking"],
      canDelegateTo=["booking"],
    ),
    AgentOptions(
      id="booking",
      name="Booking Agent",
      description="Handles reservations, bookings, and follow-up actions for planned activities.",
      prompt=(
        "You are a booking specialist who helps users make reservations and bookings for their "
        "planned activities. When given a plan or list of venues/events, provide specific booking "
        "instructions, contact information, reservation tips, and alternative options. Focus on "
        "actionable next steps like phone numbers, websites, booking platforms, and optimal timing "
        "for reservations. Include backup options and practical advice for securing bookings."
      ),
      canTransferTo=["planner", "summarizer"],
      canDelegateTo=["summarizer"],
    ),
    AgentOptions(
      id="summarizer",
      name="Summarizer Agent",
      description="Summarizes sessions or event lists into digestible updates.",
      prompt="Summarize the content into a brief, friendly update with bullet points and a clear CTA.",
      canTransferTo=["planner", "booking"],
    ),
  ],
)


def get_agent(agent_id: str, graph: AgentGraphConfig = AGENT_GRAPH) -> AgentOptions:
  for agent in graph.agents:
    if agent.id == agent_id:
      return agent
  raise UnknownAgentError(f"Unknown agent: {agent_id}")


def _pick(settings: Optional[ModelsSettings], mode: str) -> Optional[ModelConfig]:
  if settings is None:
    return None
  return getattr(settings, mode)


def resolve_model(
  agent_id: str,
  mode: Mode = "base",
  graph: AgentGraphConfig = AGENT_GRAPH,
  project: Optional[ModelsSettings] = None,
) -> ModelConfig:
  """First non-empty of agent override, graph override, project default, built-in default."""
  if mode not in MODES:
    raise ValueError(f"Unknown model mode: {mode}")
  agent = get_agent(agent_id, graph)
  for settings in (agent.models, graph.models, project, DEFAULT_MODELS):
    picked = _pick(settings, mode)
    if picked is not None:
      return picked
  raise ValueError(f"No model configured for mode {mode}")


def compose_prompt(agent_prompt: str, graph_prompt: Optional[str], user_input: str) -> str:
  sections = [
    "[Graph Prompt]\n" + (graph_prompt or ""),
    "[Agent Prompt]\n" + (agent_prompt or ""),
  ]
  return "\n\n".join(sections) + USER_SECTION + (user_input or "")


def split_prompt(prompt: str) -> Tuple[str, str]:
  """Return (system, user) halves of a composed prompt."""
  system, sep, user = prompt.partition(USER_SECTION)
  if not sep:
    return prompt, ""
  return system, user

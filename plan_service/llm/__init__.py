from plan_service.llm.agents import (
  AGENT_GRAPH,
  AgentGraphConfig,
  AgentOptions,
  ModelConfig,
  ModelsSettings,
  UnknownAgentError,
  compose_prompt,
  get_agent,
  resolve_model,
  split_prompt,
)
from plan_service.llm.client import (
  AnthropicLlmClient,
  Generation,
  GenerationRequest,
  LlmClient,
  LlmError,
  ProxyLlmClient,
  build_llm_clients,
)

__all__ = [
  "AGENT_GRAPH",
  "AgentGraphConfig",
  "AgentOptions",
  "ModelConfig",
  "ModelsSettings",
  "UnknownAgentError",
  "compose_prompt",
  "get_agent",
  "resolve_model",
  "split_prompt",
  "AnthropicLlmClient",
  "Generation",
  "GenerationRequest",
  "LlmClient",
  "LlmError",
  "ProxyLlmClient",
  "build_llm_clients",
]

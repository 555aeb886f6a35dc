import pytest

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


def _graph(agent_models=None, graph_models=None):
  return AgentGraphConfig(
    graphPrompt="graph",
    models=graph_models,
    agents=[AgentOptions(id="a", name="A", description="d", prompt="p", models=agent_models)],
  )


def test_built_in_defaults():
  base = resolve_model("planner", "base")
  assert base.provider == "anthropic"
  assert base.model.startswith("anthropic/")
  assert resolve_model("planner", "summarizer").provider == "openai"


def test_precedence_agent_then_graph_then_project():
  agent_cfg = ModelConfig(provider="anthropic", model="anthropic/agent-model")
  graph_cfg = ModelConfig(provider="openai", model="openai/graph-model")
  project_cfg = ModelConfig(provider="openai", model="openai/project-model")
  project = ModelsSettings(base=project_cfg, summarizer=project_cfg)

  graph = _graph(ModelsSettings(base=agent_cfg), ModelsSettings(base=graph_cfg, structuredOutput=graph_cfg))
  assert resolve_model("a", "base", graph=graph, project=project) == agent_cfg
  assert resolve_model("a", "structuredOutput", graph=graph, project=project) == graph_cfg
  assert resolve_model("a", "summarizer", graph=graph, project=project) == project_cfg


def test_unknown_agent_and_mode_are_usage_errors():
  with pytest.raises(UnknownAgentError):
    get_agent("nobody")
  with pytest.raises(ValueError):
    resolve_model("planner", "poetry")


def test_registry_transfer_targets():
  assert get_agent("planner").canTransferTo == ["booking"]
  assert {a.id for a in AGENT_GRAPH.agents} == {"planner", "booking", "summarizer"}


def test_compose_prompt_section_order():
  prompt = compose_prompt("agent rules", "graph rules", "dinner in Paris")
  assert prompt == "[Graph Prompt]\ngraph rules\n\n[Agent Prompt]\nagent rules\n\n[User]\ndinner in Paris"
  system, user = split_prompt(prompt)
  assert system == "[Graph Prompt]\ngraph rules\n\n[Agent Prompt]\nagent rules"
  assert user == "dinner in Paris"

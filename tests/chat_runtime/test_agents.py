"""Unit tests for AgentManager: lifecycle, status, and the pending-action queue."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from branchgpt.chat_runtime.managers import AgentManager, AgentNotFoundError, ColorPalette
from branchgpt.chat_runtime.managers.agents import AGENT_COLORS
from branchgpt.chat_runtime.models import (
    ActionStatus,
    AgentConfig,
    AgentStatus,
    AgentUpdate,
    ClarifyingQuestion,
    ClarifyingQuestionAction,
    ToolApprovalAction,
    ToolApprovalDecision,
    ToolApprovalRequest,
)
from branchgpt.chat_runtime.settings import BranchSettings


def _approval(agent_id: str, **kwargs) -> ToolApprovalAction:
    return ToolApprovalAction(
        agent_id=agent_id,
        data=ToolApprovalRequest(tool_name="shell", command="ls", description="List files"),
        **kwargs,
    )


def _question(agent_id: str, **kwargs) -> ClarifyingQuestionAction:
    return ClarifyingQuestionAction(agent_id=agent_id, data=ClarifyingQuestion(question="Which?"), **kwargs)


@pytest.fixture
def agent_id(agents: AgentManager) -> str:
    return agents.create_agent(AgentConfig(workspace_id="w1", provider="anthropic"))


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def test_create_agent_defaults(agents: AgentManager) -> None:
    aid = agents.create_agent(AgentConfig(workspace_id="w1", provider="openai"))

    agent = agents.get_agent(aid)
    assert agent.name == f"Agent {aid[:8]}"
    assert agent.status == AgentStatus.IDLE
    assert agent.model == "gpt-4o"
    assert agent.conversation_id == ""
    assert agent.metadata.temperature == 0.7
    assert agent.metadata.max_tokens == 4096
    assert agent.metadata.color == AGENT_COLORS[0]


def test_create_agent_explicit_values(agents: AgentManager) -> None:
    aid = agents.create_agent(
        AgentConfig(
            name="Coder",
            workspace_id="w1",
            provider="anthropic",
            model="claude-opus-4-6",
            temperature=0.0,
            max_tokens=100,
            color="#000000",
        )
    )
    agent = agents.get_agent(aid)
    assert agent.name == "Coder"
    assert agent.model == "claude-opus-4-6"
    assert agent.metadata.temperature == 0.0
    assert agent.metadata.max_tokens == 100
    assert agent.metadata.color == "#000000"


def test_default_model_override_from_settings(tmp_path) -> None:
    settings = BranchSettings(_env_file=None, data_root=str(tmp_path), default_models={"openai": "gpt-4-turbo"})
    manager = AgentManager(settings)
    aid = manager.create_agent(AgentConfig(workspace_id="w", provider="openai"))
    assert manager.get_agent(aid).model == "gpt-4-turbo"


def test_colors_round_robin(agents: AgentManager) -> None:
    colors = [
        agents.get_agent(agents.create_agent(AgentConfig(workspace_id="w", provider="openai"))).metadata.color
        for _ in range(len(AGENT_COLORS) + 1)
    ]
    assert colors[: len(AGENT_COLORS)] == list(AGENT_COLORS)
    assert colors[-1] == AGENT_COLORS[0]


def test_palette_shared_between_managers(settings: BranchSettings) -> None:
    palette = ColorPalette()
    first = AgentManager(settings, palette=palette)
    second = AgentManager(settings, palette=palette)

    a = first.create_agent(AgentConfig(workspace_id="w", provider="openai"))
    b = second.create_agent(AgentConfig(workspace_id="w", provider="openai"))
    assert first.get_agent(a).metadata.color == AGENT_COLORS[0]
    assert second.get_agent(b).metadata.color == AGENT_COLORS[1]

    palette.reset()
    assert palette.next_color() == AGENT_COLORS[0]


def test_empty_palette_rejected() -> None:
    with pytest.raises(ValueError):
        ColorPalette(())


def test_update_agent_and_status(agents: AgentManager, agent_id: str) -> None:
    before = agents.get_agent(agent_id)
    agents.update_agent(agent_id, AgentUpdate(name="Renamed", conversation_id="c1"))
    agents.update_status(agent_id, AgentStatus.THINKING)

    after = agents.get_agent(agent_id)
    assert after.name == "Renamed"
    assert after.conversation_id == "c1"
    assert after.status == AgentStatus.THINKING
    assert after.model == before.model
    assert after.updated_at > before.updated_at
    assert before.status == AgentStatus.IDLE


def test_update_agent_rejects_none_for_required_field(agents: AgentManager, settings: BranchSettings) -> None:
    keep = agents.create_agent(AgentConfig(workspace_id="w1", provider="openai", name="Keep"))
    other = agents.create_agent(AgentConfig(workspace_id="w1", provider="openai", name="Other"))

    with pytest.raises(ValidationError):
        agents.update_agent(other, AgentUpdate(name=None))
    assert agents.get_agent(other).name == "Other"

    reloaded = AgentManager(settings)
    reloaded.restore(agents.dump())
    assert {a.name for a in reloaded.all_agents()} == {"Keep", "Other"}
    assert reloaded.get_agent(keep) is not None


def test_mutations_on_unknown_agent_are_noops(agents: AgentManager) -> None:
    agents.update_agent("missing", AgentUpdate(name="x"))
    agents.update_status("missing", AgentStatus.ERROR)
    agents.delete_agent("missing")
    assert agents.get_agent("missing") is None
    assert agents.count() == 0


def test_require_agent(agents: AgentManager, agent_id: str) -> None:
    assert agents.require_agent(agent_id).id == agent_id
    with pytest.raises(AgentNotFoundError):
        agents.require_agent("missing")


def test_list_by_workspace(agents: AgentManager) -> None:
    a = agents.create_agent(AgentConfig(workspace_id="w1", provider="openai"))
    agents.create_agent(AgentConfig(workspace_id="w2", provider="openai"))
    assert [x.id for x in agents.list_by_workspace("w1")] == [a]
    assert agents.list_by_workspace("nope") == []
    assert len(agents.all_agents()) == 2


def test_delete_agent_drops_pending_queue(agents: AgentManager, agent_id: str) -> None:
    agents.add_pending_action(_approval(agent_id))
    agents.delete_agent(agent_id)

    assert agents.get_agent(agent_id) is None
    assert agents.get_pending_actions(agent_id) == []
    assert agents.get_all_pending_actions() == []


# ---------------------------------------------------------------------------
# Pending actions
# ---------------------------------------------------------------------------


def test_add_pending_action_sets_waiting(agents: AgentManager, agent_id: str) -> None:
    action = _approval(agent_id)
    agents.add_pending_action(action)

    assert agents.get_pending_actions(agent_id) == [action]
    assert agents.get_agent(agent_id).status == AgentStatus.WAITING_APPROVAL


def test_resolve_tool_approval(agents: AgentManager, agent_id: str) -> None:
    action = _approval(agent_id)
    agents.add_pending_action(action)

    resolved = agents.resolve_pending_action(agent_id, action.id, True)
    assert resolved.status == ActionStatus.APPROVED
    assert resolved.decision == ToolApprovalDecision.ALLOW
    assert agents.get_pending_actions(agent_id) == []
    assert agents.get_agent(agent_id).status == AgentStatus.IDLE


def test_resolve_tool_approval_with_decision_string(agents: AgentManager, agent_id: str) -> None:
    action = _approval(agent_id)
    agents.add_pending_action(action)

    resolved = agents.resolve_pending_action(agent_id, action.id, "allow_all")
    assert resolved.decision == ToolApprovalDecision.ALLOW_ALL


def test_resolve_clarifying_question(agents: AgentManager, agent_id: str) -> None:
    action = _question(agent_id)
    agents.add_pending_action(action)

    resolved = agents.resolve_pending_action(agent_id, action.id, "the second one")
    assert resolved.status == ActionStatus.APPROVED
    assert resolved.response == "the second one"


def test_falsy_resolution_denies(agents: AgentManager, agent_id: str) -> None:
    action = _question(agent_id)
    agents.add_pending_action(action)

    resolved = agents.resolve_pending_action(agent_id, action.id, None)
    assert resolved.status == ActionStatus.DENIED
    assert resolved.response is None


def test_resolve_twice_is_noop(agents: AgentManager, agent_id: str) -> None:
    first, second = _approval(agent_id), _approval(agent_id)
    agents.add_pending_action(first)
    agents.add_pending_action(second)

    assert agents.resolve_pending_action(agent_id, first.id, True) is not None
    assert len(agents.get_pending_actions(agent_id)) == 1

    assert agents.resolve_pending_action(agent_id, first.id, True) is None
    assert len(agents.get_pending_actions(agent_id)) == 1


def test_status_stays_waiting_while_actions_remain(agents: AgentManager, agent_id: str) -> None:
    first, second = _approval(agent_id), _question(agent_id)
    agents.add_pending_action(first)
    agents.add_pending_action(second)

    agents.resolve_pending_action(agent_id, first.id, True)
    assert agents.get_agent(agent_id).status == AgentStatus.WAITING_APPROVAL

    agents.resolve_pending_action(agent_id, second.id, "yes")
    assert agents.get_agent(agent_id).status == AgentStatus.IDLE


def test_resolve_unknown_action_leaves_state(agents: AgentManager, agent_id: str) -> None:
    agents.add_pending_action(_approval(agent_id))
    assert agents.resolve_pending_action(agent_id, "missing", True) is None
    assert agents.resolve_pending_action("other-agent", "missing", True) is None
    assert agents.get_agent(agent_id).status == AgentStatus.WAITING_APPROVAL


def test_get_all_pending_actions_sorted_by_timestamp(agents: AgentManager) -> None:
    a = agents.create_agent(AgentConfig(workspace_id="w", provider="openai"))
    b = agents.create_agent(AgentConfig(workspace_id="w", provider="openai"))
    base = datetime(2025, 1, 1, tzinfo=UTC)

    late = _approval(a, timestamp=base + timedelta(seconds=30))
    early = _question(b, timestamp=base)
    middle = _question(a, timestamp=base + timedelta(seconds=10))
    for action in (late, early, middle):
        agents.add_pending_action(action)

    assert [x.id for x in agents.get_all_pending_actions()] == [early.id, middle.id, late.id]


def test_clear_pending_actions(agents: AgentManager, agent_id: str) -> None:
    agents.add_pending_action(_approval(agent_id))
    agents.clear_pending_actions(agent_id)
    assert agents.get_pending_actions(agent_id) == []
    assert agents.get_agent(agent_id).status == AgentStatus.IDLE


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def test_dump_restore_keeps_pending_queue(agents: AgentManager, agent_id: str, settings: BranchSettings) -> None:
    approval, question = _approval(agent_id), _question(agent_id)
    agents.add_pending_action(approval)
    agents.add_pending_action(question)

    restored = AgentManager(settings)
    restored.restore(agents.dump())

    assert restored.get_agent(agent_id) == agents.get_agent(agent_id)
    pending = restored.get_pending_actions(agent_id)
    assert [type(x) for x in pending] == [ToolApprovalAction, ClarifyingQuestionAction]
    assert [x.id for x in pending] == [approval.id, question.id]

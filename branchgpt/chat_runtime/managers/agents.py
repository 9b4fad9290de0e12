"""Agent lifecycle, status transitions, and the pending-action queue.

Each agent owns a FIFO queue of actions (tool approvals, clarifying
questions) awaiting user resolution.  Queuing an action forces the agent into
``waiting_approval``; the agent returns to ``idle`` only once its queue is
empty again.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from loguru import logger
from pydantic import TypeAdapter

from branchgpt.chat_runtime.managers.base import Clock, ManagerBase, explicit_changes, replace
from branchgpt.chat_runtime.models.agent import (
    Agent,
    AgentAction,
    AgentConfig,
    AgentMetadata,
    AgentUpdate,
    ClarifyingQuestionAction,
    ToolApprovalAction,
)
from branchgpt.chat_runtime.models.enums import ActionStatus, AgentStatus, ToolApprovalDecision

if TYPE_CHECKING:
    from branchgpt.chat_runtime.settings import BranchSettings

_AGENT_PAIRS = TypeAdapter(list[tuple[str, Agent]])
_PENDING_PAIRS = TypeAdapter(list[tuple[str, list[AgentAction]]])

AGENT_COLORS: tuple[str, ...] = (
    "#8B5CF6",  # purple
    "#3B82F6",  # blue
    "#10B981",  # green
    "#F59E0B",  # amber
    "#EF4444",  # red
    "#EC4899",  # pink
    "#06B6D4",  # cyan
    "#84CC16",  # lime
)


class AgentNotFoundError(LookupError):
    """Raised when an agent is required but not found."""


class ColorPalette:
    """Round-robin color assignment shared by everything holding this instance."""

    def __init__(self, colors: tuple[str, ...] = AGENT_COLORS) -> None:
        if not colors:
            msg = "Color palette must not be empty"
            raise ValueError(msg)
        self._colors = colors
        self._index = 0

    def next_color(self) -> str:
        color = self._colors[self._index % len(self._colors)]
        self._index += 1
        return color

    def reset(self) -> None:
        self._index = 0


class AgentManager(ManagerBase):
    """In-memory agent store."""

    def __init__(
        self,
        settings: BranchSettings | None = None,
        *,
        palette: ColorPalette | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(clock)
        if settings is None:
            from branchgpt.chat_runtime.settings import get_settings

            settings = get_settings()
        self._settings = settings
        self._palette = palette or ColorPalette()
        self._agents: dict[str, Agent] = {}
        self._pending: dict[str, list[AgentAction]] = {}

    # -- Agent lifecycle -------------------------------------------------------

    def create_agent(self, config: AgentConfig) -> str:
        """Create an idle agent and return its id.

        Raises ``UnknownProviderError`` if no model is given and the provider
        has no default model.
        """
        agent_id = str(uuid.uuid4())
        now = self._now()
        temperature = config.temperature if config.temperature is not None else self._settings.default_temperature
        max_tokens = config.max_tokens if config.max_tokens is not None else self._settings.default_max_tokens

        agent = Agent(
            id=agent_id,
            name=config.name or f"Agent {agent_id[:8]}",
            status=AgentStatus.IDLE,
            workspace_id=config.workspace_id,
            conversation_id="",
            model=config.model or self._settings.default_model_for(config.provider),
            provider=config.provider,
            created_at=now,
            updated_at=now,
            metadata=AgentMetadata(
                system_prompt=config.system_prompt,
                temperature=temperature,
                max_tokens=max_tokens,
                color=config.color or self._palette.next_color(),
            ),
        )
        self._agents[agent_id] = agent

        logger.info(
            "Agent created: {} (workspace={}, model={}:{})",
            agent_id,
            agent.workspace_id,
            agent.provider,
            agent.model,
        )
        self._notify()
        return agent_id

    def update_agent(self, agent_id: str, body: AgentUpdate) -> None:
        agent = self._agents.get(agent_id)
        if agent is None:
            return
        self._agents[agent_id] = replace(agent, **explicit_changes(body), updated_at=self._now())
        self._notify()

    def update_status(self, agent_id: str, status: AgentStatus) -> None:
        agent = self._agents.get(agent_id)
        if agent is None:
            return
        logger.debug("Agent {}: {} -> {}", agent_id, agent.status, status)
        self._agents[agent_id] = replace(agent, status=status, updated_at=self._now())
        self._notify()

    def delete_agent(self, agent_id: str) -> None:
        """Remove an agent together with its pending-action queue."""
        removed = self._agents.pop(agent_id, None)
        queue = self._pending.pop(agent_id, None)
        if removed is None and queue is None:
            return
        logger.info("Agent deleted: {}", agent_id)
        self._notify()

    # -- Query -----------------------------------------------------------------

    def get_agent(self, agent_id: str) -> Agent | None:
        return self._agents.get(agent_id)

    def require_agent(self, agent_id: str) -> Agent:
        """Get an agent by ID.  Raises ``AgentNotFoundError`` if missing."""
        agent = self._agents.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        return agent

    def all_agents(self) -> list[Agent]:
        return list(self._agents.values())

    def list_by_workspace(self, workspace_id: str) -> list[Agent]:
        return [agent for agent in self._agents.values() if agent.workspace_id == workspace_id]

    def count(self) -> int:
        return len(self._agents)

    # -- Pending actions -------------------------------------------------------

    def add_pending_action(self, action: AgentAction) -> None:
        """Queue *action* and put its agent into ``waiting_approval``."""
        queue = self._pending.get(action.agent_id, [])
        self._pending[action.agent_id] = [*queue, action]
        logger.info("Agent {}: queued {} action {}", action.agent_id, action.type, action.id)
        self._notify()
        self.update_status(action.agent_id, AgentStatus.WAITING_APPROVAL)

    def resolve_pending_action(self, agent_id: str, action_id: str, resolution: Any = None) -> AgentAction | None:
        """Resolve a queued action and return it in its terminal state.

        A truthy *resolution* approves the action, anything else denies it.
        The resolution is recorded as ``decision`` (tool approval) or
        ``response`` (clarifying question).  Returns ``None`` without side
        effects if the action is not queued, so resolving twice is safe.
        """
        queue = self._pending.get(agent_id, [])
        action = next((a for a in queue if a.id == action_id), None)
        if action is None:
            return None

        changes: dict[str, Any] = {"status": ActionStatus.APPROVED if resolution else ActionStatus.DENIED}
        if resolution:
            if isinstance(action, ToolApprovalAction):
                changes["decision"] = (
                    ToolApprovalDecision.ALLOW if resolution is True else ToolApprovalDecision(resolution)
                )
            elif isinstance(action, ClarifyingQuestionAction):
                changes["response"] = resolution
        resolved = replace(action, **changes)

        remaining = [a for a in queue if a.id != action_id]
        self._pending[agent_id] = remaining
        logger.info("Agent {}: action {} {}", agent_id, action_id, resolved.status)
        self._notify()

        if not remaining:
            self.update_status(agent_id, AgentStatus.IDLE)
        return resolved

    def get_pending_actions(self, agent_id: str) -> list[AgentAction]:
        return list(self._pending.get(agent_id, []))

    def get_all_pending_actions(self) -> list[AgentAction]:
        """Every queued action across all agents, oldest first."""
        actions = [action for queue in self._pending.values() for action in queue]
        return sorted(actions, key=lambda a: a.timestamp)

    def clear_pending_actions(self, agent_id: str) -> None:
        self._pending.pop(agent_id, None)
        self._notify()
        self.update_status(agent_id, AgentStatus.IDLE)

    # -- Bulk ------------------------------------------------------------------

    def clear(self) -> None:
        self._agents = {}
        self._pending = {}
        self._notify()

    def dump(self) -> dict[str, Any]:
        """Serialize agents and queues as ``(id, value)`` pairs."""
        return {
            "agents": [[aid, agent.model_dump(mode="json")] for aid, agent in self._agents.items()],
            "pending_actions": [
                [aid, [action.model_dump(mode="json") for action in queue]] for aid, queue in self._pending.items()
            ],
        }

    def restore(self, state: dict[str, Any]) -> None:
        """Replace the whole collection with the output of ``dump()``.

        Raises ``pydantic.ValidationError`` on malformed data, leaving the
        current collection untouched.
        """
        agents = _AGENT_PAIRS.validate_python(state.get("agents") or [])
        pending = _PENDING_PAIRS.validate_python(state.get("pending_actions") or [])
        self._agents = dict(agents)
        self._pending = dict(pending)

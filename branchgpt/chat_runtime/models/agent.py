"""Agent and pending-action data models.

An agent is a single configured chat participant bound to one provider and
model.  Agents may queue actions (tool approvals, clarifying questions) that
block progress until the user resolves them.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from branchgpt.chat_runtime.models.enums import (
    ActionStatus,
    AgentStatus,
    AIProvider,
    RiskLevel,
    ToolApprovalDecision,
)


class UnknownProviderError(ValueError):
    """Raised when a provider id has no entry in the model table."""


# -- Provider / model table --------------------------------------------------

PROVIDER_MODELS: dict[AIProvider, list[str]] = {
    AIProvider.ANTHROPIC: [
        "claude-sonnet-4-5-20250929",
        "claude-opus-4-6",
        "claude-haiku-4-5-20251001",
        "claude-3-7-sonnet-20250219",
    ],
    AIProvider.OPENAI: [
        "gpt-4o",
        "gpt-4-turbo",
        "gpt-4",
        "gpt-3.5-turbo",
    ],
    AIProvider.GOOGLE: [
        "gemini-2.0-flash",
        "gemini-1.5-pro",
        "gemini-1.5-flash",
    ],
}


# -- Agent -------------------------------------------------------------------


class AgentMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    system_prompt: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    color: str | None = None
    icon: str | None = None


class Agent(BaseModel):
    """Agent record.  Owned by exactly one workspace."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    status: AgentStatus = AgentStatus.IDLE
    workspace_id: str
    conversation_id: str = ""
    model: str
    provider: AIProvider
    created_at: datetime
    updated_at: datetime
    metadata: AgentMetadata | None = None


class AgentConfig(BaseModel):
    """Input for creating a new agent."""

    name: str | None = None
    workspace_id: str
    provider: AIProvider
    model: str | None = None
    system_prompt: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    color: str | None = None


class AgentUpdate(BaseModel):
    """Partial agent update -- only fields explicitly set are applied."""

    name: str | None = None
    status: AgentStatus | None = None
    conversation_id: str | None = None
    model: str | None = None
    provider: AIProvider | None = None
    metadata: AgentMetadata | None = None


# -- Pending actions ---------------------------------------------------------


class ClarifyingQuestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    question: str
    options: list[str] = Field(default_factory=list)
    multi_select: bool = False


class ToolApprovalRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool_name: str
    command: str | None = None
    description: str
    risk_level: RiskLevel = RiskLevel.LOW
    parameters: dict[str, Any] | None = None


class _ActionBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    agent_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    status: ActionStatus = ActionStatus.PENDING


class ClarifyingQuestionAction(_ActionBase):
    type: Literal["clarifying_question"] = "clarifying_question"
    data: ClarifyingQuestion
    response: str | list[str] | None = None


class ToolApprovalAction(_ActionBase):
    type: Literal["tool_approval"] = "tool_approval"
    data: ToolApprovalRequest
    decision: ToolApprovalDecision | None = None


AgentAction = Annotated[ClarifyingQuestionAction | ToolApprovalAction, Field(discriminator="type")]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def can_execute(agent: Agent) -> bool:
    """Whether the agent may start new work."""
    return agent.status in (AgentStatus.IDLE, AgentStatus.WAITING_APPROVAL)


def is_busy(agent: Agent) -> bool:
    return agent.status in (AgentStatus.THINKING, AgentStatus.STREAMING, AgentStatus.EXECUTING)


def is_valid_model_for_provider(provider: str, model: str) -> bool:
    models = PROVIDER_MODELS.get(provider)  # type: ignore[call-overload]
    return models is not None and model in models


def default_model_for_provider(provider: str) -> str:
    """Return the first listed model for *provider*.

    Raises ``UnknownProviderError`` if the provider is not in the table.
    """
    models = PROVIDER_MODELS.get(provider)  # type: ignore[call-overload]
    if not models:
        raise UnknownProviderError(provider)
    return models[0]

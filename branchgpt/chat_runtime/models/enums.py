"""Shared enumerations used across the chat runtime."""

from __future__ import annotations

from enum import StrEnum

# -- Agent -------------------------------------------------------------------


class AgentStatus(StrEnum):
    """Execution status of a single agent."""

    IDLE = "idle"
    THINKING = "thinking"
    STREAMING = "streaming"
    WAITING_APPROVAL = "waiting_approval"
    EXECUTING = "executing"
    ERROR = "error"
    PAUSED = "paused"


class AIProvider(StrEnum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GOOGLE = "google"


# -- Pending actions ---------------------------------------------------------


class AgentActionType(StrEnum):
    CLARIFYING_QUESTION = "clarifying_question"
    TOOL_APPROVAL = "tool_approval"


class ActionStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class ToolApprovalDecision(StrEnum):
    """User's decision on a tool approval request."""

    ALLOW = "allow"
    ALLOW_ALL = "allow_all"
    DENY = "deny"


class RiskLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# -- Messages ----------------------------------------------------------------


class ChatRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class StopReason(StrEnum):
    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"
    TOOL_USE = "tool_use"


# -- Execution ---------------------------------------------------------------


class TurnStatus(StrEnum):
    """Outcome of a single chat turn."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

"""Data models for the chat runtime."""

from branchgpt.chat_runtime.models.agent import (
    PROVIDER_MODELS,
    Agent,
    AgentAction,
    AgentConfig,
    AgentMetadata,
    AgentUpdate,
    ClarifyingQuestion,
    ClarifyingQuestionAction,
    ToolApprovalAction,
    ToolApprovalRequest,
    UnknownProviderError,
    can_execute,
    default_model_for_provider,
    is_busy,
    is_valid_model_for_provider,
)
from branchgpt.chat_runtime.models.conversation import (
    Conversation,
    ConversationFilter,
    ConversationMetadata,
    ConversationNode,
)
from branchgpt.chat_runtime.models.enums import (
    ActionStatus,
    AgentActionType,
    AgentStatus,
    AIProvider,
    ChatRole,
    RiskLevel,
    StopReason,
    ToolApprovalDecision,
    TurnStatus,
)
from branchgpt.chat_runtime.models.message import (
    ContentBlock,
    Message,
    MessageMetadata,
    MessageUpdate,
    TextBlock,
    ThinkingBlock,
    TokenUsage,
    ToolResultBlock,
    ToolUseBlock,
    create_text_message,
    extract_text,
)
from branchgpt.chat_runtime.models.workspace import (
    Workspace,
    WorkspaceConfig,
    WorkspaceMetadata,
    WorkspaceUpdate,
    has_agents,
)

__all__ = [
    "PROVIDER_MODELS",
    # Enums
    "AIProvider",
    "ActionStatus",
    # Agent
    "Agent",
    "AgentAction",
    "AgentActionType",
    "AgentConfig",
    "AgentMetadata",
    "AgentStatus",
    "AgentUpdate",
    "ChatRole",
    "ClarifyingQuestion",
    "ClarifyingQuestionAction",
    # Message
    "ContentBlock",
    # Conversation
    "Conversation",
    "ConversationFilter",
    "ConversationMetadata",
    "ConversationNode",
    "Message",
    "MessageMetadata",
    "MessageUpdate",
    "RiskLevel",
    "StopReason",
    "TextBlock",
    "ThinkingBlock",
    "TokenUsage",
    "ToolApprovalAction",
    "ToolApprovalDecision",
    "ToolApprovalRequest",
    "ToolResultBlock",
    "ToolUseBlock",
    "TurnStatus",
    "UnknownProviderError",
    # Workspace
    "Workspace",
    "WorkspaceConfig",
    "WorkspaceMetadata",
    "WorkspaceUpdate",
    "can_execute",
    "create_text_message",
    "default_model_for_provider",
    "extract_text",
    "has_agents",
    "is_busy",
    "is_valid_model_for_provider",
]

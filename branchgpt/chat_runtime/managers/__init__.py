"""In-memory state managers for the chat runtime.

Each module owns one collection (workspaces, agents, conversations).  Managers
are synchronous: every mutation completes before the next one starts, and
readers observe it immediately.  Lookups of unknown ids return ``None`` or an
empty result and mutations on unknown ids are no-ops; only the explicit
``require_*`` accessors raise domain exceptions (``LookupError``).
"""

from branchgpt.chat_runtime.managers.agents import AgentManager, AgentNotFoundError, ColorPalette
from branchgpt.chat_runtime.managers.conversations import ConversationManager, ConversationNotFoundError
from branchgpt.chat_runtime.managers.workspaces import WorkspaceManager

__all__ = [
    "AgentManager",
    "AgentNotFoundError",
    "ColorPalette",
    "ConversationManager",
    "ConversationNotFoundError",
    "WorkspaceManager",
]

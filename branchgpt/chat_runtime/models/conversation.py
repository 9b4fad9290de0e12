"""Conversation data models.

A conversation is an ordered message history owned by one agent.  A branch
records the conversation it was forked from (``parent_id``) and the index in
the parent's history where the fork happened (``branch_point``); its initial
messages are a copy of ``parent.messages[0..branch_point]`` taken at fork
time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from branchgpt.chat_runtime.models.message import Message


class ConversationMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    summary: str | None = None
    tags: list[str] = Field(default_factory=list)


class Conversation(BaseModel):
    """Conversation record.  Never mutated in place; updates replace the record."""

    model_config = ConfigDict(frozen=True)

    id: str
    workspace_id: str
    agent_id: str
    messages: list[Message] = Field(default_factory=list)
    parent_id: str | None = None
    branch_point: int | None = None
    title: str | None = None
    created_at: datetime
    updated_at: datetime
    metadata: ConversationMetadata | None = None

    @property
    def is_branch(self) -> bool:
        return self.parent_id is not None


class ConversationFilter(BaseModel):
    """Optional criteria for ``ConversationManager.filter_conversations``.

    All set criteria must match.  ``search_term`` is a case-insensitive
    substring match against the title and the text of every message.
    """

    workspace_id: str | None = None
    agent_id: str | None = None
    parent_id: str | None = None
    search_term: str | None = None
    start: datetime | None = Field(default=None, description="Inclusive lower bound on created_at")
    end: datetime | None = Field(default=None, description="Inclusive upper bound on created_at")


@dataclass
class ConversationNode:
    """One node of the branch tree built by ``tree.build_tree``."""

    conversation: Conversation
    children: list[ConversationNode] = field(default_factory=list)
    depth: int = 0

"""Conversation and message lifecycle, including branching.

Conversations are append-mostly message histories.  A branch is created from
a parent conversation and a branch point; it starts with an independent copy
of the parent's messages up to and including that index.

All message mutations replace the owning conversation record and refresh
``updated_at``.  Unresolved conversation or message ids make mutations a
silent no-op.
"""

from __future__ import annotations

import uuid
from typing import Any

from loguru import logger
from pydantic import TypeAdapter

from branchgpt.chat_runtime.managers.base import Clock, ManagerBase, explicit_changes, replace
from branchgpt.chat_runtime.models.conversation import Conversation, ConversationFilter
from branchgpt.chat_runtime.models.message import ContentBlock, Message, MessageUpdate, extract_text

_CONVERSATION_PAIRS = TypeAdapter(list[tuple[str, Conversation]])


class ConversationNotFoundError(LookupError):
    """Raised when a conversation is required but not found."""


class ConversationManager(ManagerBase):
    """In-memory conversation store."""

    def __init__(self, clock: Clock | None = None) -> None:
        super().__init__(clock)
        self._conversations: dict[str, Conversation] = {}
        self._active_conversation_id: str | None = None

    # -- Create ----------------------------------------------------------------

    def create_conversation(
        self,
        workspace_id: str,
        agent_id: str,
        parent_id: str | None = None,
        branch_point: int | None = None,
    ) -> str:
        """Create a conversation, make it active, and return its id.

        When both *parent_id* and *branch_point* are given and the parent
        exists, the new conversation starts with a copy of
        ``parent.messages[0..branch_point]`` (inclusive).  A missing parent
        still yields a conversation (with no messages) that records the
        dangling ``parent_id``.
        """
        if branch_point is not None and branch_point < 0:
            msg = f"branch_point must be >= 0, got {branch_point}"
            raise ValueError(msg)

        conversation_id = str(uuid.uuid4())
        now = self._now()

        messages: list[Message] = []
        if parent_id is not None and branch_point is not None:
            parent = self._conversations.get(parent_id)
            if parent is not None:
                messages = [m.model_copy(deep=True) for m in parent.messages[: branch_point + 1]]
            else:
                logger.warning("Branching from unknown conversation {}; starting empty", parent_id)

        self._conversations[conversation_id] = Conversation(
            id=conversation_id,
            workspace_id=workspace_id,
            agent_id=agent_id,
            messages=messages,
            parent_id=parent_id,
            branch_point=branch_point,
            created_at=now,
            updated_at=now,
        )
        self._active_conversation_id = conversation_id

        logger.info(
            "Conversation created: {} (agent={}, parent={}, branch_point={})",
            conversation_id,
            agent_id,
            parent_id,
            branch_point,
        )
        self._notify()
        return conversation_id

    def branch_conversation(
        self,
        conversation_id: str,
        from_message_index: int,
        new_message: Message | None = None,
    ) -> str:
        """Fork *conversation_id* at *from_message_index* and return the new id.

        The branch inherits the source's workspace and agent.  If given,
        *new_message* is appended to the branch.
        """
        source = self._conversations.get(conversation_id)
        branch_id = self.create_conversation(
            source.workspace_id if source else "",
            source.agent_id if source else "",
            parent_id=conversation_id,
            branch_point=from_message_index,
        )
        if new_message is not None:
            self.add_message(branch_id, new_message)
        return branch_id

    # -- Conversation-level updates --------------------------------------------

    def delete_conversation(self, conversation_id: str) -> None:
        """Remove a conversation.  Branches of it keep their dangling ``parent_id``."""
        if self._conversations.pop(conversation_id, None) is None:
            return
        if self._active_conversation_id == conversation_id:
            self._active_conversation_id = None
        logger.info("Conversation deleted: {}", conversation_id)
        self._notify()

    def set_active_conversation(self, conversation_id: str | None) -> None:
        self._active_conversation_id = conversation_id
        self._notify()

    @property
    def active_conversation_id(self) -> str | None:
        return self._active_conversation_id

    def update_conversation_title(self, conversation_id: str, title: str) -> None:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return
        self._conversations[conversation_id] = replace(conversation, title=title, updated_at=self._now())
        self._notify()

    # -- Message mutation ------------------------------------------------------

    def add_message(self, conversation_id: str, message: Message) -> None:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return
        self._store(conversation, [*conversation.messages, message])

    def update_message(self, conversation_id: str, message_id: str, body: MessageUpdate) -> None:
        """Merge the explicitly-set fields of *body* onto one message."""
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return
        if not any(m.id == message_id for m in conversation.messages):
            return

        changes = explicit_changes(body)
        messages = [replace(m, **changes) if m.id == message_id else m for m in conversation.messages]
        self._store(conversation, messages)

    def append_to_last_message(self, conversation_id: str, block: ContentBlock) -> None:
        conversation = self._conversations.get(conversation_id)
        if conversation is None or not conversation.messages:
            return

        last = conversation.messages[-1]
        self._store(conversation, [*conversation.messages[:-1], replace(last, content=[*last.content, block])])

    def update_last_message_content(self, conversation_id: str, index: int, block: ContentBlock) -> None:
        """Overwrite the content block at *index* of the last message.

        ``index == len(content)`` appends.  Raises ``IndexError`` for any
        other index outside the content list.
        """
        conversation = self._conversations.get(conversation_id)
        if conversation is None or not conversation.messages:
            return

        last = conversation.messages[-1]
        content = list(last.content)
        if index == len(content):
            content.append(block)
        elif 0 <= index < len(content):
            content[index] = block
        else:
            msg = f"content index {index} out of range for message {last.id} ({len(content)} blocks)"
            raise IndexError(msg)

        self._store(conversation, [*conversation.messages[:-1], replace(last, content=content)])

    def _store(self, conversation: Conversation, messages: list[Message]) -> None:
        self._conversations[conversation.id] = replace(conversation, messages=messages, updated_at=self._now())
        self._notify()

    # -- Query -----------------------------------------------------------------

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        return self._conversations.get(conversation_id)

    def require_conversation(self, conversation_id: str) -> Conversation:
        """Get a conversation by ID.  Raises ``ConversationNotFoundError`` if missing."""
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def get_messages(self, conversation_id: str) -> list[Message]:
        conversation = self._conversations.get(conversation_id)
        return list(conversation.messages) if conversation else []

    def get_message(self, conversation_id: str, message_id: str) -> Message | None:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return None
        return next((m for m in conversation.messages if m.id == message_id), None)

    def all_conversations(self) -> list[Conversation]:
        return list(self._conversations.values())

    def list_by_workspace(self, workspace_id: str) -> list[Conversation]:
        return [c for c in self._conversations.values() if c.workspace_id == workspace_id]

    def list_by_agent(self, agent_id: str) -> list[Conversation]:
        return [c for c in self._conversations.values() if c.agent_id == agent_id]

    def filter_conversations(self, criteria: ConversationFilter) -> list[Conversation]:
        term = criteria.search_term.casefold() if criteria.search_term else None

        def _matches(conv: Conversation) -> bool:
            if criteria.workspace_id is not None and conv.workspace_id != criteria.workspace_id:
                return False
            if criteria.agent_id is not None and conv.agent_id != criteria.agent_id:
                return False
            if criteria.parent_id is not None and conv.parent_id != criteria.parent_id:
                return False
            if criteria.start is not None and conv.created_at < criteria.start:
                return False
            if criteria.end is not None and conv.created_at > criteria.end:
                return False
            if term is not None:
                haystack = [conv.title or "", *(extract_text(m.content) for m in conv.messages)]
                return any(term in text.casefold() for text in haystack)
            return True

        return [c for c in self._conversations.values() if _matches(c)]

    # -- Bulk ------------------------------------------------------------------

    def clear(self) -> None:
        self._conversations = {}
        self._active_conversation_id = None
        self._notify()

    def dump(self) -> dict[str, Any]:
        """Serialize as ``(id, conversation)`` pairs plus the active pointer."""
        return {
            "conversations": [[cid, conv.model_dump(mode="json")] for cid, conv in self._conversations.items()],
            "active_conversation_id": self._active_conversation_id,
        }

    def restore(self, state: dict[str, Any]) -> None:
        """Replace the whole collection with the output of ``dump()``.

        Raises ``pydantic.ValidationError`` on malformed data, leaving the
        current collection untouched.
        """
        conversations = _CONVERSATION_PAIRS.validate_python(state.get("conversations") or [])
        active = state.get("active_conversation_id")
        self._conversations = dict(conversations)
        self._active_conversation_id = active if isinstance(active, str) else None

"""Message and content block models.

A message carries an ordered list of typed content blocks.  ``ContentBlock``
is a closed union discriminated on ``type``; each variant carries only its
own fields.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from branchgpt.chat_runtime.models.enums import ChatRole, StopReason

# -- Content blocks ----------------------------------------------------------


class TextBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str
    citations: list[str] | None = None


class ThinkingBlock(BaseModel):
    """Model reasoning emitted before the visible answer."""

    model_config = ConfigDict(frozen=True)

    type: Literal["thinking"] = "thinking"
    thinking: str
    signature: str | None = None


class ToolUseBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResultBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str | list[TextBlock]
    is_error: bool = False


ContentBlock = Annotated[
    TextBlock | ThinkingBlock | ToolUseBlock | ToolResultBlock,
    Field(discriminator="type"),
]


# -- Message -----------------------------------------------------------------


class TokenUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    input: int = 0
    output: int = 0


class MessageMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str | None = None
    tokens: TokenUsage | None = None
    streaming: bool | None = None
    stop_reason: StopReason | None = None


class Message(BaseModel):
    """A single chat message."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    agent_id: str | None = None
    role: ChatRole
    content: list[ContentBlock] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    metadata: MessageMetadata | None = None


class MessageUpdate(BaseModel):
    """Partial message update -- only fields explicitly set are applied."""

    agent_id: str | None = None
    role: ChatRole | None = None
    content: list[ContentBlock] | None = None
    timestamp: datetime | None = None
    metadata: MessageMetadata | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def create_text_message(role: ChatRole, text: str, agent_id: str | None = None) -> Message:
    """Create a message holding a single text block."""
    return Message(role=role, agent_id=agent_id, content=[TextBlock(text=text)])


def create_streaming_message(message_id: str, agent_id: str, *, model: str | None = None) -> Message:
    """Create the empty assistant message that a streamed response fills in."""
    return Message(
        id=message_id,
        role=ChatRole.ASSISTANT,
        agent_id=agent_id,
        content=[],
        metadata=MessageMetadata(model=model, streaming=True),
    )


def merge_text_delta(existing: TextBlock, delta: str) -> TextBlock:
    return existing.model_copy(update={"text": existing.text + delta})


def extract_text(content: list[ContentBlock]) -> str:
    """Newline-join the text of every text block; other blocks contribute nothing."""
    return "\n".join(block.text for block in content if isinstance(block, TextBlock))


def count_text_characters(content: list[ContentBlock]) -> int:
    return sum(len(block.text) for block in content if isinstance(block, TextBlock))


def has_tool_use(message: Message) -> bool:
    return any(isinstance(block, ToolUseBlock) for block in message.content)


def get_tool_calls(message: Message) -> list[ToolUseBlock]:
    return [block for block in message.content if isinstance(block, ToolUseBlock)]

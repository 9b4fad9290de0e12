"""Provider channel: the opaque source of streamed text deltas.

The coordinator only needs ``stream(provider, model, messages)`` returning an
async iterator of text chunks.  ``PydanticAIChannel`` is the production
implementation, backed by pydantic-ai.  Tests substitute any object with the
same ``stream`` signature.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from pydantic_ai import Agent as ModelAgent
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)

from branchgpt.chat_runtime.models.agent import UnknownProviderError
from branchgpt.chat_runtime.models.enums import AIProvider, ChatRole
from branchgpt.chat_runtime.models.message import extract_text

if TYPE_CHECKING:
    from pydantic_ai.models import Model

    from branchgpt.chat_runtime.models.message import Message


@dataclass(frozen=True)
class ChannelMessage:
    """Provider-neutral projection of a message: role plus flattened text."""

    role: ChatRole
    content: str


def to_channel_messages(messages: Sequence[Message]) -> list[ChannelMessage]:
    return [ChannelMessage(role=m.role, content=extract_text(m.content)) for m in messages]


@runtime_checkable
class ProviderChannel(Protocol):
    def stream(self, provider: str, model: str, messages: Sequence[ChannelMessage]) -> AsyncIterator[str]:
        """Yield text deltas for the assistant reply to *messages*."""
        ...


# ---------------------------------------------------------------------------
# pydantic-ai implementation
# ---------------------------------------------------------------------------

# Model-string prefixes understood by pydantic-ai.
_MODEL_PREFIXES: dict[str, str] = {
    AIProvider.ANTHROPIC: "anthropic",
    AIProvider.OPENAI: "openai",
    AIProvider.GOOGLE: "google-gla",
}


def model_name_for(provider: str, model: str) -> str:
    """Return the pydantic-ai model string, e.g. ``anthropic:claude-opus-4-6``.

    Raises ``UnknownProviderError`` for unsupported providers.
    """
    prefix = _MODEL_PREFIXES.get(provider)
    if prefix is None:
        raise UnknownProviderError(provider)
    return f"{prefix}:{model}"


def to_model_messages(messages: Sequence[ChannelMessage]) -> list[ModelMessage]:
    """Map channel messages onto pydantic-ai request/response messages.

    Assistant messages with no text (e.g. an interrupted reply) are skipped.
    """
    result: list[ModelMessage] = []
    for message in messages:
        match message.role:
            case ChatRole.SYSTEM:
                result.append(ModelRequest(parts=[SystemPromptPart(content=message.content)]))
            case ChatRole.USER:
                result.append(ModelRequest(parts=[UserPromptPart(content=message.content)]))
            case ChatRole.ASSISTANT:
                if message.content:
                    result.append(ModelResponse(parts=[TextPart(content=message.content)]))
    return result


class PydanticAIChannel:
    """ProviderChannel backed by ``pydantic_ai.Agent.run_stream``.

    Parameters
    ----------
    model_factory:
        Optional hook returning the pydantic-ai model (or model string) for a
        provider/model pair.  Defaults to ``model_name_for``.
    """

    def __init__(self, model_factory: Callable[[str, str], Model | str] | None = None) -> None:
        self._model_factory = model_factory or model_name_for

    async def stream(self, provider: str, model: str, messages: Sequence[ChannelMessage]) -> AsyncIterator[str]:
        history = to_model_messages(messages)
        prompt: str | None = None
        if messages and messages[-1].role == ChatRole.USER:
            prompt = messages[-1].content
            history = history[:-1]

        agent = ModelAgent(self._model_factory(provider, model))
        async with agent.run_stream(prompt, message_history=history or None) as result:
            async for delta in result.stream_text(delta=True):
                yield delta

"""Chat-turn coordinator -- drives one request/response cycle for one agent.

The coordinator manages the full lifecycle of a single turn:

1. **Setup**: Check preconditions, mark the agent ``thinking``, append the
   user message, snapshot the context, append an empty streaming assistant
   message, mark the agent ``streaming``
2. **Stream**: Apply every text delta from the provider channel to the live
   assistant message in the conversation manager
3. **Finalize**: Close out the message metadata and return the agent to
   ``idle`` -- or, on cancellation / failure, set ``error`` and leave the
   partial reply in place

The caller is responsible for serializing turns per agent (gate on
``can_execute`` / ``is_busy``); running two turns against the same
conversation interleaves their deltas in undefined order.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from branchgpt.chat_runtime.context import ActiveTurn
from branchgpt.chat_runtime.execution.channel import to_channel_messages
from branchgpt.chat_runtime.models.enums import AgentStatus, ChatRole, StopReason, TurnStatus
from branchgpt.chat_runtime.models.message import (
    MessageMetadata,
    MessageUpdate,
    TextBlock,
    create_streaming_message,
    create_text_message,
    extract_text,
    merge_text_delta,
)

if TYPE_CHECKING:
    from branchgpt.chat_runtime.execution.channel import ProviderChannel
    from branchgpt.chat_runtime.managers.agents import AgentManager
    from branchgpt.chat_runtime.managers.conversations import ConversationManager
    from branchgpt.chat_runtime.registry import TurnRegistry

logger = logging.getLogger(__name__)


class TurnCancelledError(Exception):
    """Set on ``TurnResult.error`` when a turn is aborted by its caller."""


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass
class TurnResult:
    """Outcome of a chat turn."""

    agent_id: str
    conversation_id: str
    message_id: str
    status: TurnStatus
    text: str = ""
    """Assistant text accumulated so far (complete or partial)."""
    error: BaseException | None = None


# ---------------------------------------------------------------------------
# Delta application
# ---------------------------------------------------------------------------


def apply_text_delta(
    conversations: ConversationManager,
    conversation_id: str,
    message_id: str,
    delta: str,
) -> None:
    """Merge one text delta into the streaming assistant message.

    Reads the message from the manager on every call so concurrent edits
    made between deltas are respected.  The fast path rewrites the last
    message in place; once anything has been appended after the streaming
    message, the merged content is written back by id instead.
    """
    conversation = conversations.get_conversation(conversation_id)
    message = conversations.get_message(conversation_id, message_id)
    if conversation is None or message is None:
        return

    content = list(message.content)
    if not content or not isinstance(content[-1], TextBlock):
        content = [TextBlock(text=delta)]
    elif conversation.messages[-1].id == message_id:
        merged = merge_text_delta(content[-1], delta)
        conversations.update_last_message_content(conversation_id, len(content) - 1, merged)
        return
    else:
        content[-1] = merge_text_delta(content[-1], delta)
    conversations.update_message(conversation_id, message_id, MessageUpdate(content=content))


def _message_text(conversations: ConversationManager, conversation_id: str, message_id: str) -> str:
    message = conversations.get_message(conversation_id, message_id)
    return extract_text(message.content) if message else ""


async def _stream_until_abort(
    deltas: AsyncIterator[str],
    abort: asyncio.Event,
    on_delta: Callable[[str], None],
) -> None:
    """Feed channel deltas to *on_delta* until the channel ends or *abort* fires.

    The channel is consumed in a single task that is raced against the abort
    signal and cancelled as soon as it fires, so a silent provider cannot
    hold the turn open.  Channel errors propagate to the caller.
    """

    async def _consume() -> None:
        try:
            async for delta in deltas:
                if abort.is_set():
                    break
                on_delta(delta)
        finally:
            aclose = getattr(deltas, "aclose", None)
            if aclose is not None:
                await aclose()

    consumer = asyncio.ensure_future(_consume())
    aborted = asyncio.ensure_future(abort.wait())
    try:
        await asyncio.wait({consumer, aborted}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        aborted.cancel()
        if not consumer.done():
            consumer.cancel()
            await asyncio.wait({consumer})
    if not consumer.cancelled():
        consumer.result()


# ---------------------------------------------------------------------------
# Main execution
# ---------------------------------------------------------------------------


async def run_chat_turn(
    agent_id: str,
    conversation_id: str,
    user_text: str,
    *,
    agents: AgentManager,
    conversations: ConversationManager,
    channel: ProviderChannel,
    registry: TurnRegistry | None = None,
    abort: asyncio.Event | None = None,
) -> TurnResult:
    """Run one chat turn to completion, cancellation, or failure.

    Parameters
    ----------
    agent_id:
        Agent taking the turn; supplies provider and model.
    conversation_id:
        Conversation receiving the user and assistant messages.
    user_text:
        Text of the user message.
    agents, conversations:
        Managers updated as the turn progresses.
    channel:
        Source of streamed text deltas.
    registry:
        If given, the turn is registered for the duration of the stream so
        ``cancel_agent`` / ``cancel_all`` can abort it.
    abort:
        Optional external abort signal.  Raced against the channel
        consumer, so it takes effect even while the provider is silent.

    Returns
    -------
    TurnResult
        Final status plus the assistant text accumulated so far.

    Raises
    ------
    AgentNotFoundError, ConversationNotFoundError
        If either id does not resolve.  Raised before any state changes.
    ValueError
        If *user_text* is blank.
    """
    agent = agents.require_agent(agent_id)
    conversations.require_conversation(conversation_id)
    if not user_text.strip():
        msg = "User message must not be empty"
        raise ValueError(msg)

    turn = ActiveTurn(agent_id=agent_id, conversation_id=conversation_id)
    if abort is not None:
        turn.abort = abort
    if registry is not None:
        registry.register(turn)

    message_id = str(uuid.uuid4())
    turn.message_id = message_id

    try:
        # -- Setup -------------------------------------------------------------
        agents.update_status(agent_id, AgentStatus.THINKING)
        conversations.add_message(conversation_id, create_text_message(ChatRole.USER, user_text, agent_id))

        context = to_channel_messages(conversations.get_messages(conversation_id))

        conversations.add_message(conversation_id, create_streaming_message(message_id, agent_id, model=agent.model))
        agents.update_status(agent_id, AgentStatus.STREAMING)

        # -- Stream ------------------------------------------------------------
        await _stream_until_abort(
            channel.stream(agent.provider, agent.model, context),
            turn.abort,
            lambda delta: apply_text_delta(conversations, conversation_id, message_id, delta),
        )

        if turn.cancelled:
            agents.update_status(agent_id, AgentStatus.ERROR)
            logger.info("Turn %s cancelled (agent=%s)", turn.turn_id, agent_id)
            return TurnResult(
                agent_id=agent_id,
                conversation_id=conversation_id,
                message_id=message_id,
                status=TurnStatus.CANCELLED,
                text=_message_text(conversations, conversation_id, message_id),
                error=TurnCancelledError(f"Turn {turn.turn_id} was cancelled"),
            )

        # -- Finalize ----------------------------------------------------------
        current = conversations.get_message(conversation_id, message_id)
        base = current.metadata if current and current.metadata else MessageMetadata()
        conversations.update_message(
            conversation_id,
            message_id,
            MessageUpdate(metadata=base.model_copy(update={"streaming": False, "stop_reason": StopReason.END_TURN})),
        )
        agents.update_status(agent_id, AgentStatus.IDLE)

        text = _message_text(conversations, conversation_id, message_id)
        logger.info("Turn %s completed (agent=%s, chars=%d)", turn.turn_id, agent_id, len(text))
        return TurnResult(
            agent_id=agent_id,
            conversation_id=conversation_id,
            message_id=message_id,
            status=TurnStatus.COMPLETED,
            text=text,
        )

    except asyncio.CancelledError:
        agents.update_status(agent_id, AgentStatus.ERROR)
        logger.info("Turn %s task cancelled (agent=%s)", turn.turn_id, agent_id)
        raise

    except Exception as exc:
        logger.exception("Turn %s failed (agent=%s)", turn.turn_id, agent_id)
        agents.update_status(agent_id, AgentStatus.ERROR)
        return TurnResult(
            agent_id=agent_id,
            conversation_id=conversation_id,
            message_id=message_id,
            status=TurnStatus.FAILED,
            text=_message_text(conversations, conversation_id, message_id),
            error=exc,
        )

    finally:
        if registry is not None:
            registry.unregister(turn.turn_id)

"""In-flight chat turn context.

Created by the coordinator at turn start, registered in the TurnRegistry so
the turn can be cancelled, and discarded when the turn ends.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field


@dataclass
class ActiveTurn:
    """Bookkeeping for a single streaming request/response cycle."""

    # -- Identity --------------------------------------------------------------
    agent_id: str
    conversation_id: str
    turn_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    # -- Live state ------------------------------------------------------------
    message_id: str | None = None
    """Assistant message being streamed into (set once it is created)."""

    abort: asyncio.Event = field(default_factory=asyncio.Event)
    """Cooperative cancellation signal, raced against the channel consumer."""

    def cancel(self) -> None:
        self.abort.set()

    @property
    def cancelled(self) -> bool:
        return self.abort.is_set()

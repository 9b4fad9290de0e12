"""In-process turn registry.

Tracks active (streaming) chat turns so they can be cancelled by agent or all
at once.  Ephemeral -- empty on process restart.

The registry does not enforce one turn per agent: callers gate new turns on
``can_execute`` / ``is_busy`` (or ``has_active_turn``) themselves.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from branchgpt.chat_runtime.context import ActiveTurn


class ShuttingDownError(RuntimeError):
    """Raised when attempting to register a turn during shutdown."""


class TurnRegistry:
    """Registry of currently streaming chat turns.

    Provides a drain mechanism for graceful shutdown: ``wait_until_drained``
    blocks until all turns have been unregistered.
    """

    def __init__(self) -> None:
        self._turns: dict[str, ActiveTurn] = {}
        self._drain_event = asyncio.Event()
        self._drain_event.set()  # Starts "drained" (no turns).
        self._shutting_down = False

    # -- Mutation --------------------------------------------------------------

    def register(self, turn: ActiveTurn) -> None:
        """Register a turn.  Raises ``ShuttingDownError`` if shutting down."""
        if self._shutting_down:
            raise ShuttingDownError
        logger.debug("Registry: register turn {} (agent={})", turn.turn_id, turn.agent_id)
        self._turns[turn.turn_id] = turn
        self._drain_event.clear()

    def unregister(self, turn_id: str) -> ActiveTurn | None:
        turn = self._turns.pop(turn_id, None)
        if turn:
            logger.debug("Registry: unregister turn {}", turn_id)
        if not self._turns:
            self._drain_event.set()
        return turn

    # -- Query -----------------------------------------------------------------

    def get(self, turn_id: str) -> ActiveTurn | None:
        return self._turns.get(turn_id)

    def get_by_agent(self, agent_id: str) -> list[ActiveTurn]:
        return [t for t in self._turns.values() if t.agent_id == agent_id]

    def has_active_turn(self, agent_id: str) -> bool:
        return any(t.agent_id == agent_id for t in self._turns.values())

    @property
    def active_count(self) -> int:
        return len(self._turns)

    # -- Control ---------------------------------------------------------------

    def cancel_agent(self, agent_id: str) -> int:
        """Signal every active turn of *agent_id* to stop.  Returns the count."""
        turns = self.get_by_agent(agent_id)
        for turn in turns:
            turn.cancel()
            logger.info("Registry: cancelled turn {} (agent={})", turn.turn_id, agent_id)
        return len(turns)

    def cancel_all(self) -> int:
        for turn in self._turns.values():
            turn.cancel()
        if self._turns:
            logger.info("Registry: cancelled {} turns", len(self._turns))
        return len(self._turns)

    # -- Lifecycle -------------------------------------------------------------

    def begin_shutdown(self) -> None:
        """Mark the registry as shutting down.  New registrations are refused."""
        self._shutting_down = True
        logger.info("Registry: shutdown initiated, refusing new turns")
        if not self._turns:
            self._drain_event.set()

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    async def wait_until_drained(self, timeout: float | None = None) -> bool:
        """Wait until all turns have been unregistered.

        Returns ``True`` if the registry is empty, ``False`` if *timeout*
        expired with turns still active.
        """
        if not self._turns:
            return True
        try:
            await asyncio.wait_for(self._drain_event.wait(), timeout=timeout)
        except TimeoutError:
            logger.warning(
                "Registry: drain timed out after {}s with {} turns still active",
                timeout,
                len(self._turns),
            )
            return False
        else:
            return True

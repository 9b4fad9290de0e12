"""Shared plumbing for the in-memory managers."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel

Clock = Callable[[], datetime]
Listener = Callable[[], None]

_M = TypeVar("_M", bound=BaseModel)


def utcnow() -> datetime:
    return datetime.now(UTC)


def explicit_changes(body: BaseModel) -> dict[str, Any]:
    """Return only the fields the caller explicitly set on *body*.

    Values are taken as attributes (not dumped) so nested models keep their
    types when passed to ``replace``.
    """
    return {name: getattr(body, name) for name in body.model_fields_set}


def replace(record: _M, **changes: Any) -> _M:
    """Return a copy of a frozen record with *changes* applied.

    The copy is re-validated, so a change that does not fit the field type
    (e.g. ``None`` for a required name) raises ``ValidationError`` and the
    original record stays in place.
    """
    return type(record).model_validate({**dict(record), **changes})


class ManagerBase:
    """Change notification shared by all managers.

    Listeners are called synchronously after every mutation.  A failing
    listener is logged and never aborts the mutation that triggered it.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock: Clock = clock or utcnow
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _now(self) -> datetime:
        return self._clock()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Change listener {!r} failed", listener)

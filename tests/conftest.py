"""Shared test fixtures: deterministic clock, settings, and fresh managers.

Everything runs in-process against in-memory managers; the blob store tests
use ``tmp_path``.  No network access is needed except for the S3 tests,
which are skipped unless ``BRANCHGPT_S3_*`` is configured.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta

import pytest

from branchgpt.chat_runtime.managers import AgentManager, ColorPalette, ConversationManager, WorkspaceManager
from branchgpt.chat_runtime.settings import BranchSettings, _get_settings_cached


class StepClock:
    """Clock that advances one second on every call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2025, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    _get_settings_cached.cache_clear()
    yield
    _get_settings_cached.cache_clear()


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def settings(tmp_path) -> BranchSettings:
    return BranchSettings(_env_file=None, data_root=str(tmp_path), log_level="WARNING")


@pytest.fixture
def workspaces(clock: StepClock) -> WorkspaceManager:
    return WorkspaceManager(clock=clock)


@pytest.fixture
def agents(settings: BranchSettings, clock: StepClock) -> AgentManager:
    return AgentManager(settings, palette=ColorPalette(), clock=clock)


@pytest.fixture
def conversations(clock: StepClock) -> ConversationManager:
    return ConversationManager(clock=clock)

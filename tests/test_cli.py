"""CLI tests using click's CliRunner against a temporary data root."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence

import pytest
from click.testing import CliRunner

from branchgpt.chat_runtime.execution.channel import ChannelMessage
from branchgpt.cli import main


class CannedChannel:
    async def stream(self, provider: str, model: str, messages: Sequence[ChannelMessage]) -> AsyncIterator[str]:
        yield "Hi "
        yield "there"


@pytest.fixture
def runner(tmp_path, monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    monkeypatch.setenv("BRANCHGPT_DATA_ROOT", str(tmp_path))
    monkeypatch.setenv("BRANCHGPT_LOG_LEVEL", "ERROR")
    monkeypatch.delenv("BRANCHGPT_BLOB_STORE", raising=False)
    return CliRunner()


def _invoke(runner: CliRunner, *args: str) -> str:
    result = runner.invoke(main, list(args), obj={"channel": CannedChannel()}, catch_exceptions=False)
    assert result.exit_code == 0, result.output
    return result.output.strip()


def test_workspace_agent_and_chat_flow(runner: CliRunner) -> None:
    wid = _invoke(runner, "new-workspace", "Main")
    assert wid in _invoke(runner, "workspaces")

    aid = _invoke(runner, "new-agent", wid[:8], "--provider", "openai", "--name", "Helper")
    listing = _invoke(runner, "agents", wid)
    assert aid in listing
    assert "openai:gpt-4o" in listing

    assert _invoke(runner, "chat", aid, "hello") == "Hi there"

    tree = _invoke(runner, "tree")
    assert "[2 messages]" in tree


def test_branch_command(runner: CliRunner) -> None:
    wid = _invoke(runner, "new-workspace", "Main")
    aid = _invoke(runner, "new-agent", wid)
    _invoke(runner, "chat", aid, "first")

    tree = _invoke(runner, "tree").splitlines()
    root_id = tree[0].split()[0]

    branch_id = _invoke(runner, "branch", root_id, "0", "--message", "alternative")
    lines = _invoke(runner, "tree").splitlines()
    child = next(line for line in lines if branch_id in line)
    assert child.startswith("  ")
    assert "@0" in child
    assert "[2 messages]" in child


def test_pending_empty(runner: CliRunner) -> None:
    assert _invoke(runner, "pending") == ""


def test_unknown_workspace_is_usage_error(runner: CliRunner) -> None:
    result = runner.invoke(main, ["agents", "nope"], obj={"channel": CannedChannel()})
    assert result.exit_code == 2
    assert "No workspace matches" in result.output

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import click

from branchgpt.chat_runtime.runtime import ChatRuntime, open_runtime


def _run(ctx: click.Context, action: Callable[[ChatRuntime], Awaitable[Any]]) -> Any:
    """Open the runtime (hydrate), run *action*, and close it (flush)."""
    obj = ctx.obj if isinstance(ctx.obj, dict) else {}

    async def _main() -> Any:
        async with open_runtime(store=obj.get("store"), channel=obj.get("channel")) as runtime:
            return await action(runtime)

    return asyncio.run(_main())


def _find(ids: list[str], prefix: str, kind: str) -> str:
    """Resolve a full id from a unique prefix."""
    if prefix in ids:
        return prefix
    matches = [i for i in ids if i.startswith(prefix)]
    if len(matches) != 1:
        msg = f"No {kind} matches '{prefix}'" if not matches else f"Ambiguous {kind} id '{prefix}'"
        raise click.BadParameter(msg)
    return matches[0]


@click.group()
@click.pass_context
def main(ctx: click.Context) -> None:
    """BranchGPT - branching multi-agent chat workspace."""
    ctx.ensure_object(dict)


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------


@main.command()
@click.pass_context
def workspaces(ctx: click.Context) -> None:
    """List workspaces, newest first."""

    async def action(rt: ChatRuntime) -> None:
        active = rt.workspaces.active_workspace_id
        for ws in rt.workspaces.list_workspaces():
            marker = "*" if ws.id == active else " "
            click.echo(f"{marker} {ws.id}  {ws.name}  ({len(ws.agent_ids)} agents)")

    _run(ctx, action)


@main.command("new-workspace")
@click.argument("name")
@click.option("--isolated", is_flag=True, default=False, help="Give member agents an isolated filesystem view.")
@click.option("--description", default=None, help="Free-form description.")
@click.pass_context
def new_workspace(ctx: click.Context, name: str, isolated: bool, description: str | None) -> None:
    """Create a workspace and make it active."""
    from branchgpt.chat_runtime.models import WorkspaceConfig

    async def action(rt: ChatRuntime) -> str:
        return rt.workspaces.create_workspace(WorkspaceConfig(name=name, isolated=isolated, description=description))

    click.echo(_run(ctx, action))


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------


@main.command("new-agent")
@click.argument("workspace")
@click.option(
    "--provider",
    type=click.Choice(["anthropic", "openai", "google"]),
    default="anthropic",
    show_default=True,
)
@click.option("--model", default=None, help="Model id (default: the provider's default model).")
@click.option("--name", default=None, help="Display name.")
@click.option("--system-prompt", default=None)
@click.pass_context
def new_agent(
    ctx: click.Context,
    workspace: str,
    provider: str,
    model: str | None,
    name: str | None,
    system_prompt: str | None,
) -> None:
    """Create an agent in WORKSPACE together with its first conversation."""
    from branchgpt.chat_runtime.models import AgentConfig, AgentUpdate

    async def action(rt: ChatRuntime) -> str:
        workspace_id = _find([ws.id for ws in rt.workspaces.list_workspaces()], workspace, "workspace")
        agent_id = rt.agents.create_agent(
            AgentConfig(
                name=name,
                workspace_id=workspace_id,
                provider=provider,
                model=model,
                system_prompt=system_prompt,
            )
        )
        rt.workspaces.add_agent(workspace_id, agent_id)
        conversation_id = rt.conversations.create_conversation(workspace_id, agent_id)
        rt.agents.update_agent(agent_id, AgentUpdate(conversation_id=conversation_id))
        return agent_id

    click.echo(_run(ctx, action))


@main.command()
@click.argument("workspace")
@click.pass_context
def agents(ctx: click.Context, workspace: str) -> None:
    """List the agents of WORKSPACE."""

    async def action(rt: ChatRuntime) -> None:
        workspace_id = _find([ws.id for ws in rt.workspaces.list_workspaces()], workspace, "workspace")
        for agent in rt.agents.list_by_workspace(workspace_id):
            click.echo(f"{agent.id}  {agent.name}  {agent.provider}:{agent.model}  [{agent.status}]")

    _run(ctx, action)


@main.command()
@click.pass_context
def pending(ctx: click.Context) -> None:
    """List actions awaiting a decision, oldest first."""

    async def action(rt: ChatRuntime) -> None:
        for item in rt.agents.get_all_pending_actions():
            summary = item.data.question if item.type == "clarifying_question" else item.data.tool_name
            click.echo(f"{item.id}  agent={item.agent_id}  {item.type}: {summary}")

    _run(ctx, action)


@main.command()
@click.argument("agent")
@click.argument("action_id")
@click.option(
    "--decision",
    type=click.Choice(["allow", "allow_all", "deny"]),
    default=None,
    help="Decision for a tool approval.",
)
@click.option("--answer", default=None, help="Answer to a clarifying question.")
@click.pass_context
def resolve(ctx: click.Context, agent: str, action_id: str, decision: str | None, answer: str | None) -> None:
    """Resolve a pending action of AGENT."""
    if decision == "deny":
        # Any falsy resolution denies the action.
        resolution: Any = None
    else:
        resolution = decision or answer

    async def action(rt: ChatRuntime) -> Any:
        agent_id = _find(_agent_ids(rt), agent, "agent")
        return rt.agents.resolve_pending_action(agent_id, action_id, resolution)

    resolved = _run(ctx, action)
    if resolved is None:
        raise click.ClickException(f"No pending action '{action_id}'")
    click.echo(f"{resolved.id} {resolved.status}")


def _agent_ids(rt: ChatRuntime) -> list[str]:
    return [a.id for a in rt.agents.all_agents()]


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------


@main.command()
@click.option("--workspace", default=None, help="Only show conversations of this workspace.")
@click.pass_context
def tree(ctx: click.Context, workspace: str | None) -> None:
    """Render the conversation branch tree."""
    from branchgpt.chat_runtime.tree import build_tree, flatten

    async def action(rt: ChatRuntime) -> None:
        conversations = rt.conversations.all_conversations()
        if workspace is not None:
            workspace_id = _find([ws.id for ws in rt.workspaces.list_workspaces()], workspace, "workspace")
            conversations = rt.conversations.list_by_workspace(workspace_id)

        for node in flatten(build_tree(conversations)):
            conv = node.conversation
            fork = f" @{conv.branch_point}" if conv.is_branch else ""
            title = conv.title or "(untitled)"
            click.echo(f"{'  ' * node.depth}{conv.id}{fork}  {title}  [{len(conv.messages)} messages]")

    _run(ctx, action)


@main.command()
@click.argument("conversation")
@click.argument("index", type=int)
@click.option("--message", default=None, help="User message to append to the new branch.")
@click.pass_context
def branch(ctx: click.Context, conversation: str, index: int, message: str | None) -> None:
    """Fork CONVERSATION after message INDEX."""
    from branchgpt.chat_runtime.models import ChatRole, create_text_message

    async def action(rt: ChatRuntime) -> str:
        ids = [c.id for c in rt.conversations.all_conversations()]
        source = rt.conversations.require_conversation(_find(ids, conversation, "conversation"))
        new_message = create_text_message(ChatRole.USER, message, source.agent_id) if message else None
        return rt.conversations.branch_conversation(source.id, index, new_message)

    click.echo(_run(ctx, action))


@main.command()
@click.argument("agent")
@click.argument("text")
@click.option("--conversation", default=None, help="Conversation to continue (default: the agent's current one).")
@click.pass_context
def chat(ctx: click.Context, agent: str, text: str, conversation: str | None) -> None:
    """Send TEXT to AGENT and print the reply."""
    from branchgpt.chat_runtime.models import AgentUpdate, TurnStatus, is_busy

    async def action(rt: ChatRuntime) -> Any:
        record = rt.agents.require_agent(_find(_agent_ids(rt), agent, "agent"))
        if is_busy(record):
            raise click.ClickException(f"Agent {record.id} is {record.status}")

        if conversation is not None:
            ids = [c.id for c in rt.conversations.all_conversations()]
            conversation_id = _find(ids, conversation, "conversation")
        elif rt.conversations.get_conversation(record.conversation_id) is not None:
            conversation_id = record.conversation_id
        else:
            conversation_id = rt.conversations.create_conversation(record.workspace_id, record.id)
        if conversation_id != record.conversation_id:
            rt.agents.update_agent(record.id, AgentUpdate(conversation_id=conversation_id))

        return await rt.chat(record.id, conversation_id, text)

    result = _run(ctx, action)
    if result.status != TurnStatus.COMPLETED:
        raise click.ClickException(f"Turn {result.status}: {result.error}")
    click.echo(result.text)


if __name__ == "__main__":
    main()

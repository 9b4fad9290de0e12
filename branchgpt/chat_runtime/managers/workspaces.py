"""Workspace lifecycle and agent membership.

Encapsulates all workspace state: create, list, get, update, delete, the
active-workspace pointer, and the ordered agent membership list.
Unresolved workspace ids make mutations a silent no-op.
"""

from __future__ import annotations

import uuid
from typing import Any

from loguru import logger
from pydantic import TypeAdapter

from branchgpt.chat_runtime.managers.base import Clock, ManagerBase, explicit_changes, replace
from branchgpt.chat_runtime.models.workspace import (
    Workspace,
    WorkspaceConfig,
    WorkspaceMetadata,
    WorkspaceUpdate,
)

_WORKSPACE_PAIRS = TypeAdapter(list[tuple[str, Workspace]])


class WorkspaceManager(ManagerBase):
    """In-memory workspace store."""

    def __init__(self, clock: Clock | None = None) -> None:
        super().__init__(clock)
        self._workspaces: dict[str, Workspace] = {}
        self._active_workspace_id: str | None = None

    # -- Create ----------------------------------------------------------------

    def create_workspace(self, config: WorkspaceConfig) -> str:
        """Create a workspace, make it active, and return its id."""
        workspace_id = str(uuid.uuid4())
        now = self._now()

        workspace = Workspace(
            id=workspace_id,
            name=config.name,
            agent_ids=[],
            isolated=config.isolated or False,
            created_at=now,
            updated_at=now,
            metadata=WorkspaceMetadata(
                branch=config.branch,
                path=config.path,
                description=config.description,
                color=config.color,
            ),
        )
        self._workspaces[workspace_id] = workspace
        self._active_workspace_id = workspace_id

        logger.info("Workspace created: {} ({!r})", workspace_id, config.name)
        self._notify()
        return workspace_id

    # -- Update / delete -------------------------------------------------------

    def update_workspace(self, workspace_id: str, body: WorkspaceUpdate) -> None:
        workspace = self._workspaces.get(workspace_id)
        if workspace is None:
            return

        changes = explicit_changes(body)
        if changes.get("agent_ids") is not None:
            changes["agent_ids"] = list(dict.fromkeys(changes["agent_ids"]))
        self._workspaces[workspace_id] = replace(workspace, **changes, updated_at=self._now())
        self._notify()

    def delete_workspace(self, workspace_id: str) -> None:
        """Remove a workspace.  Its conversations are left in place."""
        if self._workspaces.pop(workspace_id, None) is None:
            return
        if self._active_workspace_id == workspace_id:
            self._active_workspace_id = None
        logger.info("Workspace deleted: {}", workspace_id)
        self._notify()

    # -- Active pointer --------------------------------------------------------

    def set_active_workspace(self, workspace_id: str | None) -> None:
        self._active_workspace_id = workspace_id
        self._notify()

    @property
    def active_workspace_id(self) -> str | None:
        return self._active_workspace_id

    def get_active_workspace(self) -> Workspace | None:
        if self._active_workspace_id is None:
            return None
        return self._workspaces.get(self._active_workspace_id)

    # -- Query -----------------------------------------------------------------

    def get_workspace(self, workspace_id: str) -> Workspace | None:
        return self._workspaces.get(workspace_id)

    def list_workspaces(self) -> list[Workspace]:
        """All workspaces, newest first."""
        return sorted(self._workspaces.values(), key=lambda ws: ws.created_at, reverse=True)

    def get_workspace_agents(self, workspace_id: str) -> list[str]:
        workspace = self._workspaces.get(workspace_id)
        return list(workspace.agent_ids) if workspace else []

    def count(self) -> int:
        return len(self._workspaces)

    # -- Membership ------------------------------------------------------------

    def add_agent(self, workspace_id: str, agent_id: str) -> None:
        """Append *agent_id* to the workspace.  Re-adding a member is a no-op."""
        workspace = self._workspaces.get(workspace_id)
        if workspace is None or agent_id in workspace.agent_ids:
            return

        self._workspaces[workspace_id] = replace(
            workspace,
            agent_ids=[*workspace.agent_ids, agent_id],
            updated_at=self._now(),
        )
        self._notify()

    def remove_agent(self, workspace_id: str, agent_id: str) -> None:
        workspace = self._workspaces.get(workspace_id)
        if workspace is None:
            return

        self._workspaces[workspace_id] = replace(
            workspace,
            agent_ids=[aid for aid in workspace.agent_ids if aid != agent_id],
            updated_at=self._now(),
        )
        self._notify()

    # -- Bulk ------------------------------------------------------------------

    def clear(self) -> None:
        self._workspaces = {}
        self._active_workspace_id = None
        self._notify()

    def dump(self) -> dict[str, Any]:
        """Serialize as ``(id, workspace)`` pairs plus the active pointer."""
        return {
            "workspaces": [[wid, ws.model_dump(mode="json")] for wid, ws in self._workspaces.items()],
            "active_workspace_id": self._active_workspace_id,
        }

    def restore(self, state: dict[str, Any]) -> None:
        """Replace the whole collection with the output of ``dump()``.

        Raises ``pydantic.ValidationError`` on malformed data, leaving the
        current collection untouched.
        """
        workspaces = _WORKSPACE_PAIRS.validate_python(state.get("workspaces") or [])
        active = state.get("active_workspace_id")
        self._workspaces = dict(workspaces)
        self._active_workspace_id = active if isinstance(active, str) else None

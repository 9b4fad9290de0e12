"""Workspace data models.

A workspace is a named grouping of agents.  The ``isolated`` flag records
whether member agents should see an isolated filesystem view; the runtime
only stores it.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class WorkspaceMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    branch: str | None = None
    path: str | None = None
    description: str | None = None
    color: str | None = None


class Workspace(BaseModel):
    """Workspace record.  Never mutated in place; updates replace the record."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    agent_ids: list[str] = Field(default_factory=list, description="Member agents in display order")
    isolated: bool = False
    created_at: datetime
    updated_at: datetime
    metadata: WorkspaceMetadata | None = None


class WorkspaceConfig(BaseModel):
    """Input for creating a new workspace."""

    name: str
    isolated: bool | None = None
    branch: str | None = None
    path: str | None = None
    description: str | None = None
    color: str | None = None


class WorkspaceUpdate(BaseModel):
    """Partial workspace update -- only fields explicitly set are applied."""

    name: str | None = None
    agent_ids: list[str] | None = None
    isolated: bool | None = None
    metadata: WorkspaceMetadata | None = None


def has_agents(workspace: Workspace) -> bool:
    return len(workspace.agent_ids) > 0

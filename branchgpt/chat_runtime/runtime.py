"""Chat runtime composition and lifespan.

``open_runtime`` wires the three managers to their blob keys, hydrates them,
and on exit drains in-flight turns and flushes every collection.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from loguru import logger

from branchgpt.chat_runtime.execution.channel import ProviderChannel, PydanticAIChannel
from branchgpt.chat_runtime.execution.coordinator import TurnResult, run_chat_turn
from branchgpt.chat_runtime.log import setup_logging
from branchgpt.chat_runtime.managers import AgentManager, ConversationManager, WorkspaceManager
from branchgpt.chat_runtime.persistence import (
    AGENT_STORAGE_KEY,
    CHAT_STORAGE_KEY,
    WORKSPACE_STORAGE_KEY,
    StatePersister,
)
from branchgpt.chat_runtime.registry import TurnRegistry
from branchgpt.chat_runtime.settings import BranchSettings, get_settings
from branchgpt.chat_runtime.store.base import BlobStore
from branchgpt.chat_runtime.store.local import LocalBlobStore


def create_blob_store(settings: BranchSettings) -> BlobStore:
    """Create the blob store backend based on configuration."""
    if settings.blob_store == "s3":
        from branchgpt.chat_runtime.store.s3 import S3BlobStore

        if not settings.s3_bucket:
            msg = "BRANCHGPT_S3_BUCKET is required when BRANCHGPT_BLOB_STORE=s3"
            raise ValueError(msg)
        return S3BlobStore(
            bucket=settings.s3_bucket,
            endpoint_url=settings.s3_endpoint,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key.get_secret_value() if settings.s3_secret_key else None,
            prefix=settings.data_prefix,
            region=settings.s3_region,
            path_style=settings.s3_path_style,
        )
    return LocalBlobStore(settings.data_root, prefix=settings.data_prefix)


@dataclass
class ChatRuntime:
    """The managers, registry and channel making up one running chat core."""

    workspaces: WorkspaceManager
    agents: AgentManager
    conversations: ConversationManager
    channel: ProviderChannel
    registry: TurnRegistry = field(default_factory=TurnRegistry)
    persisters: list[StatePersister] = field(default_factory=list)

    async def chat(self, agent_id: str, conversation_id: str, user_text: str) -> TurnResult:
        """Run one chat turn with this runtime's managers, channel and registry."""
        return await run_chat_turn(
            agent_id,
            conversation_id,
            user_text,
            agents=self.agents,
            conversations=self.conversations,
            channel=self.channel,
            registry=self.registry,
        )


@asynccontextmanager
async def open_runtime(
    settings: BranchSettings | None = None,
    *,
    store: BlobStore | None = None,
    channel: ProviderChannel | None = None,
    configure_logging: bool = True,
) -> AsyncIterator[ChatRuntime]:
    # -- Startup ---------------------------------------------------------------
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(settings.log_level)

    store = store or create_blob_store(settings)
    prefix_info = f", prefix={settings.data_prefix}" if settings.data_prefix else ""
    logger.info("Data root: {} (store={}{})", settings.data_root, settings.blob_store, prefix_info)

    runtime = ChatRuntime(
        workspaces=WorkspaceManager(),
        agents=AgentManager(settings),
        conversations=ConversationManager(),
        channel=channel or PydanticAIChannel(),
    )
    runtime.persisters = [
        StatePersister(store, WORKSPACE_STORAGE_KEY, runtime.workspaces),
        StatePersister(store, AGENT_STORAGE_KEY, runtime.agents),
        StatePersister(store, CHAT_STORAGE_KEY, runtime.conversations),
    ]
    for persister in runtime.persisters:
        await persister.hydrate()
        persister.bind()
    logger.info(
        "Chat runtime ready (workspaces={}, agents={}, conversations={})",
        runtime.workspaces.count(),
        runtime.agents.count(),
        len(runtime.conversations.all_conversations()),
    )

    try:
        yield runtime
    finally:
        # -- Shutdown ----------------------------------------------------------
        registry = runtime.registry
        registry.begin_shutdown()
        if registry.active_count > 0:
            timeout = settings.shutdown_timeout
            logger.info("Waiting for {} active turns to finish (timeout={}s)...", registry.active_count, timeout)
            if not await registry.wait_until_drained(timeout=timeout):
                cancelled = registry.cancel_all()
                logger.warning("Cancelled {} turns after timeout", cancelled)
                await registry.wait_until_drained(timeout=5.0)

        first_error: Exception | None = None
        for persister in runtime.persisters:
            try:
                await persister.close()
            except Exception as exc:
                logger.exception("Failed to flush {} on shutdown", persister.key)
                first_error = first_error or exc
        if first_error is not None:
            raise first_error
        logger.info("Chat runtime closed")

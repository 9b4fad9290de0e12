"""Runtime configuration loaded from BRANCHGPT_* environment variables."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from branchgpt.chat_runtime.models.agent import default_model_for_provider


class BranchSettings(BaseSettings):
    """BranchGPT chat runtime settings.

    All fields are read from environment variables with the ``BRANCHGPT_``
    prefix.  For example, ``BRANCHGPT_LOG_LEVEL=DEBUG`` maps to ``log_level``.

    Provider API keys (ANTHROPIC_API_KEY, OPENAI_API_KEY, GEMINI_API_KEY) are
    **not** managed here -- pydantic-ai reads them directly.
    """

    model_config = SettingsConfigDict(
        env_prefix="BRANCHGPT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Data storage ----------------------------------------------------------
    data_root: str = "./data"
    """Root directory for persisted workspace / agent / conversation blobs."""

    data_prefix: str | None = None
    """Optional namespace prefix inserted into all data paths.

    When set, all paths become ``{data_root}/{data_prefix}/...``.
    """

    blob_store: Literal["local", "s3"] = "local"

    # S3 (only when blob_store = "s3")
    s3_endpoint: str | None = None
    s3_bucket: str | None = None
    s3_region: str | None = None
    s3_access_key: str | None = None
    s3_secret_key: SecretStr | None = None
    s3_path_style: bool = False
    """Use path-style addressing (required by MinIO and some S3-compatible services)."""

    # -- Agent defaults --------------------------------------------------------
    default_temperature: float = 0.7
    default_max_tokens: int = 4096
    default_models: dict[str, str] = {}
    """Per-provider default model overrides, e.g. ``{"openai": "gpt-4-turbo"}``.

    Providers without an override fall back to the first model in the
    built-in provider table.
    """

    # -- Shutdown --------------------------------------------------------------
    shutdown_timeout: float = 30.0
    """Seconds to wait for in-flight chat turns before cancelling them."""

    # -- Helpers ---------------------------------------------------------------

    def default_model_for(self, provider: str) -> str:
        """Return the default model for *provider*.

        Raises ``UnknownProviderError`` if the provider is unknown and has no
        override.
        """
        override = self.default_models.get(str(provider))
        if override:
            return override
        return default_model_for_provider(provider)


def get_settings() -> BranchSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``_get_settings_cached.cache_clear()`` in tests to
    force a re-read after overriding env vars.
    """
    return _get_settings_cached()


@lru_cache(maxsize=1)
def _get_settings_cached() -> BranchSettings:
    return BranchSettings()

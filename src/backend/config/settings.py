"""Centralized application settings loaded from environment variables.

All configuration is defined once here. Other modules should import
``get_settings()`` rather than calling ``os.getenv()`` directly.
"""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application-wide configuration backed by environment variables.

    Field names are **lowercased** versions of the env-var names.
    ``pydantic-settings`` maps them automatically (case-insensitive).
    Dict-valued fields are read as JSON.

    Example::

        settings = Settings()  # reads .env + real env
        dsn = settings.database_connections["main"]
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -- Azure AI / Foundry ------------------------------------------------

    azure_ai_project_endpoint: str = ""
    """Foundry project endpoint URL."""

    azure_ai_model_deployment_name: str = "gpt-4o"
    """Model deployment used for generation, linking and revision."""

    azure_client_id: str | None = None
    """Managed-identity client ID (None → system-assigned)."""

    # -- Databases ---------------------------------------------------------

    database_connections: dict[str, str] = {}
    """Database identifier → ODBC connection string, e.g. ``{"main": "DSN=..."}``."""

    sql_dialect: str | None = None
    """sqlglot dialect used for parsing (``tsql``, ``mysql``, ...). None → generic."""

    database_query_timeout_seconds: int = 60
    """Per-statement timeout passed to the ODBC driver."""

    database_use_azure_ad_token: bool = False
    """Authenticate ODBC connections with an Azure AD token (Azure SQL)."""

    # -- Schema linking ----------------------------------------------------

    schema_linking_strategy: Literal["keyword", "llm", "content"] = "content"
    """Head of the linker chain. Each strategy falls back to the next cheaper one."""

    keyword_extractor: Literal["simple", "rake"] = "rake"
    """Keyword extractor used by the keyword linker."""

    max_keywords: int = 10
    """Upper bound on keywords returned by the RAKE extractor."""

    min_linked_tables: int = 2
    """Below this many linked tables, small schemas are sent in full."""

    small_schema_table_limit: int = 10
    """Schemas with at most this many tables count as small."""

    sample_rows_per_table: int = 2
    """Sample rows shown per table to content-aware linkers."""

    sample_cell_max_chars: int = 30
    """Sample cell values are truncated to this many characters."""

    # -- Tokenizer ---------------------------------------------------------

    bimm_prefer_backward_on_tie: bool = True
    """When forward and backward segmentations tie on token count, keep backward."""

    # -- Revision / execution ----------------------------------------------

    max_revision_attempts: int = 3
    """Reviser calls allowed per statement before validation failure is final."""

    max_execution_retries: int = 3
    """Execution attempts per read statement (first run included)."""

    revision_schema_max_chars: int = 2000
    """Schema description is cut to this length in revision prompts."""

    default_max_rows: int = 100
    """Row limit used when a task does not set one."""

    # -- Timeouts ----------------------------------------------------------

    approval_timeout_seconds: float = 300.0
    """Pending write approvals are treated as rejected after this long."""

    turn_timeout_seconds: float = 600.0
    """Upper bound on one ``execute()`` call."""


def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    Uses a module-level singleton so the ``.env`` file is read at most
    once per process.

    Returns:
        The global ``Settings`` object.
    """
    return _settings


_settings = Settings()

"""Pipeline client container and Protocol adapters for dependency injection.

``PipelineClients`` bundles every I/O dependency the NL2SQL pipeline
needs. Production code constructs it via ``create_pipeline_clients()``
from a Foundry-hosted ``ChatAgent`` and ODBC connections; tests
construct it from in-memory fakes.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field, replace

from agent_framework import AgentThread, ChatAgent
from agent_framework_azure_ai import AzureAIClient
from azure.identity.aio import DefaultAzureCredential
from config.settings import Settings, get_settings
from entities.schema_linker import build_linker_chain, make_keyword_extractor
from entities.shared.protocols import (
    ApprovalHandler,
    DatabaseConnection,
    NoOpReporter,
    ProgressReporter,
    SchemaLinker,
    TextCompletionService,
)
from entities.shared.sql_client import OdbcDatabaseConnection

logger = logging.getLogger(__name__)

_AGENT_INSTRUCTIONS = (
    "You are a careful SQL assistant. Follow the output format requested in "
    "each prompt exactly and never invent tables or columns."
)


# ---------------------------------------------------------------------------
# Protocol adapters
# ---------------------------------------------------------------------------


class ChatAgentCompletionService:
    """``TextCompletionService`` backed by an agent-framework ``ChatAgent``.

    Every prompt runs on a fresh ``AgentThread`` so calls share no
    conversation state.

    Args:
        agent: Agent used for all completions.
    """

    def __init__(self, agent: ChatAgent) -> None:
        self._agent = agent

    async def send_prompt(self, prompt: str) -> str:
        response = await self._agent.run(prompt, thread=AgentThread())

        # Extract response text from agent messages
        parts: list[str] = []
        for msg in response.messages:
            if hasattr(msg, "contents"):
                for content in msg.contents:
                    text_value = getattr(content, "text", None)
                    if text_value:
                        parts.append(text_value)
        return "".join(parts)

    async def stream_prompt(self, prompt: str) -> AsyncIterator[str]:
        async for update in self._agent.run_stream(prompt, thread=AgentThread()):
            text_value = getattr(update, "text", None)
            if text_value:
                yield text_value


# ---------------------------------------------------------------------------
# PipelineClients dataclass
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PipelineClients:
    """Immutable bundle of all I/O dependencies for the NL2SQL pipeline.

    All fields use Protocol types, enabling full dependency injection.

    Args:
        completion: Text-completion backend for linking, generation and revision.
        connections: Database identifier → open connection.
        approval_handler: Asked before any write statement is committed.
        schema_linkers: Per-database linker overrides; databases without
            one get a chain built from ``settings``.
        reporter: Progress reporter for streaming UI updates.
        settings: Thresholds, limits and timeouts.
        display_names: Optional database identifier → human-readable name.
    """

    completion: TextCompletionService
    connections: dict[str, DatabaseConnection]
    approval_handler: ApprovalHandler
    schema_linkers: dict[str, SchemaLinker] = field(default_factory=dict)
    reporter: ProgressReporter = field(default_factory=NoOpReporter)
    settings: Settings = field(default_factory=get_settings)
    display_names: dict[str, str] = field(default_factory=dict)

    def linker_for(self, database: str) -> SchemaLinker:
        """Return the schema linker for ``database``."""
        linker = self.schema_linkers.get(database)
        if linker is not None:
            return linker
        settings = self.settings
        return build_linker_chain(
            settings.schema_linking_strategy,
            completion=self.completion,
            connection=self.connections.get(database),
            extractor=make_keyword_extractor(
                settings.keyword_extractor,
                settings.max_keywords,
                settings.bimm_prefer_backward_on_tie,
            ),
            sample_rows=settings.sample_rows_per_table,
            cell_max_chars=settings.sample_cell_max_chars,
        )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_pipeline_clients(
    settings: Settings,
    approval_handler: ApprovalHandler,
    reporter: ProgressReporter | None = None,
) -> PipelineClients:
    """Build a ``PipelineClients`` from application ``Settings``.

    Creates one ``ChatAgent`` on the configured Foundry deployment, one
    lazily opened ODBC connection per configured database, and a linker
    chain per database. No module-level singletons are created; each
    call produces a fresh, self-contained bundle.

    Args:
        settings: Centralised application configuration.
        approval_handler: Handler consulted before writes.
        reporter: Optional progress reporter.  Defaults to ``NoOpReporter``.

    Returns:
        Fully-initialised ``PipelineClients`` ready for ``execute()``.
    """
    # -- Credential --------------------------------------------------------
    credential = (
        DefaultAzureCredential(managed_identity_client_id=settings.azure_client_id)
        if settings.azure_client_id
        else DefaultAzureCredential()
    )

    # -- LLM ---------------------------------------------------------------
    agent = ChatAgent(
        name="nl2sql-agent",
        instructions=_AGENT_INSTRUCTIONS,
        chat_client=AzureAIClient(
            project_endpoint=settings.azure_ai_project_endpoint,
            credential=credential,
            model_deployment_name=settings.azure_ai_model_deployment_name,
            use_latest_version=True,
        ),
    )
    completion = ChatAgentCompletionService(agent)

    # -- Databases ---------------------------------------------------------
    connections: dict[str, DatabaseConnection] = {
        database_id: OdbcDatabaseConnection(
            database_id,
            dsn,
            query_timeout_seconds=settings.database_query_timeout_seconds,
            use_azure_ad_token=settings.database_use_azure_ad_token,
            azure_client_id=settings.azure_client_id,
            dialect=settings.sql_dialect,
        )
        for database_id, dsn in settings.database_connections.items()
    }
    if not connections:
        logger.warning("No databases configured (DATABASE_CONNECTIONS is empty)")

    clients = PipelineClients(
        completion=completion,
        connections=connections,
        approval_handler=approval_handler,
        reporter=reporter or NoOpReporter(),
        settings=settings,
    )

    # -- Schema linkers ----------------------------------------------------
    linkers = {database_id: clients.linker_for(database_id) for database_id in connections}
    logger.info(
        "Pipeline clients ready: databases=%s, linking=%s",
        list(connections),
        settings.schema_linking_strategy,
    )
    return replace(clients, schema_linkers=linkers)

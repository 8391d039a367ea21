"""Unit tests for the pipeline client container and its adapters.

The agent-framework and Azure classes are patched where
``entities.workflow.clients`` looks them up; no network access occurs.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from config.settings import Settings
from entities.schema_linker import ContentLinker, KeywordLinker, LlmLinker
from entities.workflow import ChatAgentCompletionService, PipelineClients, create_pipeline_clients

from tests.conftest import FakeApprovalHandler, FakeCompletion, FakeDatabase

_CLIENTS_PATCHES = {
    "thread": "entities.workflow.clients.AgentThread",
    "agent": "entities.workflow.clients.ChatAgent",
    "chat_client": "entities.workflow.clients.AzureAIClient",
    "credential": "entities.workflow.clients.DefaultAzureCredential",
    "odbc": "entities.workflow.clients.OdbcDatabaseConnection",
}


def _make_response(*texts: list[str | None]) -> SimpleNamespace:
    """Agent response with one message per text list."""
    return SimpleNamespace(
        messages=[
            SimpleNamespace(contents=[SimpleNamespace(text=t) for t in message])
            for message in texts
        ]
    )


def _make_clients(settings: Settings, **overrides) -> PipelineClients:
    values = {
        "completion": FakeCompletion(),
        "connections": {"main": FakeDatabase()},
        "approval_handler": FakeApprovalHandler(),
        "settings": settings,
    }
    values.update(overrides)
    return PipelineClients(**values)


# ── ChatAgentCompletionService ───────────────────────────────────────────


class TestChatAgentCompletionService:
    """Adapter from ChatAgent to the completion protocol."""

    @patch(_CLIENTS_PATCHES["thread"])
    async def test_send_prompt_joins_text_contents(self, mock_thread: MagicMock) -> None:
        agent = MagicMock()
        agent.run = AsyncMock(return_value=_make_response(["SELECT ", None], ["1"]))

        text = await ChatAgentCompletionService(agent).send_prompt("prompt")

        assert text == "SELECT 1"
        agent.run.assert_awaited_once_with("prompt", thread=mock_thread.return_value)

    @patch(_CLIENTS_PATCHES["thread"])
    async def test_fresh_thread_per_prompt(self, mock_thread: MagicMock) -> None:
        agent = MagicMock()
        agent.run = AsyncMock(return_value=_make_response(["ok"]))
        service = ChatAgentCompletionService(agent)

        await service.send_prompt("one")
        await service.send_prompt("two")

        assert mock_thread.call_count == 2

    @patch(_CLIENTS_PATCHES["thread"])
    async def test_stream_prompt_yields_text_updates(self, mock_thread: MagicMock) -> None:
        async def _updates():
            for text in ("SEL", None, "ECT 1"):
                yield SimpleNamespace(text=text)

        agent = MagicMock()
        agent.run_stream = MagicMock(return_value=_updates())

        chunks = [c async for c in ChatAgentCompletionService(agent).stream_prompt("prompt")]

        assert chunks == ["SEL", "ECT 1"]


# ── PipelineClients.linker_for ───────────────────────────────────────────


class TestLinkerFor:
    """Per-database linker resolution."""

    def test_override_wins(self, test_settings: Settings) -> None:
        override = KeywordLinker()
        clients = _make_clients(test_settings, schema_linkers={"main": override})

        assert clients.linker_for("main") is override

    def test_keyword_strategy(self, test_settings: Settings) -> None:
        assert isinstance(_make_clients(test_settings).linker_for("main"), KeywordLinker)

    def test_content_strategy(self, test_settings: Settings) -> None:
        settings = test_settings.model_copy(update={"schema_linking_strategy": "content"})

        assert isinstance(_make_clients(settings).linker_for("main"), ContentLinker)

    def test_content_without_connection_degrades(self, test_settings: Settings) -> None:
        settings = test_settings.model_copy(update={"schema_linking_strategy": "content"})

        assert isinstance(_make_clients(settings).linker_for("unknown"), LlmLinker)


# ── create_pipeline_clients ──────────────────────────────────────────────


class TestCreatePipelineClients:
    """Factory wiring from Settings."""

    @patch(_CLIENTS_PATCHES["odbc"])
    @patch(_CLIENTS_PATCHES["credential"])
    @patch(_CLIENTS_PATCHES["chat_client"])
    @patch(_CLIENTS_PATCHES["agent"])
    def test_wiring(
        self,
        mock_agent: MagicMock,
        mock_chat_client: MagicMock,
        mock_credential: MagicMock,
        mock_odbc: MagicMock,
        test_settings: Settings,
    ) -> None:
        settings = test_settings.model_copy(
            update={
                "database_connections": {"sales": "DSN=sales", "hr": "DSN=hr"},
                "azure_client_id": "client-123",
                "database_use_azure_ad_token": True,
            }
        )
        handler = FakeApprovalHandler()

        clients = create_pipeline_clients(settings, handler)

        mock_credential.assert_called_once_with(managed_identity_client_id="client-123")
        mock_chat_client.assert_called_once_with(
            project_endpoint=settings.azure_ai_project_endpoint,
            credential=mock_credential.return_value,
            model_deployment_name="test-model",
            use_latest_version=True,
        )
        assert mock_agent.call_args.kwargs["chat_client"] is mock_chat_client.return_value
        assert isinstance(clients.completion, ChatAgentCompletionService)
        assert list(clients.connections) == ["sales", "hr"]
        mock_odbc.assert_any_call(
            "sales",
            "DSN=sales",
            query_timeout_seconds=60,
            use_azure_ad_token=True,
            azure_client_id="client-123",
            dialect=None,
        )
        assert set(clients.schema_linkers) == {"sales", "hr"}
        assert clients.approval_handler is handler
        assert clients.settings is settings

    @patch(_CLIENTS_PATCHES["odbc"])
    @patch(_CLIENTS_PATCHES["credential"])
    @patch(_CLIENTS_PATCHES["chat_client"])
    @patch(_CLIENTS_PATCHES["agent"])
    def test_no_databases(
        self,
        mock_agent: MagicMock,
        mock_chat_client: MagicMock,
        mock_credential: MagicMock,
        mock_odbc: MagicMock,
        test_settings: Settings,
    ) -> None:
        clients = create_pipeline_clients(test_settings, FakeApprovalHandler())

        mock_credential.assert_called_once_with()
        mock_odbc.assert_not_called()
        assert clients.connections == {}
        assert clients.schema_linkers == {}

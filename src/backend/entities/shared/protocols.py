"""Protocol interfaces for I/O boundaries.

These protocols enable dependency injection for testability.
Production implementations wrap agent-framework and aioodbc clients;
test fakes return canned data with zero network or database access.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from models import (
    DatabaseSchema,
    DryRunResult,
    LinkingResult,
    QueryResult,
    SqlOperationType,
    UpdateResult,
)


@runtime_checkable
class TextCompletionService(Protocol):
    """Opaque, fallible text-completion backend.

    No retries are performed at this layer; callers own retry policy.
    """

    async def send_prompt(self, prompt: str) -> str:
        """Send a single prompt and return the full completion text.

        Args:
            prompt: Complete prompt text.

        Returns:
            The model's response text.
        """
        ...

    def stream_prompt(self, prompt: str) -> AsyncIterator[str]:
        """Send a prompt and yield completion text chunks as they arrive.

        Args:
            prompt: Complete prompt text.

        Returns:
            Async iterator of text chunks.
        """
        ...


@runtime_checkable
class DatabaseConnection(Protocol):
    """A live connection to one relational database."""

    async def get_schema(self) -> DatabaseSchema:
        """Fetch a snapshot of the user tables and their columns."""
        ...

    async def execute_query(self, sql: str) -> QueryResult:
        """Execute a read statement.

        Raises:
            DatabaseError: If the database rejects or fails the statement.
        """
        ...

    async def dry_run(self, sql: str) -> DryRunResult:
        """Execute a write statement without committing it."""
        ...

    async def execute_update(self, sql: str) -> UpdateResult:
        """Execute and commit a write statement."""
        ...

    async def get_sample_rows(self, table: str, limit: int) -> QueryResult:
        """Return up to ``limit`` rows of ``table``."""
        ...

    async def close(self) -> None:
        """Release the underlying connection."""
        ...


@runtime_checkable
class ApprovalHandler(Protocol):
    """Asks a human to approve a write statement.

    May wait indefinitely; the orchestrator applies its own timeout and
    cancels the pending call when the turn is abandoned.
    """

    async def request_approval(
        self,
        sql: str,
        operation_type: SqlOperationType,
        affected_tables: list[str],
        is_high_risk: bool,
        dry_run_result: DryRunResult | None,
    ) -> bool:
        """Return True to execute the statement, False to reject it."""
        ...


@runtime_checkable
class KeywordExtractor(Protocol):
    """Turns a natural-language query into an ordered keyword list."""

    def extract_keywords(self, query: str) -> list[str]:
        """Return keywords, most relevant first, without duplicates."""
        ...


@runtime_checkable
class SchemaLinker(Protocol):
    """Selects the tables and columns of a schema relevant to a query."""

    async def link(self, query: str, schema: DatabaseSchema) -> LinkingResult:
        """Link ``query`` to ``schema``. Never returns an empty table list
        for a non-empty schema."""
        ...

    async def extract_keywords(self, query: str) -> list[str]:
        """Return the keywords this linker would match on."""
        ...


@runtime_checkable
class ProgressReporter(Protocol):
    """Reports step-level progress for streaming UI updates."""

    def step_start(self, step: str) -> None:
        """Signal that a named step has started.

        Args:
            step: Human-readable step label.
        """
        ...

    def step_end(self, step: str) -> None:
        """Signal that a named step has completed.

        Args:
            step: Human-readable step label (must match a prior start).
        """
        ...


# ---------------------------------------------------------------------------
# Concrete implementations
# ---------------------------------------------------------------------------


class NoOpReporter:
    """ProgressReporter that silently discards all events.

    Useful in tests and in callers that do not stream progress.
    """

    def step_start(self, step: str) -> None:
        """No-op."""

    def step_end(self, step: str) -> None:
        """No-op."""

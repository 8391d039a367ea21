"""Shared test fixtures for the NL2SQL pipeline."""

import asyncio
import sys
from collections.abc import AsyncIterator, Callable
from pathlib import Path

import pytest

# Ensure src/backend/ is on the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src" / "backend"))

from config.settings import Settings
from entities.shared.errors import DatabaseError
from entities.shared.protocols import NoOpReporter
from models import (
    ColumnSchema,
    DatabaseSchema,
    DryRunResult,
    QueryResult,
    SqlOperationType,
    TableSchema,
    UpdateResult,
)

# ---------------------------------------------------------------------------
# Sample schemas
# ---------------------------------------------------------------------------


def make_shop_schema(name: str = "shop") -> DatabaseSchema:
    """Three-table shop schema: customers, orders, products."""
    return DatabaseSchema(
        database_name=name,
        tables=[
            TableSchema(
                name="customers",
                comment="Registered customers",
                columns=[
                    ColumnSchema(name="id", type="INT", nullable=False, is_primary_key=True),
                    ColumnSchema(name="name", type="VARCHAR"),
                    ColumnSchema(name="city", type="VARCHAR"),
                ],
            ),
            TableSchema(
                name="orders",
                comment="Customer orders",
                columns=[
                    ColumnSchema(name="id", type="INT", nullable=False, is_primary_key=True),
                    ColumnSchema(name="customer_id", type="INT", is_foreign_key=True),
                    ColumnSchema(name="total", type="DECIMAL"),
                    ColumnSchema(name="created_at", type="DATETIME"),
                ],
            ),
            TableSchema(
                name="products",
                columns=[
                    ColumnSchema(name="id", type="INT", nullable=False, is_primary_key=True),
                    ColumnSchema(name="name", type="VARCHAR"),
                    ColumnSchema(name="price", type="DECIMAL"),
                ],
            ),
        ],
    )


def sql_response(*blocks: tuple[str | None, str]) -> str:
    """Render ``(database, sql)`` pairs as an LLM answer with fenced blocks."""
    parts = ["Here is the SQL:"]
    for database, sql in blocks:
        comment = f"-- database: {database}\n" if database else ""
        parts.append(f"```sql\n{comment}{sql}\n```")
    return "\n\n".join(parts)


# ---------------------------------------------------------------------------
# Protocol fakes
# ---------------------------------------------------------------------------


class FakeCompletion:
    """In-memory fake satisfying the ``TextCompletionService`` protocol.

    Answers from ``handler`` when given, otherwise pops ``responses`` in
    order (repeating the last one). Records every prompt.
    """

    def __init__(
        self,
        responses: list[str] | None = None,
        handler: Callable[[str], str] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.responses: list[str] = list(responses or [])
        self.handler = handler
        self.error = error
        self.calls: list[str] = []

    def _answer(self, prompt: str) -> str:
        self.calls.append(prompt)
        if self.error is not None:
            raise self.error
        if self.handler is not None:
            return self.handler(prompt)
        if not self.responses:
            return ""
        if len(self.responses) == 1:
            return self.responses[0]
        return self.responses.pop(0)

    async def send_prompt(self, prompt: str) -> str:
        return self._answer(prompt)

    async def stream_prompt(self, prompt: str) -> AsyncIterator[str]:
        text = self._answer(prompt)
        for i in range(0, len(text), 16):
            yield text[i : i + 16]


class FakeDatabase:
    """In-memory fake satisfying the ``DatabaseConnection`` protocol.

    Reads return ``results[sql]`` or ``default_result``; statements listed
    in ``query_errors`` raise ``DatabaseError``. ``opens`` is set and
    ``gate`` awaited at the start of every read, which lets tests prove
    two databases are queried at the same time.
    """

    def __init__(
        self,
        schema: DatabaseSchema | None = None,
        *,
        results: dict[str, QueryResult] | None = None,
        default_result: QueryResult | None = None,
        query_errors: dict[str, str] | None = None,
        schema_error: str | None = None,
        dry_run_result: DryRunResult | None = None,
        update_result: UpdateResult | None = None,
        sample_error: str | None = None,
        delay: float = 0.0,
        opens: asyncio.Event | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.schema = schema or make_shop_schema()
        self.results = results or {}
        self.default_result = default_result or QueryResult(
            columns=["name", "total"], rows=[["Ada", "120.00"]], row_count=1
        )
        self.query_errors = query_errors or {}
        self.schema_error = schema_error
        self.dry_run_result = dry_run_result or DryRunResult(is_valid=True, estimated_rows=1)
        self.update_result = update_result or UpdateResult(success=True, affected_rows=1)
        self.sample_error = sample_error
        self.delay = delay
        self.opens = opens
        self.gate = gate

        self.schema_calls = 0
        self.queries: list[str] = []
        self.dry_runs: list[str] = []
        self.updates: list[str] = []
        self.sample_calls: list[tuple[str, int]] = []
        self.closed = False

    async def get_schema(self) -> DatabaseSchema:
        self.schema_calls += 1
        if self.schema_error:
            raise DatabaseError.schema_fetch_failed("fake", self.schema_error)
        return self.schema

    async def execute_query(self, sql: str) -> QueryResult:
        self.queries.append(sql)
        if self.opens is not None:
            self.opens.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if sql in self.query_errors:
            raise DatabaseError.query_failed(sql, self.query_errors[sql])
        return self.results.get(sql, self.default_result)

    async def dry_run(self, sql: str) -> DryRunResult:
        self.dry_runs.append(sql)
        return self.dry_run_result

    async def execute_update(self, sql: str) -> UpdateResult:
        self.updates.append(sql)
        return self.update_result

    async def get_sample_rows(self, table: str, limit: int) -> QueryResult:
        self.sample_calls.append((table, limit))
        if self.sample_error:
            raise DatabaseError(self.sample_error)
        return QueryResult(columns=["id"], rows=[["1"], ["2"]][:limit], row_count=limit)

    async def close(self) -> None:
        self.closed = True


class FakeApprovalHandler:
    """In-memory fake satisfying the ``ApprovalHandler`` protocol.

    Returns ``approve`` after ``delay`` seconds and records every request.
    """

    def __init__(self, approve: bool = True, delay: float = 0.0) -> None:
        self.approve = approve
        self.delay = delay
        self.calls: list[dict] = []

    async def request_approval(
        self,
        sql: str,
        operation_type: SqlOperationType,
        affected_tables: list[str],
        is_high_risk: bool,
        dry_run_result: DryRunResult | None,
    ) -> bool:
        self.calls.append(
            {
                "sql": sql,
                "operation_type": operation_type,
                "affected_tables": affected_tables,
                "is_high_risk": is_high_risk,
                "dry_run_result": dry_run_result,
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.approve


class SpyReporter:
    """Spy satisfying the ``ProgressReporter`` protocol.

    Captures every ``step_start`` / ``step_end`` call for assertions.
    """

    def __init__(self) -> None:
        self.events: list[dict[str, str]] = []

    def step_start(self, step: str) -> None:
        """Record a step-start event."""
        self.events.append({"step": step, "status": "started"})

    def step_end(self, step: str) -> None:
        """Record a step-end event."""
        self.events.append({"step": step, "status": "completed"})


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings() -> Settings:
    """Return a ``Settings`` instance populated with safe test defaults."""
    return Settings(
        azure_ai_project_endpoint="https://test.services.ai.azure.com/api/projects/test",
        azure_ai_model_deployment_name="test-model",
        database_connections={},
        schema_linking_strategy="keyword",
        keyword_extractor="rake",
        turn_timeout_seconds=10.0,
        approval_timeout_seconds=5.0,
    )


@pytest.fixture
def shop_schema() -> DatabaseSchema:
    """Return the three-table shop schema."""
    return make_shop_schema()


@pytest.fixture
def fake_database() -> FakeDatabase:
    """Return a ``FakeDatabase`` over the shop schema."""
    return FakeDatabase()


@pytest.fixture
def spy_reporter() -> SpyReporter:
    """Return a fresh ``SpyReporter`` instance."""
    return SpyReporter()


@pytest.fixture
def noop_reporter() -> NoOpReporter:
    """Return a ``NoOpReporter`` from the protocols module."""
    return NoOpReporter()

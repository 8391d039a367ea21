"""Unit tests for the SQL self-correction loop."""

from __future__ import annotations

import asyncio

from entities.sql_reviser import RevisionCounter, build_revision_context, extract_sql, revise_sql
from models import RevisionRequest

from tests.conftest import FakeCompletion


def _make_request(**overrides) -> RevisionRequest:
    """Build a revision request for a misspelled table."""
    values = {
        "original_query": "list customers",
        "failed_sql": "SELECT name FROM custmers",
        "error_message": "Invalid table(s) used: custmers. Available tables: customers",
        "schema_description": "Table: customers\nColumns: id (INT, PK), name (VARCHAR)",
        "allowed_tables": ["customers"],
        "max_attempts": 3,
    }
    values.update(overrides)
    return RevisionRequest(**values)


def _fenced(sql: str) -> str:
    return f"Here you go:\n```sql\n{sql}\n```"


# ── revise_sql ───────────────────────────────────────────────────────────


class TestReviseSql:
    """Bounded revise/re-validate loop."""

    async def test_first_attempt_succeeds(self) -> None:
        completion = FakeCompletion([_fenced("SELECT name FROM customers")])

        result = await revise_sql(_make_request(), completion)

        assert result.success is True
        assert result.sql == "SELECT name FROM customers"
        assert result.attempts == 1
        assert len(completion.calls) == 1

    async def test_routing_comment_stripped_from_revision(self) -> None:
        completion = FakeCompletion([_fenced("-- database: main\nSELECT name FROM customers")])

        result = await revise_sql(_make_request(), completion)

        assert result.success is True
        assert result.sql == "SELECT name FROM customers"

    async def test_prompt_contents(self) -> None:
        completion = FakeCompletion([_fenced("SELECT name FROM customers")])

        await revise_sql(_make_request(), completion)

        prompt = completion.calls[0]
        assert "You are a SQL Revision Agent" in prompt
        assert "## User Query\nlist customers" in prompt
        assert "SELECT name FROM custmers" in prompt
        assert "Invalid table(s) used: custmers" in prompt

    async def test_second_attempt_succeeds(self) -> None:
        completion = FakeCompletion(
            [_fenced("SELECT name FROM clients"), _fenced("SELECT name FROM customers")]
        )

        result = await revise_sql(_make_request(), completion)

        assert result.success is True
        assert result.attempts == 2
        second_prompt = completion.calls[1]
        assert "## Previous Failed Attempts (do not repeat)" in second_prompt
        assert "1: SELECT name FROM clients" in second_prompt
        assert "Invalid table(s) used: clients" in second_prompt

    async def test_max_attempts_reached(self) -> None:
        completion = FakeCompletion([_fenced("SELECT name FROM clients")])

        result = await revise_sql(_make_request(max_attempts=2), completion)

        assert result.success is False
        assert result.attempts == 2
        assert len(completion.calls) == 2
        assert result.error.startswith(
            "Max revision attempts (2) reached. Last error: Invalid table(s) used: clients"
        )

    async def test_no_sql_block(self) -> None:
        completion = FakeCompletion(["Sorry, I cannot fix that."])

        result = await revise_sql(_make_request(), completion)

        assert result.success is False
        assert result.attempts == 1
        assert result.sql == "SELECT name FROM custmers"
        assert result.error == "Failed to generate revised SQL after 1 attempt(s)"

    async def test_completion_error(self) -> None:
        completion = FakeCompletion(error=RuntimeError("rate limited"))

        result = await revise_sql(_make_request(), completion)

        assert result.success is False
        assert result.attempts == 1
        assert "rate limited" in result.error

    async def test_syntax_only_without_whitelist(self) -> None:
        completion = FakeCompletion([_fenced("SELECT name FROM anything")])

        result = await revise_sql(_make_request(allowed_tables=[]), completion)

        assert result.success is True


# ── Helpers ──────────────────────────────────────────────────────────────


class TestRevisionHelpers:
    """Prompt context, SQL extraction and the shared counter."""

    def test_schema_truncated(self) -> None:
        request = _make_request(schema_description="x" * 5000)

        context = build_revision_context(request, "SELECT 1", "boom", [], schema_max_chars=100)

        assert "x" * 100 in context
        assert "x" * 101 not in context

    def test_previous_attempts_numbered(self) -> None:
        context = build_revision_context(_make_request(), "SELECT 2", "boom", ["SELECT 1"])
        assert "1: SELECT 1" in context

    def test_extract_sql(self) -> None:
        assert extract_sql("```SQL\nSELECT 1\n```") == "SELECT 1"
        assert extract_sql("```python\nprint(1)\n```") is None
        assert extract_sql("no fences") is None

    def test_extract_sql_drops_routing_comment(self) -> None:
        assert extract_sql("```sql\n-- database: main\nSELECT 1\n```") == "SELECT 1"
        assert extract_sql("```sql\n-- Database: main\n```") is None

    async def test_counter_shared_across_tasks(self) -> None:
        counter = RevisionCounter()

        await asyncio.gather(*(counter.add(n) for n in (1, 2, 3)))

        assert counter.value == 6

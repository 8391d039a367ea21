"""Per-statement execution: read retries and the write approval path."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from entities.query_validator import (
    detect_operation_type,
    extract_affected_tables,
    is_high_risk_statement,
)
from entities.sql_reviser import RevisionCounter, revise_sql
from entities.workflow.clients import PipelineClients
from models import (
    DatabaseSchema,
    DryRunResult,
    QueryResult,
    RevisionRequest,
    SqlBlock,
    SqlOperationType,
)

from .results import write_result

logger = logging.getLogger(__name__)


@dataclass
class StatementOutcome:
    """What happened to one statement."""

    database: str
    sql: str
    result: QueryResult | None = None
    error: str | None = None


class StatementRunner:
    """Executes validated statements for one query turn.

    Statements for one database run in order through ``run_group``;
    groups for different databases may run concurrently. Approval
    requests are serialized so the user sees one at a time.

    Args:
        clients: Pipeline I/O dependencies.
        query: The user's natural-language question.
        schemas: Schema per database, used for revision context and
            affected-table spelling.
        counter: Shared revision-attempt counter.
    """

    def __init__(
        self,
        clients: PipelineClients,
        query: str,
        schemas: dict[str, DatabaseSchema],
        counter: RevisionCounter,
    ) -> None:
        self._clients = clients
        self._settings = clients.settings
        self._query = query
        self._schemas = schemas
        self._counter = counter
        self._approval_lock = asyncio.Lock()

    async def run_group(self, database: str, blocks: list[SqlBlock]) -> list[StatementOutcome]:
        outcomes = []
        for block in blocks:
            outcomes.append(await self.run_statement(database, block.sql))
        return outcomes

    async def run_statement(self, database: str, sql: str) -> StatementOutcome:
        if database not in self._clients.connections:
            return StatementOutcome(
                database, sql, error=f"[{database}] Database '{database}' not connected"
            )
        try:
            if detect_operation_type(sql).requires_approval:
                return await self._run_write(database, sql)
            return await self._run_read(database, sql)
        except Exception as exc:
            logger.exception("Statement on '%s' failed unexpectedly", database)
            return StatementOutcome(database, sql, error=f"[{database}] {exc}")

    # ── Revision ─────────────────────────────────────────────────────────

    async def _revise(self, database: str, sql: str, error: str, tried: list[str]) -> str | None:
        """One revision attempt; returns the revised SQL or None."""
        schema = self._schemas.get(database)
        request = RevisionRequest(
            original_query=self._query,
            failed_sql=sql,
            error_message=error,
            schema_description=schema.describe() if schema else "",
            allowed_tables=schema.table_names if schema else [],
            previous_attempts=tried,
            max_attempts=1,
        )
        result = await revise_sql(
            request,
            self._clients.completion,
            self._settings.sql_dialect,
            self._settings.revision_schema_max_chars,
        )
        await self._counter.add(result.attempts)
        return result.sql if result.success else None

    # ── Read path ────────────────────────────────────────────────────────

    async def _run_read(self, database: str, sql: str) -> StatementOutcome:
        connection = self._clients.connections[database]
        max_retries = max(1, self._settings.max_execution_retries)
        current = sql
        tried: list[str] = []
        last_error = ""
        attempts = 0

        while attempts < max_retries:
            attempts += 1
            try:
                result = await connection.execute_query(current)
                logger.info("Query on '%s' returned %d rows", database, result.row_count)
                return StatementOutcome(database, current, result=result)
            except Exception as exc:
                last_error = str(exc)
                logger.warning(
                    "Execution attempt %d/%d on '%s' failed: %s",
                    attempts,
                    max_retries,
                    database,
                    last_error,
                )

            if attempts >= max_retries:
                break
            tried.append(current)
            revised = await self._revise(
                database, current, f"Execution error: {last_error}", tried
            )
            if revised is None or revised.strip() == current.strip():
                logger.info("Revision produced no new statement; stopping retries")
                break
            current = revised

        return StatementOutcome(
            database,
            current,
            error=f"[{database}] Query execution failed after {attempts} retries: {last_error}",
        )

    # ── Write path ───────────────────────────────────────────────────────

    async def _run_write(self, database: str, sql: str) -> StatementOutcome:
        connection = self._clients.connections[database]

        dry_run = await connection.dry_run(sql)
        if not dry_run.is_valid:
            dry_error = _dry_run_error(dry_run)
            logger.warning("Dry run on '%s' failed: %s", database, dry_error)
            revised = await self._revise(database, sql, f"Dry run failed: {dry_error}", [sql])
            if revised is None:
                return StatementOutcome(
                    database, sql, error=f"[{database}] Dry run failed: {dry_error}"
                )
            sql = revised
            dry_run = await connection.dry_run(sql)
            if not dry_run.is_valid:
                return StatementOutcome(
                    database,
                    sql,
                    error=f"[{database}] Dry run failed: {_dry_run_error(dry_run)}",
                )

        operation = detect_operation_type(sql)
        approved, reason = await self._request_approval(database, sql, operation, dry_run)
        if not approved:
            suffix = f" ({reason})" if reason else ""
            return StatementOutcome(
                database,
                sql,
                error=f"[{database}] Write operation rejected by user: {operation.value}{suffix}",
            )

        update = await connection.execute_update(sql)
        if not update.success:
            return StatementOutcome(
                database,
                sql,
                error=f"[{database}] Write operation failed: {update.message or 'unknown error'}",
            )
        logger.info("%s on '%s' affected %d rows", operation.value, database, update.affected_rows)
        return StatementOutcome(
            database, sql, result=write_result(operation.value, update.affected_rows)
        )

    async def _request_approval(
        self,
        database: str,
        sql: str,
        operation: SqlOperationType,
        dry_run: DryRunResult,
    ) -> tuple[bool, str | None]:
        affected = extract_affected_tables(
            sql, self._schemas.get(database), self._settings.sql_dialect
        )
        high_risk = is_high_risk_statement(sql)
        logger.info(
            "Requesting approval for %s on '%s' (high_risk=%s, tables=%s)",
            operation.value,
            database,
            high_risk,
            affected,
        )
        async with self._approval_lock:
            try:
                approved = await asyncio.wait_for(
                    self._clients.approval_handler.request_approval(
                        sql, operation, affected, high_risk, dry_run
                    ),
                    timeout=self._settings.approval_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.warning("Approval for %s on '%s' timed out", operation.value, database)
                return False, "approval timed out"
        return bool(approved), None


def _dry_run_error(dry_run: DryRunResult) -> str:
    return "; ".join(dry_run.errors) or dry_run.message or "unknown error"

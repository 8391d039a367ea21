"""NL2SQL pipeline: single-function entry point for one query turn.

``execute()`` fetches schemas, links each database, generates SQL,
validates and revises it, then runs the statements (grouped per
database, groups in parallel) and combines the results. Every failure
ends up in ``ExecutionOutcome.errors``; nothing is raised to the caller
except cancellation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from entities.query_validator import validate_sql
from entities.schema_linker import apply_small_schema_policy
from entities.shared.error_recovery import build_error_recovery
from entities.shared.errors import SqlGenerationError
from entities.sql_generator import generate_sql
from entities.sql_reviser import RevisionCounter, revise_sql
from entities.workflow.clients import PipelineClients
from models import (
    DatabaseSchema,
    ExecutionOutcome,
    ExecutionTask,
    LinkingResult,
    MergedSchema,
    QueryResult,
    RevisionRequest,
    SqlBlock,
)

from .results import (
    build_failure_message,
    build_success_message,
    combine_results,
    format_sql,
    result_key,
)
from .runner import StatementOutcome, StatementRunner

logger = logging.getLogger(__name__)


# ── Schema fetching ──────────────────────────────────────────────────────


async def _fetch_schemas(
    task: ExecutionTask,
    clients: PipelineClients,
    errors: list[str],
) -> MergedSchema:
    """Fetch schemas for every connected database not supplied on the task.

    Databases whose fetch fails are logged, recorded in ``errors`` and
    skipped.
    """
    databases: dict[str, DatabaseSchema] = dict(task.schema_.databases) if task.schema_ else {}
    missing = [db for db in clients.connections if db not in databases]

    async def fetch(database: str) -> DatabaseSchema:
        return await clients.connections[database].get_schema()

    fetched = await asyncio.gather(*(fetch(db) for db in missing), return_exceptions=True)
    for database, result in zip(missing, fetched):
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            logger.warning("Schema fetch for '%s' failed: %s", database, result)
            errors.append(f"[{database}] Failed to fetch schema: {result}")
            continue
        databases[database] = result
        logger.info("Fetched schema for '%s': %d tables", database, len(result.tables))

    # Keep configured order, then any pre-fetched databases without a connection
    ordered = {db: databases[db] for db in clients.connections if db in databases}
    ordered.update({db: s for db, s in databases.items() if db not in ordered})
    return MergedSchema(databases=ordered)


# ── Linking ──────────────────────────────────────────────────────────────


async def _link_database(
    query: str,
    database: str,
    schema: DatabaseSchema,
    clients: PipelineClients,
) -> LinkingResult:
    settings = clients.settings
    try:
        result = await clients.linker_for(database).link(query, schema)
    except Exception:
        logger.exception("Schema linking for '%s' failed; using all tables", database)
        result = LinkingResult(relevant_tables=schema.table_names, strategy="fallback")
    return apply_small_schema_policy(
        result, schema, settings.min_linked_tables, settings.small_schema_table_limit
    )


async def _link_schemas(
    query: str,
    schema: MergedSchema,
    clients: PipelineClients,
) -> dict[str, LinkingResult]:
    databases = list(schema.databases)
    results = await asyncio.gather(
        *(_link_database(query, db, schema.databases[db], clients) for db in databases)
    )
    linking = dict(zip(databases, results))
    for database, result in linking.items():
        logger.info(
            "Linked '%s' via %s: %s (confidence %.2f)",
            database,
            result.strategy,
            result.relevant_tables,
            result.confidence,
        )
    return linking


# ── Validation and revision ──────────────────────────────────────────────


async def _validate_block(
    block: SqlBlock,
    query: str,
    schema: MergedSchema,
    clients: PipelineClients,
    counter: RevisionCounter,
) -> tuple[SqlBlock | None, str | None]:
    """Validate one block, revising it when needed.

    Returns:
        Tuple of (block to execute or None, error or None).
    """
    settings = clients.settings
    db_schema = schema.databases.get(block.database)
    if db_schema is None:
        if block.database in clients.connections:
            # Connected but its schema failed to load; nothing to check against
            logger.warning("No schema for '%s'; statement not run", block.database)
            return None, f"[{block.database}] No schema available; statement not validated"
        # Unknown database: the runner reports it as not connected
        return block, None

    allowed = db_schema.table_names
    validation = validate_sql(block.sql, allowed, settings.sql_dialect)
    if validation.is_valid:
        return block, None

    logger.info(
        "SQL for '%s' failed %s validation; revising", block.database, validation.error_type
    )
    revision = await revise_sql(
        RevisionRequest(
            original_query=query,
            failed_sql=block.sql,
            error_message="; ".join(validation.errors),
            schema_description=db_schema.describe(),
            allowed_tables=allowed,
            max_attempts=settings.max_revision_attempts,
        ),
        clients.completion,
        settings.sql_dialect,
        settings.revision_schema_max_chars,
    )
    await counter.add(revision.attempts)
    if not revision.success:
        return None, f"[{block.database}] SQL revision failed: {revision.error}"
    return block.model_copy(update={"sql": revision.sql}), None


# ── Entry point ──────────────────────────────────────────────────────────


async def _run(
    task: ExecutionTask,
    clients: PipelineClients,
    counter: RevisionCounter,
    on_chunk: Callable[[str], None] | None,
) -> ExecutionOutcome:
    settings = clients.settings
    reporter = clients.reporter
    errors: list[str] = []

    def fail(
        generated_sql: str | None = None,
        raw_response: str | None = None,
        target_databases: list[str] | None = None,
        available_tables: list[str] | None = None,
    ) -> ExecutionOutcome:
        hint = build_error_recovery(errors, available_tables or [])
        return ExecutionOutcome(
            success=False,
            message=build_failure_message(errors, generated_sql, hint),
            generated_sql=generated_sql,
            target_databases=target_databases or [],
            revision_attempts=counter.value,
            errors=list(errors),
            raw_response=raw_response,
            generate_visualization=task.generate_visualization,
        )

    # 1. Schemas
    reporter.step_start("Fetching schema")
    try:
        schema = await _fetch_schemas(task, clients, errors)
    finally:
        reporter.step_end("Fetching schema")
    if not schema.databases:
        errors.append("No database schema available")
        return fail()
    available_tables = [t.name for s in schema.databases.values() for t in s.tables]

    # 2. Linking
    reporter.step_start("Linking schema")
    try:
        linking = await _link_schemas(task.query, schema, clients)
    finally:
        reporter.step_end("Linking schema")

    # 3. Generation
    try:
        generation = await generate_sql(
            task.query,
            schema,
            linking,
            clients.completion,
            max_rows=task.max_rows or settings.default_max_rows,
            additional_context=task.additional_context or None,
            display_names=clients.display_names,
            on_chunk=on_chunk,
            reporter=reporter,
        )
    except SqlGenerationError as exc:
        logger.warning("SQL generation failed: %s", exc)
        errors.append(f"SQL generation failed: {exc}")
        return fail(raw_response=exc.raw_response, available_tables=available_tables)

    target_databases = list(dict.fromkeys(b.database for b in generation.blocks))

    # 4. Validation and revision
    reporter.step_start("Validating SQL")
    try:
        validated = await asyncio.gather(
            *(
                _validate_block(block, task.query, schema, clients, counter)
                for block in generation.blocks
            )
        )
    finally:
        reporter.step_end("Validating SQL")

    groups: dict[str, list[SqlBlock]] = {}
    for block, error in validated:
        if error:
            errors.append(error)
        if block is not None:
            groups.setdefault(block.database, []).append(block)

    # 5. Execution: one task per database, statements in order within it
    runner = StatementRunner(clients, task.query, dict(schema.databases), counter)
    reporter.step_start("Executing SQL")
    try:
        group_outcomes = await asyncio.gather(
            *(runner.run_group(db, blocks) for db, blocks in groups.items())
        )
    finally:
        reporter.step_end("Executing SQL")

    outcomes: list[StatementOutcome] = [o for group in group_outcomes for o in group]
    results: dict[str, QueryResult] = {}
    for outcome in outcomes:
        if outcome.error:
            errors.append(outcome.error)
        if outcome.result is not None:
            results[result_key(outcome.database, results)] = outcome.result

    executed = [(o.database, o.sql) for o in outcomes]
    generated_sql = format_sql(executed) if executed else format_sql(
        [(b.database, b.sql) for b in generation.blocks]
    )

    if not results:
        return fail(
            generated_sql=generated_sql,
            target_databases=target_databases,
            available_tables=available_tables,
        )

    combined = combine_results(results)
    return ExecutionOutcome(
        success=True,
        message=build_success_message(
            combined, list(groups), generated_sql, counter.value, errors
        ),
        generated_sql=generated_sql,
        query_result=combined,
        results_by_database=results,
        target_databases=target_databases,
        revision_attempts=counter.value,
        errors=list(errors),
        generate_visualization=task.generate_visualization,
    )


async def execute(
    task: ExecutionTask,
    clients: PipelineClients,
    on_chunk: Callable[[str], None] | None = None,
) -> ExecutionOutcome:
    """Answer one natural-language query against the connected databases.

    The whole turn is bounded by ``settings.turn_timeout_seconds``.

    Args:
        task: Query, optional pre-fetched schema, context and row limit.
        clients: Pipeline I/O dependencies.
        on_chunk: Optional callback receiving streamed generation text.

    Returns:
        ``ExecutionOutcome``; ``success`` is True when at least one
        statement produced a result.
    """
    counter = RevisionCounter()
    timeout = clients.settings.turn_timeout_seconds
    logger.info("Processing query: %s", task.query[:200])

    try:
        return await asyncio.wait_for(_run(task, clients, counter, on_chunk), timeout)
    except asyncio.TimeoutError:
        logger.warning("Query turn timed out after %.0f seconds", timeout)
        errors = [f"Query timed out after {timeout:.0f} seconds"]
    except Exception as exc:
        logger.exception("NL2SQL pipeline error")
        errors = [f"Pipeline error: {exc}"]

    return ExecutionOutcome(
        success=False,
        message=build_failure_message(errors, None, build_error_recovery(errors, [])),
        revision_attempts=counter.value,
        errors=errors,
        generate_visualization=task.generate_visualization,
    )

"""SQL generator logic.

Builds a schema-grounded prompt across one or more databases, calls the
completion service, and parses the response into SQL blocks routed by a
``-- database: <id>`` comment. Reports progress via the
``ProgressReporter`` protocol.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from entities.shared.errors import SqlGenerationError
from entities.shared.llm_response import extract_code_blocks
from entities.shared.protocols import NoOpReporter, ProgressReporter, TextCompletionService
from models import GenerationResult, LinkingResult, MergedSchema, SqlBlock, TableSchema

logger = logging.getLogger(__name__)

_DATABASE_COMMENT = re.compile(r"--\s*database:\s*(\S+)", re.IGNORECASE)
_DATABASE_COMMENT_LINE = re.compile(r"--\s*database:\s*\S+\s*\n?", re.IGNORECASE)


# ============================================================================
# Prompt Building
# ============================================================================


def _describe_table(table: TableSchema, relevant: bool) -> list[str]:
    marker = " [RELEVANT]" if relevant else ""
    lines = [f"  Table: {table.name}{marker}"]
    if table.comment:
        lines.append(f"    Comment: {table.comment}")
    lines.append("    Columns:")
    for col in table.columns:
        flags = []
        if col.is_primary_key:
            flags.append("PK")
        if col.is_foreign_key:
            flags.append("FK")
        if not col.nullable:
            flags.append("NOT NULL")
        flag_text = f" [{', '.join(flags)}]" if flags else ""
        lines.append(f"      - {col.name}: {col.type}{flag_text}")
    return lines


def linked_tables(schema: MergedSchema, linking: dict[str, LinkingResult], database: str) -> list[str]:
    """Linked table names for ``database``; every table when it was not linked."""
    result = linking.get(database)
    if result is None:
        return [t.name for t in schema.get_tables_for_database(database)]
    return list(result.relevant_tables)


def build_schema_context(
    schema: MergedSchema,
    linking: dict[str, LinkingResult],
    display_names: dict[str, str] | None = None,
) -> str:
    """Describe every database for the generation prompt.

    Linked tables come first with their columns and are marked
    ``[RELEVANT]``; the rest of each database is listed by name only.

    Args:
        schema: Schemas keyed by database identifier.
        linking: Linking result per database identifier.
        display_names: Optional human-readable database names.

    Returns:
        Prompt text starting with ``=== AVAILABLE DATABASES AND TABLES ===``.
    """
    display_names = display_names or {}
    lines = ["=== AVAILABLE DATABASES AND TABLES ===", ""]

    for database, db_schema in schema.databases.items():
        display = display_names.get(database) or db_schema.database_name or database
        lines.append(f"DATABASE: {database} ({display})")
        lines.append("-" * 40)

        relevant = {name.lower() for name in linked_tables(schema, linking, database)}
        for table in db_schema.tables:
            if table.name.lower() in relevant:
                lines.extend(_describe_table(table, relevant=True))
                lines.append("")

        others = [t.name for t in db_schema.tables if t.name.lower() not in relevant]
        if others:
            lines.append(f"  Other tables: {', '.join(others)}")
        lines.append("")

    return "\n".join(lines)


def build_generation_prompt(
    query: str,
    schema_context: str,
    allowed_tables: dict[str, list[str]],
    max_rows: int,
    additional_context: str | None = None,
) -> str:
    """Build the prompt for the LLM to generate SQL.

    Args:
        query: The user's original question.
        schema_context: Output of ``build_schema_context``.
        allowed_tables: Database identifier → tables the SQL may use.
        max_rows: Row limit directive.
        additional_context: Free text appended for the model.

    Returns:
        A formatted prompt string for the LLM.
    """
    allowed_lines = [
        f"- {database}: {', '.join(tables) if tables else '(none)'}"
        for database, tables in allowed_tables.items()
    ]
    sections = [
        schema_context,
        "ALLOWED TABLES (use ONLY these):",
        *allowed_lines,
        "",
        f"USER QUERY: {query}",
    ]
    if additional_context:
        sections += ["", "ADDITIONAL CONTEXT:", additional_context]
    sections += [
        "",
        "INSTRUCTIONS:",
        "1. Analyze which database(s) contain the relevant tables for this query",
        "2. Generate SQL for the appropriate database(s)",
        "3. Put exactly ONE SQL statement in each ```sql code block",
        "4. Each SQL block MUST start with a comment specifying the target database: "
        "-- database: <database_id>",
        f"5. Use LIMIT {max_rows} to restrict results",
        "6. Generate SELECT queries unless the user explicitly asks to change data or schema",
        "7. Never reference a table that is not listed in ALLOWED TABLES",
        "",
        "Generate the SQL:",
    ]
    return "\n".join(sections)


# ============================================================================
# Response Parsing
# ============================================================================


def extract_database_comment(sql: str) -> str | None:
    match = _DATABASE_COMMENT.search(sql)
    return match.group(1) if match else None


def remove_database_comment(sql: str) -> str:
    return _DATABASE_COMMENT_LINE.sub("", sql).strip()


def parse_sql_blocks(response: str, database_ids: list[str]) -> list[SqlBlock]:
    """Extract routed SQL blocks from a generation response.

    A block without a routing comment goes to the only database when
    exactly one is configured, and is dropped otherwise.
    """
    blocks: list[SqlBlock] = []
    for _, body in extract_code_blocks(response, "sql"):
        database = extract_database_comment(body)
        sql = remove_database_comment(body)
        if not sql:
            continue
        if database is None:
            if len(database_ids) != 1:
                logger.warning("Dropping SQL block without a database comment: %s", sql[:100])
                continue
            database = database_ids[0]
        blocks.append(SqlBlock(database=database, sql=sql))
    return blocks


# ============================================================================
# Generation
# ============================================================================


async def _complete(
    completion: TextCompletionService,
    prompt: str,
    on_chunk: Callable[[str], None] | None,
) -> str:
    if on_chunk is None:
        return await completion.send_prompt(prompt)
    chunks: list[str] = []
    async for chunk in completion.stream_prompt(prompt):
        chunks.append(chunk)
        on_chunk(chunk)
    return "".join(chunks)


async def generate_sql(
    query: str,
    schema: MergedSchema,
    linking: dict[str, LinkingResult],
    completion: TextCompletionService,
    max_rows: int = 100,
    additional_context: str | None = None,
    display_names: dict[str, str] | None = None,
    on_chunk: Callable[[str], None] | None = None,
    reporter: ProgressReporter = NoOpReporter(),
) -> GenerationResult:
    """Generate SQL for ``query`` over the linked schema.

    Args:
        query: The user's natural-language question.
        schema: Schemas keyed by database identifier.
        linking: Linking result per database identifier.
        completion: Text-completion backend.
        max_rows: Row limit directive for the prompt.
        additional_context: Free text appended to the prompt.
        display_names: Optional human-readable database names.
        on_chunk: When given, the response is streamed and each chunk
            passed here.
        reporter: Progress reporter for streaming UI updates.

    Returns:
        The parsed blocks with the prompt and raw response.

    Raises:
        SqlGenerationError: If the response contains no SQL block.
    """
    step_name = "Generating SQL"
    reporter.step_start(step_name)

    try:
        database_ids = list(schema.databases)
        logger.info(
            "Generating SQL across %d database(s) for: %s", len(database_ids), query[:100]
        )

        schema_context = build_schema_context(schema, linking, display_names)
        allowed = {db: linked_tables(schema, linking, db) for db in database_ids}
        prompt = build_generation_prompt(
            query, schema_context, allowed, max_rows, additional_context
        )

        response = await _complete(completion, prompt, on_chunk)
        blocks = parse_sql_blocks(response, database_ids)
        if not blocks:
            raise SqlGenerationError("No SQL code block found in the LLM response", response)

        logger.info("Generated %d SQL block(s)", len(blocks))
        return GenerationResult(blocks=blocks, raw_response=response, prompt=prompt)
    finally:
        reporter.step_end(step_name)

"""SQL self-correction loop.

Resubmits a failing statement with its error to the completion service,
re-validates the answer, and repeats up to a fixed number of attempts.
"""

from __future__ import annotations

import asyncio
import logging

from entities.query_validator import validate_sql
from entities.shared.llm_response import extract_code_blocks
from entities.shared.protocols import TextCompletionService
from entities.sql_generator import remove_database_comment
from models import RevisionRequest, RevisionResult

logger = logging.getLogger(__name__)

REVISION_SYSTEM_PROMPT = """You are a SQL Revision Agent. Fix SQL queries that failed validation or execution.

CRITICAL RULES:
1. ONLY use table names from the provided schema - NEVER invent table names
2. ONLY use column names from the provided schema - NEVER invent column names
3. If the error says a table doesn't exist, find the correct table name from the schema
4. Analyze the error message carefully and fix the specific issue
5. Avoid repeating previous failed attempts

OUTPUT FORMAT:
Return ONLY the corrected SQL in ```sql code block. No explanations.

```sql
SELECT column FROM table WHERE condition LIMIT 100;
```"""

REVISION_TASK = (
    "**Task:** Generate a corrected SQL query that fixes the error "
    "while preserving the original intent."
)


class RevisionCounter:
    """Revision attempts shared by statements revised concurrently."""

    def __init__(self) -> None:
        self._count = 0
        self._lock = asyncio.Lock()

    @property
    def value(self) -> int:
        return self._count

    async def add(self, attempts: int) -> int:
        async with self._lock:
            self._count += attempts
            return self._count


def build_revision_context(
    request: RevisionRequest,
    current_sql: str,
    current_error: str,
    previous_attempts: list[str],
    schema_max_chars: int = 2000,
) -> str:
    lines = [
        "# SQL Revision Task",
        "",
        "## User Query",
        request.original_query,
        "",
        "## Available Schema (USE ONLY THESE TABLES AND COLUMNS)",
        "```",
        request.schema_description[:schema_max_chars],
        "```",
        "",
        "## Failed SQL",
        "```sql",
        current_sql,
        "```",
        "",
        "## Error",
        current_error,
    ]
    if previous_attempts:
        lines += ["", "## Previous Failed Attempts (do not repeat)"]
        lines += [f"{i}: {sql}" for i, sql in enumerate(previous_attempts, start=1)]
    return "\n".join(lines)


def extract_sql(response: str) -> str | None:
    """Return the first ```sql fenced block of ``response``, if any.

    A leading ``-- database: <id>`` routing comment is dropped.
    """
    blocks = extract_code_blocks(response, "sql")
    if blocks:
        return remove_database_comment(blocks[0][1]) or None
    return None


async def revise_sql(
    request: RevisionRequest,
    completion: TextCompletionService,
    dialect: str | None = None,
    schema_max_chars: int = 2000,
) -> RevisionResult:
    """Ask the completion service to fix ``request.failed_sql``.

    Each revised statement is re-validated (syntax, then the
    ``allowed_tables`` whitelist). The loop stops at the first valid
    statement or after ``request.max_attempts`` completion calls.

    Args:
        request: Failing statement, its error and the schema context.
        completion: Text-completion backend.
        dialect: sqlglot dialect used for re-validation.
        schema_max_chars: The schema description is cut to this length.

    Returns:
        ``RevisionResult`` whose ``attempts`` is the number of completion
        calls made.
    """
    current_sql = request.failed_sql
    current_error = request.error_message
    attempts_seen = list(request.previous_attempts)

    for attempt in range(1, request.max_attempts + 1):
        logger.info(
            "Revision attempt %d/%d: %s", attempt, request.max_attempts, current_error[:120]
        )
        context = build_revision_context(
            request, current_sql, current_error, attempts_seen, schema_max_chars
        )

        try:
            response = await completion.send_prompt(
                f"{REVISION_SYSTEM_PROMPT}\n\n{context}\n\n{REVISION_TASK}"
            )
        except Exception as exc:
            logger.exception("LLM revision call failed")
            return RevisionResult(
                success=False,
                sql=current_sql,
                attempts=attempt,
                last_error=current_error,
                error=f"Failed to generate revised SQL after {attempt} attempt(s): {exc}",
            )

        revised = extract_sql(response)
        if revised is None:
            logger.warning("Revision response contained no SQL block")
            return RevisionResult(
                success=False,
                sql=current_sql,
                attempts=attempt,
                last_error=current_error,
                error=f"Failed to generate revised SQL after {attempt} attempt(s)",
            )

        attempts_seen.append(revised)
        validation = validate_sql(revised, request.allowed_tables, dialect)
        if validation.is_valid:
            logger.info("Revised SQL validated after %d attempt(s)", attempt)
            return RevisionResult(success=True, sql=revised, attempts=attempt)

        current_sql = revised
        current_error = "; ".join(validation.errors)

    logger.warning("Max revision attempts (%d) reached", request.max_attempts)
    return RevisionResult(
        success=False,
        sql=current_sql,
        attempts=request.max_attempts,
        last_error=current_error,
        error=f"Max revision attempts ({request.max_attempts}) reached. Last error: {current_error}",
    )

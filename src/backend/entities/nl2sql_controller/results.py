"""Result combination and outcome messages.

Pure functions: no I/O.
"""

from __future__ import annotations

from models import QueryResult

DATABASE_COLUMN = "_database"

# Rows rendered in the markdown message; the full result stays on the outcome.
_MESSAGE_ROW_LIMIT = 50


def result_key(database: str, existing: dict[str, QueryResult]) -> str:
    """Key under which the next result for ``database`` is stored.

    The first result uses the database id; later ones get ``#2``, ``#3``...
    """
    if database not in existing:
        return database
    n = 2
    while f"{database}#{n}" in existing:
        n += 1
    return f"{database}#{n}"


def combine_results(results: dict[str, QueryResult]) -> QueryResult | None:
    """Merge per-database results into one table.

    A single result passes through unchanged. Several results get a
    leading ``_database`` column and are concatenated in insertion order;
    the columns of the widest result are used and shorter rows padded.
    """
    if not results:
        return None
    if len(results) == 1:
        return next(iter(results.values()))

    widest = max(results.values(), key=lambda r: len(r.columns))
    width = len(widest.columns)
    rows: list[list[str]] = []
    for key, result in results.items():
        for row in result.rows:
            rows.append([key, *row, *[""] * (width - len(row))])
    return QueryResult(
        columns=[DATABASE_COLUMN, *widest.columns],
        rows=rows,
        row_count=len(rows),
    )


def write_result(operation: str, affected_rows: int) -> QueryResult:
    """Single-row result standing in for a committed write."""
    return QueryResult(
        columns=["Operation", "Affected Rows", "Status"],
        rows=[[operation, str(affected_rows), "Success"]],
        row_count=1,
    )


def format_sql(statements: list[tuple[str, str]]) -> str:
    """Render ``(database, sql)`` pairs with their routing comments."""
    return "\n\n".join(f"-- database: {database}\n{sql}" for database, sql in statements)


def build_success_message(
    combined: QueryResult,
    databases: list[str],
    generated_sql: str,
    revision_attempts: int,
    errors: list[str],
) -> str:
    lines = ["## Query Results", ""]
    if len(databases) > 1:
        lines += [f"**Databases queried:** {', '.join(databases)}", ""]
    lines += ["**Executed SQL:**", "```sql", generated_sql, "```", ""]
    if revision_attempts:
        lines += [f"*SQL was revised {revision_attempts} time(s) to fix errors.*", ""]
    lines += [f"**Rows returned:** {combined.row_count}", ""]

    shown = combined
    if combined.row_count > _MESSAGE_ROW_LIMIT:
        shown = combined.model_copy(update={"rows": combined.rows[:_MESSAGE_ROW_LIMIT]})
        lines += [f"*Showing first {_MESSAGE_ROW_LIMIT} rows.*", ""]
    lines.append(shown.to_markdown())

    if errors:
        lines += ["", "**Some statements did not complete:**"]
        lines += [f"- {error}" for error in errors]
    return "\n".join(lines)


def build_failure_message(errors: list[str], generated_sql: str | None, hint: str) -> str:
    lines = ["## Query Failed", ""]
    if errors:
        lines.append("**Errors:**")
        lines += [f"- {error}" for error in errors]
        lines.append("")
    if generated_sql:
        lines += ["**SQL:**", "```sql", generated_sql, "```", ""]
    lines.append(hint)
    return "\n".join(lines)

"""Error recovery helpers for failed query turns.

Pure functions that classify the per-statement error list and build a
user-facing recovery hint.
"""

from __future__ import annotations

# ── Error classification patterns ────────────────────────────────────────
# Checked in this order; the first category with a matching pattern wins.

_CATEGORY_PATTERNS: list[tuple[str, set[str]]] = [
    ("rejected", {"rejected by user", "approval timed out"}),
    ("timeout", {"timed out", "timeout"}),
    ("disallowed_tables", {"invalid table(s) used", "not connected", "table not allowed"}),
    ("syntax", {"syntax error", "parse error", "multiple statements", "query is empty"}),
    ("execution", {"execution failed", "dry run failed", "query failed", "revision failed"}),
]


def classify_errors(errors: list[str]) -> str:
    """Classify turn errors into a category.

    Args:
        errors: Error strings collected in ``ExecutionOutcome.errors``.

    Returns:
        One of 'rejected', 'timeout', 'disallowed_tables', 'syntax',
        'execution' or 'generic'.
    """
    combined = " ".join(errors).lower()
    for category, patterns in _CATEGORY_PATTERNS:
        if any(pattern in combined for pattern in patterns):
            return category
    return "generic"


def build_error_recovery(errors: list[str], available_tables: list[str]) -> str:
    """Build a user-friendly hint for a failed turn.

    Args:
        errors: Error strings collected during the turn.
        available_tables: Tables the user could ask about, named in the
            hint for table-related failures.

    Returns:
        A one-paragraph message.
    """
    category = classify_errors(errors)

    if category == "rejected":
        return (
            "The write operation was not approved, so no changes were made. "
            "Ask again if you want to run it, or rephrase the request as a read-only question."
        )
    if category == "timeout":
        return (
            "The request took too long and was stopped. "
            "Try narrowing the question, for example by adding a filter or a smaller row limit."
        )
    if category == "disallowed_tables":
        tables = ", ".join(available_tables[:20]) if available_tables else "none found"
        return (
            "Your request references data that isn't available in the connected databases. "
            f"Available tables: {tables}."
        )
    if category == "syntax":
        return (
            "I had trouble constructing a valid query for your request. "
            "Could you rephrase your question or be more specific about what data you need?"
        )
    if category == "execution":
        return (
            "The database could not run the generated query. "
            "Check that the columns and values you mentioned exist, then try again."
        )
    return (
        "I was unable to answer your request. "
        "Please try rephrasing your question or be more specific about what data you need."
    )

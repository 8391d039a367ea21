"""Pure query validation logic.

Validates generated SQL for syntax and table whitelist compliance, and
classifies statements for the execution path. Parsing is done with
sqlglot; no I/O, suitable for direct unit testing.
"""

from __future__ import annotations

import logging
import re

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError

from models import DatabaseSchema, SqlOperationType, ValidationResult

logger = logging.getLogger(__name__)

# Top-level expression types accepted as a statement.
_STATEMENT_TYPES: tuple[type[exp.Expression], ...] = (
    exp.Query,
    exp.Insert,
    exp.Update,
    exp.Delete,
    exp.Create,
    exp.Drop,
    exp.Alter,
    exp.TruncateTable,
    exp.Merge,
    exp.Command,
)

_OPERATION_KEYWORDS: dict[str, SqlOperationType] = {
    "SELECT": SqlOperationType.SELECT,
    "WITH": SqlOperationType.SELECT,
    "SHOW": SqlOperationType.SELECT,
    "DESCRIBE": SqlOperationType.SELECT,
    "DESC": SqlOperationType.SELECT,
    "EXPLAIN": SqlOperationType.SELECT,
    "VALUES": SqlOperationType.SELECT,
    "INSERT": SqlOperationType.INSERT,
    "UPDATE": SqlOperationType.UPDATE,
    "DELETE": SqlOperationType.DELETE,
    "CREATE": SqlOperationType.CREATE,
    "ALTER": SqlOperationType.ALTER,
    "DROP": SqlOperationType.DROP,
    "TRUNCATE": SqlOperationType.TRUNCATE,
    "MERGE": SqlOperationType.OTHER,
    "REPLACE": SqlOperationType.OTHER,
    "UPSERT": SqlOperationType.OTHER,
    "GRANT": SqlOperationType.OTHER,
    "REVOKE": SqlOperationType.OTHER,
    "RENAME": SqlOperationType.OTHER,
    "COMMENT": SqlOperationType.OTHER,
    "CALL": SqlOperationType.OTHER,
    "EXEC": SqlOperationType.OTHER,
    "EXECUTE": SqlOperationType.OTHER,
    "USE": SqlOperationType.OTHER,
    "SET": SqlOperationType.OTHER,
}

_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT = re.compile(r"--.*$", re.MULTILINE)
_FIRST_KEYWORD = re.compile(r"^[\s(]*([A-Za-z]+)")
_WHERE_CLAUSE = re.compile(r"\bWHERE\b", re.IGNORECASE)


def strip_comments(sql: str) -> str:
    """Remove ``/* */`` and ``--`` comments."""
    return _LINE_COMMENT.sub("", _BLOCK_COMMENT.sub("", sql)).strip()


# ============================================================================
# Classification
# ============================================================================


def detect_operation_type(sql: str) -> SqlOperationType:
    """Classify a statement by its first keyword.

    Examples:
        >>> detect_operation_type("WITH t AS (SELECT 1) SELECT * FROM t")
        <SqlOperationType.SELECT: 'SELECT'>
        >>> detect_operation_type("-- cleanup\\nDROP TABLE orders")
        <SqlOperationType.DROP: 'DROP'>
    """
    match = _FIRST_KEYWORD.match(strip_comments(sql))
    if not match:
        return SqlOperationType.UNKNOWN
    return _OPERATION_KEYWORDS.get(match.group(1).upper(), SqlOperationType.UNKNOWN)


def has_where_clause(sql: str) -> bool:
    return bool(_WHERE_CLAUSE.search(strip_comments(sql)))


def is_high_risk_statement(sql: str) -> bool:
    """DROP, TRUNCATE and ALTER, plus DELETE or UPDATE without a WHERE clause."""
    operation = detect_operation_type(sql)
    if operation.is_high_risk:
        return True
    if operation in (SqlOperationType.DELETE, SqlOperationType.UPDATE):
        return not has_where_clause(sql)
    return False


# ============================================================================
# Parsing helpers
# ============================================================================


def _format_parse_error(exc: Exception) -> str:
    errors = getattr(exc, "errors", None)
    if errors:
        first = errors[0]
        description = first.get("description") or str(exc)
        line = first.get("line")
        col = first.get("col")
        if line is not None and col is not None:
            return f"Syntax error: {description} (line {line}, col {col})"
        return f"Syntax error: {description}"
    return f"Syntax error: {exc}"


def _parse_statements(sql: str, dialect: str | None) -> list[exp.Expression]:
    """Parse ``sql`` into non-empty statements. Raises sqlglot errors."""
    return [s for s in sqlglot.parse(sql, read=dialect) if s is not None]


def _cte_names(statement: exp.Expression) -> set[str]:
    return {cte.alias.lower() for cte in statement.find_all(exp.CTE) if cte.alias}


def _qualified_name(table: exp.Table) -> str:
    return ".".join(part for part in (table.catalog, table.db, table.name) if part)


def _created_table(statement: exp.Expression) -> str | None:
    """Name of the table a CREATE statement creates, if any."""
    if not isinstance(statement, exp.Create):
        return None
    target = statement.this
    table = target if isinstance(target, exp.Table) else target.find(exp.Table) if target else None
    return table.name.lower() if table is not None and table.name else None


def _referenced_tables(statement: exp.Expression) -> list[exp.Table]:
    cte_names = _cte_names(statement)
    seen: set[str] = set()
    tables: list[exp.Table] = []
    for table in statement.find_all(exp.Table):
        if not table.name or table.name.lower() in cte_names:
            continue
        key = _qualified_name(table).lower()
        if key not in seen:
            seen.add(key)
            tables.append(table)
    return tables


def extract_table_names(sql: str, dialect: str | None = None) -> list[str]:
    """Return the tables referenced by ``sql`` in order of appearance.

    CTE aliases are excluded. Names are qualified as written
    (``sales.orders``). Unparsable SQL yields an empty list.
    """
    try:
        statements = _parse_statements(sql, dialect)
    except (ParseError, TokenError) as exc:
        logger.warning("Cannot extract tables from unparsable SQL: %s", exc)
        return []
    names: list[str] = []
    for statement in statements:
        for table in _referenced_tables(statement):
            name = _qualified_name(table)
            if name not in names:
                names.append(name)
    return names


def extract_affected_tables(
    sql: str,
    schema: DatabaseSchema | None = None,
    dialect: str | None = None,
) -> list[str]:
    """Tables a write statement touches, spelled as in ``schema`` when known."""
    names = extract_table_names(sql, dialect)
    if schema is None:
        return names
    resolved: list[str] = []
    for name in names:
        table = schema.get_table(name) or schema.get_table(name.rsplit(".", 1)[-1])
        spelled = table.name if table is not None else name
        if spelled not in resolved:
            resolved.append(spelled)
    return resolved


# ============================================================================
# Checks
# ============================================================================


def _check_syntax(sql: str, dialect: str | None) -> tuple[list[exp.Expression], list[str]]:
    """Parse ``sql`` as exactly one statement.

    Returns:
        Tuple of (parsed statements, list of errors).
    """
    if not sql.strip():
        return [], ["Query is empty"]

    try:
        statements = _parse_statements(sql, dialect)
    except (ParseError, TokenError) as exc:
        return [], [_format_parse_error(exc)]

    if not statements:
        return [], ["Query is empty"]
    if len(statements) > 1:
        return statements, [
            f"Multiple statements detected ({len(statements)}); "
            "put each statement in its own code block"
        ]
    if not isinstance(statements[0], _STATEMENT_TYPES):
        return statements, [f"Syntax error: not a SQL statement: {sql.strip()[:100]}"]
    return statements, []


def _check_whitelist(statement: exp.Expression, allowed_tables: list[str]) -> list[str]:
    """Check that every referenced table is in ``allowed_tables``."""
    allowed: set[str] = set()
    for name in allowed_tables:
        allowed.add(name.lower())
        allowed.add(name.rsplit(".", 1)[-1].lower())

    created = _created_table(statement)
    invalid: list[str] = []
    for table in _referenced_tables(statement):
        if created is not None and table.name.lower() == created:
            continue
        qualified = _qualified_name(table)
        if qualified.lower() in allowed or table.name.lower() in allowed:
            continue
        invalid.append(qualified)

    if not invalid:
        return []
    return [
        f"Invalid table(s) used: {', '.join(invalid)}. "
        f"Available tables: {', '.join(allowed_tables)}"
    ]


def _collect_warnings(statement: exp.Expression) -> list[str]:
    warnings: list[str] = []
    selects_star = any(
        isinstance(projection, exp.Star)
        for select in statement.find_all(exp.Select)
        for projection in select.expressions
    )
    if selects_star:
        warnings.append("SELECT * returns every column; consider naming the columns needed")
    if isinstance(statement, (exp.Update, exp.Delete)) and not statement.args.get("where"):
        kind = "UPDATE" if isinstance(statement, exp.Update) else "DELETE"
        warnings.append(f"{kind} without WHERE affects every row of the table")
    return warnings


def validate_syntax(sql: str, dialect: str | None = None) -> ValidationResult:
    """Syntax check only."""
    statements, errors = _check_syntax(sql, dialect)
    if errors:
        return ValidationResult(is_valid=False, errors=errors, error_type="syntax")
    return ValidationResult(is_valid=True, warnings=_collect_warnings(statements[0]))


def validate_sql(
    sql: str,
    allowed_tables: list[str] | None = None,
    dialect: str | None = None,
) -> ValidationResult:
    """Validate a statement for syntax, then table whitelist compliance.

    The whitelist check only runs once the syntax check has passed. An
    empty or ``None`` whitelist skips it.

    Args:
        sql: Statement text, routing comment already stripped.
        allowed_tables: Tables the statement may reference.
        dialect: sqlglot dialect name; ``None`` parses generic SQL.

    Returns:
        ``ValidationResult`` with ``error_type`` set to ``"syntax"`` or
        ``"whitelist"`` when invalid.
    """
    logger.info("Validating query: %s", sql[:200] if sql.strip() else "(empty)")

    statements, errors = _check_syntax(sql, dialect)
    if errors:
        logger.info("Validation complete: valid=False, syntax errors=%d", len(errors))
        return ValidationResult(is_valid=False, errors=errors, error_type="syntax")

    statement = statements[0]
    warnings = _collect_warnings(statement)

    if allowed_tables:
        whitelist_errors = _check_whitelist(statement, allowed_tables)
        if whitelist_errors:
            logger.info("Validation complete: valid=False, whitelist violation")
            return ValidationResult(
                is_valid=False,
                errors=whitelist_errors,
                warnings=warnings,
                error_type="whitelist",
            )

    logger.info("Validation complete: valid=True, warnings=%d", len(warnings))
    return ValidationResult(is_valid=True, warnings=warnings)

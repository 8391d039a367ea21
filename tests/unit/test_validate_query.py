"""Unit tests for the pure SQL validation and classification functions.

Tests cover syntax checks, the table whitelist, warnings, operation
classification, risk detection and table extraction.
"""

from __future__ import annotations

import pytest
from entities.query_validator import (
    detect_operation_type,
    extract_affected_tables,
    extract_table_names,
    is_high_risk_statement,
    validate_sql,
    validate_syntax,
)
from models import SqlOperationType

from tests.conftest import make_shop_schema

ALLOWED_TABLES: list[str] = ["customers", "orders", "products"]


# ── Valid queries ─────────────────────────────────────────────────────


class TestValidQueries:
    """Queries that should pass all validation checks."""

    def test_simple_select(self) -> None:
        result = validate_sql("SELECT name FROM customers LIMIT 10", ALLOWED_TABLES)
        assert result.is_valid is True
        assert result.errors == []
        assert result.error_type is None

    def test_join_with_aliases(self) -> None:
        sql = (
            "SELECT c.name, SUM(o.total) FROM customers c "
            "JOIN orders o ON o.customer_id = c.id GROUP BY c.name"
        )
        assert validate_sql(sql, ALLOWED_TABLES).is_valid is True

    def test_cte_alias_not_checked(self) -> None:
        sql = "WITH recent AS (SELECT id FROM orders) SELECT id FROM recent"
        assert validate_sql(sql, ALLOWED_TABLES).is_valid is True

    def test_schema_qualified_name(self) -> None:
        assert validate_sql("SELECT id FROM sales.orders", ALLOWED_TABLES).is_valid is True

    def test_qualified_whitelist_case_insensitive(self) -> None:
        result = validate_sql("select id from sales.orders", ["Sales.Orders"])
        assert result.is_valid is True

    def test_create_target_exempt(self) -> None:
        sql = "CREATE TABLE archived_orders AS SELECT * FROM orders"
        assert validate_sql(sql, ALLOWED_TABLES).is_valid is True

    def test_no_whitelist_checks_syntax_only(self) -> None:
        assert validate_sql("SELECT * FROM anything").is_valid is True
        assert validate_sql("SELECT * FROM anything", []).is_valid is True

    def test_write_statements(self) -> None:
        assert validate_sql("UPDATE orders SET total = 0 WHERE id = 1", ALLOWED_TABLES).is_valid
        assert validate_sql("DELETE FROM orders WHERE id = 1", ALLOWED_TABLES).is_valid
        assert validate_sql(
            "INSERT INTO products (id, name) VALUES (1, 'Pen')", ALLOWED_TABLES
        ).is_valid


# ── Syntax failures ──────────────────────────────────────────────────


class TestSyntaxErrors:
    """Statements rejected before the whitelist check."""

    def test_empty(self) -> None:
        result = validate_sql("   ", ALLOWED_TABLES)
        assert result.is_valid is False
        assert result.errors == ["Query is empty"]
        assert result.error_type == "syntax"

    def test_unbalanced_parenthesis(self) -> None:
        result = validate_sql("SELECT (1", ALLOWED_TABLES)
        assert result.is_valid is False
        assert result.error_type == "syntax"
        assert result.errors[0].startswith("Syntax error")

    def test_multiple_statements(self) -> None:
        result = validate_sql("SELECT 1; SELECT 2", ALLOWED_TABLES)
        assert result.is_valid is False
        assert result.errors[0].startswith("Multiple statements detected (2)")

    def test_bare_expression_is_not_a_statement(self) -> None:
        result = validate_syntax("1 + 1")
        assert result.is_valid is False
        assert result.errors == ["Syntax error: not a SQL statement: 1 + 1"]

    def test_syntax_checked_before_whitelist(self) -> None:
        result = validate_sql("SELECT (1 FROM ghosts", ALLOWED_TABLES)
        assert result.error_type == "syntax"


# ── Whitelist failures ───────────────────────────────────────────────


class TestWhitelist:
    """Tables outside the allowed set."""

    def test_misspelled_table(self) -> None:
        result = validate_sql("SELECT name FROM custmers", ALLOWED_TABLES)
        assert result.is_valid is False
        assert result.error_type == "whitelist"
        assert result.errors == [
            "Invalid table(s) used: custmers. Available tables: customers, orders, products"
        ]

    def test_unknown_table_in_join(self) -> None:
        sql = "SELECT o.id FROM orders o JOIN ghosts g ON g.id = o.id"
        result = validate_sql(sql, ALLOWED_TABLES)
        assert result.is_valid is False
        assert "Invalid table(s) used: ghosts." in result.errors[0]

    def test_unknown_table_in_subquery(self) -> None:
        sql = "SELECT id FROM orders WHERE customer_id IN (SELECT id FROM vip)"
        result = validate_sql(sql, ALLOWED_TABLES)
        assert result.error_type == "whitelist"


# ── Warnings ─────────────────────────────────────────────────────────


class TestWarnings:
    """Non-fatal findings."""

    def test_select_star(self) -> None:
        result = validate_sql("SELECT * FROM orders", ALLOWED_TABLES)
        assert result.is_valid is True
        assert any("SELECT *" in w for w in result.warnings)

    def test_count_star_is_not_select_star(self) -> None:
        result = validate_sql("SELECT COUNT(*) FROM orders", ALLOWED_TABLES)
        assert result.warnings == []

    def test_update_without_where(self) -> None:
        result = validate_sql("UPDATE orders SET total = 0", ALLOWED_TABLES)
        assert result.is_valid is True
        assert "UPDATE without WHERE affects every row of the table" in result.warnings

    def test_delete_without_where(self) -> None:
        result = validate_sql("DELETE FROM orders", ALLOWED_TABLES)
        assert "DELETE without WHERE affects every row of the table" in result.warnings


# ── Classification ───────────────────────────────────────────────────


class TestDetectOperationType:
    """First-keyword classification."""

    @pytest.mark.parametrize(
        ("sql", "expected"),
        [
            ("SELECT 1", SqlOperationType.SELECT),
            ("select * from orders", SqlOperationType.SELECT),
            ("WITH t AS (SELECT 1) SELECT * FROM t", SqlOperationType.SELECT),
            ("(SELECT 1)", SqlOperationType.SELECT),
            ("SHOW TABLES", SqlOperationType.SELECT),
            ("EXPLAIN SELECT 1", SqlOperationType.SELECT),
            ("INSERT INTO t VALUES (1)", SqlOperationType.INSERT),
            ("UPDATE t SET a = 1", SqlOperationType.UPDATE),
            ("DELETE FROM t", SqlOperationType.DELETE),
            ("CREATE TABLE t (a INT)", SqlOperationType.CREATE),
            ("ALTER TABLE t ADD b INT", SqlOperationType.ALTER),
            ("DROP TABLE t", SqlOperationType.DROP),
            ("TRUNCATE TABLE t", SqlOperationType.TRUNCATE),
            ("MERGE INTO t USING s ON 1 = 1", SqlOperationType.OTHER),
            ("GRANT SELECT ON t TO bob", SqlOperationType.OTHER),
            ("-- cleanup\nDROP TABLE t", SqlOperationType.DROP),
            ("/* note */ delete from t", SqlOperationType.DELETE),
            ("", SqlOperationType.UNKNOWN),
            ("hello world", SqlOperationType.UNKNOWN),
        ],
    )
    def test_detect(self, sql: str, expected: SqlOperationType) -> None:
        assert detect_operation_type(sql) == expected

    def test_approval_required_for_changes_only(self) -> None:
        assert SqlOperationType.SELECT.requires_approval is False
        assert SqlOperationType.UNKNOWN.requires_approval is False
        assert SqlOperationType.INSERT.requires_approval is True
        assert SqlOperationType.DROP.requires_approval is True
        assert SqlOperationType.OTHER.requires_approval is True


class TestHighRisk:
    """DROP/TRUNCATE/ALTER and unfiltered UPDATE/DELETE."""

    @pytest.mark.parametrize(
        "sql",
        [
            "DROP TABLE orders",
            "TRUNCATE TABLE orders",
            "ALTER TABLE orders ADD note TEXT",
            "DELETE FROM orders",
            "UPDATE orders SET total = 0",
        ],
    )
    def test_high_risk(self, sql: str) -> None:
        assert is_high_risk_statement(sql) is True

    @pytest.mark.parametrize(
        "sql",
        [
            "DELETE FROM orders WHERE id = 1",
            "UPDATE orders SET total = 0 WHERE id = 1",
            "INSERT INTO orders (id) VALUES (1)",
            "SELECT * FROM orders",
        ],
    )
    def test_not_high_risk(self, sql: str) -> None:
        assert is_high_risk_statement(sql) is False

    def test_where_in_comment_does_not_count(self) -> None:
        assert is_high_risk_statement("DELETE FROM orders -- WHERE id = 1") is True


# ── Table extraction ─────────────────────────────────────────────────


class TestExtractTables:
    """Referenced and affected table names."""

    def test_order_of_appearance(self) -> None:
        sql = "SELECT * FROM orders o JOIN customers c ON c.id = o.customer_id"
        assert extract_table_names(sql) == ["orders", "customers"]

    def test_cte_excluded(self) -> None:
        sql = "WITH recent AS (SELECT id FROM orders) SELECT id FROM recent"
        assert extract_table_names(sql) == ["orders"]

    def test_qualified_as_written(self) -> None:
        assert extract_table_names("SELECT id FROM sales.orders") == ["sales.orders"]

    def test_unparsable_yields_nothing(self) -> None:
        assert extract_table_names("SELECT (1") == []

    def test_affected_tables_use_schema_spelling(self) -> None:
        tables = extract_affected_tables("DELETE FROM ORDERS WHERE id = 1", make_shop_schema())
        assert tables == ["orders"]

    def test_affected_tables_without_schema(self) -> None:
        assert extract_affected_tables("UPDATE Orders SET total = 0") == ["Orders"]

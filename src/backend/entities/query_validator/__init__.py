"""Query Validator package for validating SQL before execution."""

from .validator import (
    detect_operation_type,
    extract_affected_tables,
    extract_table_names,
    is_high_risk_statement,
    validate_sql,
    validate_syntax,
)

__all__ = [
    "detect_operation_type",
    "extract_affected_tables",
    "extract_table_names",
    "is_high_risk_statement",
    "validate_sql",
    "validate_syntax",
]

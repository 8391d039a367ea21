"""SQL Generator package for schema-grounded SQL generation."""

from .generator import (
    build_generation_prompt,
    build_schema_context,
    extract_database_comment,
    generate_sql,
    parse_sql_blocks,
    remove_database_comment,
)

__all__ = [
    "build_generation_prompt",
    "build_schema_context",
    "extract_database_comment",
    "generate_sql",
    "parse_sql_blocks",
    "remove_database_comment",
]

"""
NL2SQL Controller - Orchestrates one query turn.

The controller:
1. Fetches and links the schema of every connected database
2. Generates, validates and revises SQL
3. Executes reads directly and writes after a dry run and user approval
4. Combines the per-database results into one outcome
"""

from .pipeline import execute
from .results import DATABASE_COLUMN, combine_results, result_key
from .runner import StatementOutcome, StatementRunner

__all__ = [
    "DATABASE_COLUMN",
    "StatementOutcome",
    "StatementRunner",
    "combine_results",
    "execute",
    "result_key",
]

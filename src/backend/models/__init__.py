"""
Shared models for entities.

These models are passed between pipeline stages and returned to callers.
All models are re-exported here.
"""

from .execution import (
    DryRunResult,
    ExecutionOutcome,
    ExecutionTask,
    QueryResult,
    SqlOperationType,
    UpdateResult,
)
from .generation import (
    GenerationResult,
    RevisionRequest,
    RevisionResult,
    SqlBlock,
    ValidationResult,
)
from .linking import Keyword, LinkingResult, TokenType
from .schema import ColumnSchema, DatabaseSchema, MergedSchema, TableSchema

__all__ = [
    # Schema (database snapshots)
    "ColumnSchema",
    "TableSchema",
    "DatabaseSchema",
    "MergedSchema",
    # Linking (keywords and schema linking)
    "TokenType",
    "Keyword",
    "LinkingResult",
    # Generation (SQL construction, validation and revision)
    "SqlBlock",
    "GenerationResult",
    "ValidationResult",
    "RevisionRequest",
    "RevisionResult",
    # Execution (statement results)
    "SqlOperationType",
    "DryRunResult",
    "UpdateResult",
    "QueryResult",
    "ExecutionTask",
    "ExecutionOutcome",
]

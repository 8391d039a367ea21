"""Exception types raised at I/O edges.

Pipeline stages convert these into values (``ValidationResult``,
``ExecutionOutcome.errors``); only adapters and the generator raise.
"""

from __future__ import annotations


class ChatDBError(Exception):
    """Base class for errors raised by this package."""


class SqlGenerationError(ChatDBError):
    """The completion service returned no parsable SQL.

    Args:
        message: Human-readable description.
        raw_response: The unmodified LLM response, for diagnostics.
    """

    def __init__(self, message: str, raw_response: str = "") -> None:
        super().__init__(message)
        self.raw_response = raw_response


class DatabaseError(ChatDBError):
    """A database round-trip failed."""

    @classmethod
    def connection_failed(cls, database: str, reason: str) -> DatabaseError:
        return cls(f"Failed to connect to database '{database}': {reason}")

    @classmethod
    def query_failed(cls, sql: str, reason: str) -> DatabaseError:
        return cls(f"Query failed: {reason} (SQL: {sql[:200]})")

    @classmethod
    def schema_fetch_failed(cls, database: str, reason: str) -> DatabaseError:
        return cls(f"Failed to fetch schema for '{database}': {reason}")

    @classmethod
    def not_connected(cls) -> DatabaseError:
        return cls("Database connection not established. Call connect() or use 'async with'.")

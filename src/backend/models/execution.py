"""
Query execution models.

Covers statement classification, dry runs, per-database results and the
top-level outcome returned from ``execute()``.
"""

import csv
import io
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .schema import MergedSchema


class SqlOperationType(str, Enum):
    """Statement kinds used to decide approval requirements."""

    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CREATE = "CREATE"
    ALTER = "ALTER"
    DROP = "DROP"
    TRUNCATE = "TRUNCATE"
    OTHER = "OTHER"
    UNKNOWN = "UNKNOWN"

    @property
    def requires_approval(self) -> bool:
        return self not in (SqlOperationType.SELECT, SqlOperationType.UNKNOWN)

    @property
    def is_high_risk(self) -> bool:
        return self in (SqlOperationType.DROP, SqlOperationType.TRUNCATE, SqlOperationType.ALTER)

    @property
    def is_write(self) -> bool:
        return self in (SqlOperationType.INSERT, SqlOperationType.UPDATE, SqlOperationType.DELETE)

    @property
    def is_ddl(self) -> bool:
        return self in (
            SqlOperationType.CREATE,
            SqlOperationType.ALTER,
            SqlOperationType.DROP,
            SqlOperationType.TRUNCATE,
        )


class DryRunResult(BaseModel):
    """Outcome of executing a write statement without committing it."""

    is_valid: bool = Field(description="False when the database rejected the statement")

    estimated_rows: int | None = Field(
        default=None,
        description="Rows the statement would affect, when the driver reports it"
    )

    warnings: list[str] = Field(default_factory=list)

    errors: list[str] = Field(default_factory=list)

    message: str | None = Field(default=None)


class UpdateResult(BaseModel):
    """Outcome of a committed write statement."""

    success: bool

    affected_rows: int = Field(default=0)

    message: str | None = Field(default=None)


def _escape_markdown(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ").replace("\r", "")


class QueryResult(BaseModel):
    """
    Tabular query result with every cell rendered as a string.

    Immutable once produced. ``None`` values from the driver are stored
    as empty strings and rendered as ``NULL``.
    """

    model_config = ConfigDict(frozen=True)

    columns: list[str] = Field(default_factory=list)

    rows: list[list[str]] = Field(default_factory=list)

    row_count: int = Field(default=0, ge=0)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def to_csv(self) -> str:
        """Render as CSV with a header row (for LLM consumption)."""
        if self.is_empty:
            return "No results"
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(self.columns)
        for row in self.rows:
            writer.writerow([value or "NULL" for value in row])
        return buffer.getvalue()

    def to_markdown(self) -> str:
        """Render as a markdown table, escaping pipes and newlines in cells."""
        if self.is_empty:
            return "No results"
        lines = [
            "| " + " | ".join(_escape_markdown(c) for c in self.columns) + " |",
            "| " + " | ".join("---" for _ in self.columns) + " |",
        ]
        for row in self.rows:
            lines.append("| " + " | ".join(_escape_markdown(v or "NULL") for v in row) + " |")
        return "\n".join(lines) + "\n"


class ExecutionTask(BaseModel):
    """One natural-language query turn."""

    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(description="The user's natural-language question")

    schema_: MergedSchema | None = Field(
        default=None,
        alias="schema",
        description="Pre-fetched schemas; databases present here are not fetched again"
    )

    additional_context: str = Field(
        default="",
        description="Free-text context appended to the generation prompt"
    )

    max_rows: int | None = Field(
        default=None,
        ge=1,
        description="Row limit for generated queries (None → settings default)"
    )

    generate_visualization: bool = Field(
        default=False,
        description="Passed through to the outcome for downstream renderers"
    )


class ExecutionOutcome(BaseModel):
    """
    Top-level result of one ``execute()`` call.

    Always carries both the best-effort results and the full error list;
    ``success`` is True when at least one statement produced a result.
    """

    success: bool = Field(description="True when results_by_database is non-empty")

    message: str = Field(default="", description="Markdown summary for display")

    generated_sql: str | None = Field(
        default=None,
        description="All statements, each prefixed with its routing comment"
    )

    query_result: QueryResult | None = Field(
        default=None,
        description="Combined result across databases"
    )

    results_by_database: dict[str, QueryResult] = Field(default_factory=dict)

    target_databases: list[str] = Field(default_factory=list)

    revision_attempts: int = Field(default=0, ge=0)

    errors: list[str] = Field(default_factory=list)

    raw_response: str | None = Field(
        default=None,
        description="Raw LLM response, kept when generation produced no SQL"
    )

    generate_visualization: bool = Field(default=False)

"""
SQL generation, validation and revision models.

These models carry generated statements from the generator through
validation and the self-correction loop.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class SqlBlock(BaseModel):
    """One generated statement routed to one database."""

    model_config = ConfigDict(frozen=True)

    database: str = Field(description="Target database identifier")
    sql: str = Field(description="Statement text with the routing comment stripped")


class GenerationResult(BaseModel):
    """Parsed output of one generation call."""

    blocks: list[SqlBlock] = Field(default_factory=list)

    raw_response: str = Field(
        default="",
        description="Unmodified LLM response, kept for diagnostics"
    )

    prompt: str = Field(
        default="",
        description="Prompt sent to the completion service"
    )


class ValidationResult(BaseModel):
    """
    Outcome of validating a statement.

    ``error_type`` distinguishes a syntax failure from a whitelist
    violation; it is ``None`` when the statement is valid.
    """

    is_valid: bool = Field(description="True when no errors were found")

    errors: list[str] = Field(default_factory=list)

    warnings: list[str] = Field(default_factory=list)

    error_type: Literal["syntax", "whitelist"] | None = Field(
        default=None,
        description="Which check failed"
    )


class RevisionRequest(BaseModel):
    """Input to the SQL reviser."""

    original_query: str = Field(description="The user's natural-language question")

    failed_sql: str = Field(description="Statement that failed validation or execution")

    error_message: str = Field(description="Concatenated error text")

    schema_description: str = Field(
        default="",
        description="Tables and columns the revised statement may use"
    )

    allowed_tables: list[str] = Field(
        default_factory=list,
        description="Whitelist for re-validation (empty → syntax check only)"
    )

    previous_attempts: list[str] = Field(
        default_factory=list,
        description="Statements already tried; shown to the LLM as 'do not repeat'"
    )

    max_attempts: int = Field(default=3, ge=1)


class RevisionResult(BaseModel):
    """Outcome of the bounded revision loop."""

    success: bool

    sql: str = Field(default="", description="Revised statement (last attempt on failure)")

    attempts: int = Field(default=0, ge=0, description="Reviser calls made")

    last_error: str | None = Field(default=None)

    error: str | None = Field(
        default=None,
        description="Terminal failure description when success is False"
    )

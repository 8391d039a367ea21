"""
Keyword and schema-linking models.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TokenType(str, Enum):
    """Script / kind of a token produced by the tokenizer."""

    ENGLISH = "english"
    CHINESE = "chinese"
    CODE = "code"


class Keyword(BaseModel):
    """A normalized keyword with its type tag and RAKE score."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Lowercased surface form of the first occurrence")
    stem: str = Field(default="", description="Grouping key; the Porter stem for English words")
    type: TokenType = Field(description="Natural-language word or code/version token")
    score: float = Field(default=0.0, description="Relevance weight (degree / frequency)")


class LinkingResult(BaseModel):
    """Relevant subset of a schema for one query."""

    relevant_tables: list[str] = Field(
        default_factory=list,
        description="Table names from the schema; all tables when nothing matched",
    )
    relevant_columns: list[str] = Field(
        default_factory=list, description="'table.column' pairs judged relevant"
    )
    keywords: list[str] = Field(default_factory=list, description="Keywords used for linking")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    strategy: str = Field(default="keyword", description="Linker that produced this result")

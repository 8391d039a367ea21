"""Linker chain construction and the small-schema inclusion policy."""

from __future__ import annotations

import logging
from typing import Literal

from entities.shared.protocols import (
    DatabaseConnection,
    KeywordExtractor,
    SchemaLinker,
    TextCompletionService,
)
from entities.tokenizer import RakeKeywordExtractor, SimpleKeywordExtractor
from models import DatabaseSchema, LinkingResult

from .content import ContentLinker
from .keyword import KeywordLinker
from .llm import LlmLinker

logger = logging.getLogger(__name__)

LinkingStrategy = Literal["keyword", "llm", "content"]


def make_keyword_extractor(
    kind: Literal["simple", "rake"],
    max_keywords: int = 10,
    prefer_backward_on_tie: bool = True,
) -> KeywordExtractor:
    if kind == "rake":
        return RakeKeywordExtractor(
            max_keywords=max_keywords, prefer_backward_on_tie=prefer_backward_on_tie
        )
    return SimpleKeywordExtractor()


def build_linker_chain(
    strategy: LinkingStrategy,
    completion: TextCompletionService | None = None,
    connection: DatabaseConnection | None = None,
    extractor: KeywordExtractor | None = None,
    sample_rows: int = 2,
    cell_max_chars: int = 30,
) -> SchemaLinker:
    """Build a linker whose failures degrade toward the keyword linker.

    ``content`` wraps ``llm`` which wraps ``keyword``. A strategy whose
    collaborators are missing (no completion service, or no connection
    for the content linker) degrades to the next link down.

    Args:
        strategy: Head of the chain.
        completion: Text-completion backend for the LLM-based linkers.
        connection: Database the content linker samples rows from.
        extractor: Keyword extractor for the keyword linker.
        sample_rows: Sample rows per table shown to LLM-based linkers.
        cell_max_chars: Sample cells are cut to this length.

    Returns:
        The head linker.
    """
    keyword_linker = KeywordLinker(extractor)
    if strategy == "keyword" or completion is None:
        return keyword_linker

    llm_linker = LlmLinker(
        completion,
        fallback=keyword_linker,
        connection=connection,
        sample_rows=sample_rows,
        cell_max_chars=cell_max_chars,
    )
    if strategy == "llm" or connection is None:
        return llm_linker

    return ContentLinker(
        completion,
        connection,
        fallback=llm_linker,
        keyword_linker=keyword_linker,
        sample_rows=sample_rows,
        cell_max_chars=cell_max_chars,
    )


def apply_small_schema_policy(
    result: LinkingResult,
    schema: DatabaseSchema,
    min_linked_tables: int = 2,
    small_schema_table_limit: int = 10,
) -> LinkingResult:
    """Send a small schema in full when linking found too few tables.

    Returns:
        ``result`` unchanged, or a copy listing every table of ``schema``.
    """
    if (
        len(result.relevant_tables) < min_linked_tables
        and len(schema.tables) <= small_schema_table_limit
    ):
        logger.info(
            "Linked %d table(s) in a %d-table schema; using all tables",
            len(result.relevant_tables),
            len(schema.tables),
        )
        return result.model_copy(update={"relevant_tables": schema.table_names})
    return result

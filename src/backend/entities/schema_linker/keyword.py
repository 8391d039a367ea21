"""Keyword schema linker.

Scores tables and columns by exact, substring, comment and fuzzy
matches against extracted keywords. Never calls out; always available
as the last link in the linker chain.
"""

from __future__ import annotations

import logging

from rapidfuzz.distance import Levenshtein

from entities.shared.protocols import KeywordExtractor
from entities.tokenizer import SimpleKeywordExtractor
from models import DatabaseSchema, LinkingResult

logger = logging.getLogger(__name__)

# ============================================================================
# Scoring weights
# ============================================================================

EXACT_MATCH_SCORE = 1.0
CONTAINS_MATCH_SCORE = 0.7
COMMENT_MATCH_SCORE = 0.5
FUZZY_MATCH_SCORE = 0.3
COLUMN_MATCH_SCORE = 0.4

# Fuzzy matching is skipped when lengths differ by more than this.
_MAX_FUZZY_LENGTH_DIFF = 3


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between ``a`` and ``b`` (insert, delete, substitute)."""
    return Levenshtein.distance(a, b)


def fuzzy_match(a: str, b: str) -> bool:
    """True when ``a`` and ``b`` are within a third of the shorter length."""
    if abs(len(a) - len(b)) > _MAX_FUZZY_LENGTH_DIFF:
        return False
    threshold = min(len(a), len(b)) // 3
    return Levenshtein.distance(a, b, score_cutoff=threshold) <= threshold


def _name_score(name: str, comment: str | None, keyword: str) -> float:
    """Score one name against one keyword; first matching rule wins."""
    name = name.lower()
    if name == keyword:
        return EXACT_MATCH_SCORE
    if keyword in name or name in keyword:
        return CONTAINS_MATCH_SCORE
    if comment and keyword in comment.lower():
        return COMMENT_MATCH_SCORE
    if fuzzy_match(name, keyword):
        return FUZZY_MATCH_SCORE
    return 0.0


class KeywordLinker:
    """Keyword/fuzzy-match linker.

    Args:
        extractor: Source of keywords. Defaults to the simple stop-word
            splitter; pass a ``RakeKeywordExtractor`` for mixed-language
            queries.
    """

    strategy = "keyword"

    def __init__(self, extractor: KeywordExtractor | None = None) -> None:
        self._extractor = extractor or SimpleKeywordExtractor()

    async def extract_keywords(self, query: str) -> list[str]:
        return self.keywords_for(query)

    def keywords_for(self, query: str) -> list[str]:
        return [k.lower() for k in self._extractor.extract_keywords(query)]

    async def link(self, query: str, schema: DatabaseSchema) -> LinkingResult:
        return self.link_keywords(self.keywords_for(query), schema)

    def link_keywords(self, keywords: list[str], schema: DatabaseSchema) -> LinkingResult:
        """Score ``schema`` against already-extracted ``keywords``.

        Returns:
            Matched tables in descending score order, or every table when
            nothing matched.
        """
        table_scores: dict[str, float] = {}
        for table in schema.tables:
            score = 0.0
            for keyword in keywords:
                score += _name_score(table.name, table.comment, keyword)
                for column in table.columns:
                    column_name = column.name.lower()
                    if column_name == keyword or keyword in column_name:
                        score += COLUMN_MATCH_SCORE
            if score > 0:
                table_scores[table.name] = score

        relevant_columns: list[str] = []
        for table in schema.tables:
            if table.name not in table_scores:
                continue
            for column in table.columns:
                if any(_name_score(column.name, column.comment, k) > 0 for k in keywords):
                    relevant_columns.append(f"{table.name}.{column.name}")

        if table_scores:
            ranked = sorted(table_scores, key=lambda name: table_scores[name], reverse=True)
            mean_score = sum(table_scores.values()) / len(table_scores)
            confidence = max(0.0, min(1.0, mean_score))
        else:
            logger.info("No keyword matched a table; using all %d tables", len(schema.tables))
            ranked = schema.table_names
            confidence = 0.0

        logger.info(
            "Keyword linking: %d tables, %d columns (keywords=%s)",
            len(ranked),
            len(relevant_columns),
            keywords,
        )
        return LinkingResult(
            relevant_tables=ranked,
            relevant_columns=relevant_columns,
            keywords=keywords,
            confidence=confidence,
            strategy=self.strategy,
        )

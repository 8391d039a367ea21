"""
Keyword extractors used by the keyword schema linker.

Both classes satisfy the ``KeywordExtractor`` protocol:
``extract_keywords(query) -> list[str]``.
"""

from __future__ import annotations

import logging
import re

from models import Keyword

from .lexicon import SQL_STOP_WORDS, Lexicon
from .rake import DEFAULT_WINDOW, score_keywords
from .segmenter import BiMMSegmenter
from .tokenizer import Tokenizer

logger = logging.getLogger(__name__)

_NON_WORD = re.compile(r"[^a-z0-9\s_]")


class RakeKeywordExtractor:
    """Tokenize, drop stop words, rank by RAKE score.

    Args:
        lexicon: Dictionary and stop words. Defaults to the built-in
            lexicon plus SQL keywords and request filler ("show", "top").
        max_keywords: Upper bound on returned keywords.
        prefer_backward_on_tie: BiMM tie-break, see ``BiMMSegmenter``.
        window: RAKE co-occurrence half-width.
    """

    def __init__(
        self,
        lexicon: Lexicon | None = None,
        max_keywords: int = 10,
        prefer_backward_on_tie: bool = True,
        window: int = DEFAULT_WINDOW,
    ) -> None:
        self._lexicon = lexicon or Lexicon().with_stop_words(SQL_STOP_WORDS)
        self._max_keywords = max_keywords
        self._window = window
        self._tokenizer = Tokenizer(
            segmenter=BiMMSegmenter(self._lexicon.dictionary, prefer_backward_on_tie)
        )

    def extract_scored(self, query: str, max_keywords: int | None = None) -> list[Keyword]:
        """Return the top keywords with their type and score."""
        limit = self._max_keywords if max_keywords is None else max_keywords
        if limit <= 0:
            return []
        tokens = self._tokenizer.tokenize(query)
        keywords = score_keywords(tokens, self._lexicon.stop_words, self._window)[:limit]
        logger.debug("RAKE keywords for %r: %s", query[:80], [k.text for k in keywords])
        return keywords

    def extract_keywords(self, query: str, max_keywords: int | None = None) -> list[str]:
        return [k.text for k in self.extract_scored(query, max_keywords)]


class SimpleKeywordExtractor:
    """Lowercase split on non-word characters, minus SQL stop words."""

    def __init__(self, stop_words: frozenset[str] = SQL_STOP_WORDS) -> None:
        self._stop_words = stop_words

    def extract_keywords(self, query: str) -> list[str]:
        cleaned = _NON_WORD.sub(" ", query.lower())
        keywords: list[str] = []
        for word in cleaned.split():
            if len(word) > 2 and word not in self._stop_words and word not in keywords:
                keywords.append(word)
        return keywords


def extract_keywords(query: str, max_keywords: int = 10) -> list[str]:
    """Rank the keywords of ``query`` with the default RAKE pipeline."""
    return RakeKeywordExtractor(max_keywords=max_keywords).extract_keywords(query)

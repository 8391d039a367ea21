"""
Tokenizer module for turning mixed-language queries into keywords.

English words are Porter-stemmed, Chinese text is segmented by
bidirectional maximum matching, version strings are kept whole, and
the resulting tokens are ranked RAKE-style.
"""

from .extractor import RakeKeywordExtractor, SimpleKeywordExtractor, extract_keywords
from .lexicon import (
    CHINESE_STOP_WORDS,
    DEFAULT_CHINESE_DICTIONARY,
    ENGLISH_STOP_WORDS,
    SQL_STOP_WORDS,
    Lexicon,
)
from .porter import PorterStemmer
from .rake import score_keywords
from .segmenter import BiMMSegmenter
from .tokenizer import Token, Tokenizer, tokenize

__all__ = [
    "BiMMSegmenter",
    "CHINESE_STOP_WORDS",
    "DEFAULT_CHINESE_DICTIONARY",
    "ENGLISH_STOP_WORDS",
    "Lexicon",
    "PorterStemmer",
    "RakeKeywordExtractor",
    "SQL_STOP_WORDS",
    "SimpleKeywordExtractor",
    "Token",
    "Tokenizer",
    "extract_keywords",
    "score_keywords",
    "tokenize",
]

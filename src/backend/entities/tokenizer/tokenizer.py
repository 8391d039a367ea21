"""
Mixed-script tokenizer.

Splits a natural-language query into English, Chinese and code tokens:

1. Version strings (``v1.2.3-alpha+build.1``) are cut out whole.
2. The rest is split on non-alphanumeric boundaries; CJK ideographs count
   as alphanumeric so ``Hello世界`` stays one segment.
3. Segments are partitioned into same-script runs. CJK runs go through
   the BiMM segmenter; Latin runs are split on camelCase and digit
   boundaries, lowercased and Porter-stemmed.
"""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass

from models import TokenType

from .porter import PorterStemmer
from .segmenter import BiMMSegmenter

_VERSION_PATTERN = re.compile(
    r"\bv?\d+\.\d+\.\d+"
    r"(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
)
_SEGMENT_PATTERN = re.compile(r"[0-9A-Za-z\u3400-\u4dbf\u4e00-\u9fff]+")
_LATIN_PART_PATTERN = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|[0-9]+")

# Words this short are left unstemmed.
_MIN_STEM_LENGTH = 3


def is_cjk(char: str) -> bool:
    code = ord(char)
    return 0x3400 <= code <= 0x4DBF or 0x4E00 <= code <= 0x9FFF


@dataclass(frozen=True)
class Token:
    """One token of a query.

    Attributes:
        text: Lowercased surface form.
        stem: Normalized form used for grouping; equals ``text`` for
            Chinese and code tokens.
        type: Which script or kind the token came from.
    """

    text: str
    stem: str
    type: TokenType


class Tokenizer:
    """Turns free text into a flat, ordered list of :class:`Token`.

    Args:
        segmenter: Chinese segmenter; defaults to BiMM over the built-in
            dictionary.
        stemmer: English stemmer.
    """

    def __init__(
        self,
        segmenter: BiMMSegmenter | None = None,
        stemmer: PorterStemmer | None = None,
    ) -> None:
        self._segmenter = segmenter or BiMMSegmenter()
        self._stemmer = stemmer or PorterStemmer()

    def tokenize(self, text: str) -> list[Token]:
        tokens: list[Token] = []
        position = 0
        for match in _VERSION_PATTERN.finditer(text):
            tokens.extend(self._tokenize_plain(text[position : match.start()]))
            version = match.group().lower()
            tokens.append(Token(text=version, stem=version, type=TokenType.CODE))
            position = match.end()
        tokens.extend(self._tokenize_plain(text[position:]))
        return tokens

    def _tokenize_plain(self, text: str) -> list[Token]:
        tokens: list[Token] = []
        for segment in _SEGMENT_PATTERN.findall(text):
            for cjk, run in itertools.groupby(segment, key=is_cjk):
                chunk = "".join(run)
                if cjk:
                    tokens.extend(self._chinese_tokens(chunk))
                else:
                    tokens.extend(self._latin_tokens(chunk))
        return tokens

    def _chinese_tokens(self, chunk: str) -> list[Token]:
        return [
            Token(text=word, stem=word, type=TokenType.CHINESE)
            for word in self._segmenter.segment(chunk)
        ]

    def _latin_tokens(self, chunk: str) -> list[Token]:
        tokens: list[Token] = []
        for part in _LATIN_PART_PATTERN.findall(chunk):
            word = part.lower()
            if word.isdigit():
                tokens.append(Token(text=word, stem=word, type=TokenType.CODE))
                continue
            stem = self._stemmer.stem(word) if len(word) >= _MIN_STEM_LENGTH else word
            tokens.append(Token(text=word, stem=stem, type=TokenType.ENGLISH))
        return tokens


_default_tokenizer: Tokenizer | None = None


def tokenize(text: str) -> list[Token]:
    """Tokenize ``text`` with the default dictionary and stemmer."""
    global _default_tokenizer
    if _default_tokenizer is None:
        _default_tokenizer = Tokenizer()
    return _default_tokenizer.tokenize(text)

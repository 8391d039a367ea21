"""RAKE-style keyword scoring over a token stream."""

from __future__ import annotations

from collections import Counter

from models import Keyword

from .tokenizer import Token

DEFAULT_WINDOW = 3


def is_content_token(token: Token, stop_words: frozenset[str]) -> bool:
    """Content tokens are longer than one character and not stop words.

    Only the surface form is checked: "orders" stems to the SQL keyword
    "order" but still names a table.
    """
    return len(token.text) > 1 and token.text not in stop_words


def score_keywords(
    tokens: list[Token],
    stop_words: frozenset[str],
    window: int = DEFAULT_WINDOW,
) -> list[Keyword]:
    """Score content tokens by co-occurrence degree over frequency.

    Tokens are grouped by ``stem``. For every occurrence, degree grows by
    the number of content tokens within ``window`` positions on either
    side, the occurrence itself included.

    Args:
        tokens: Output of the tokenizer, in query order.
        stop_words: Tokens whose surface form is in this set are dropped.
        window: Co-occurrence half-width.

    Returns:
        One keyword per distinct stem, highest score first. Ties keep
        first-occurrence order.
    """
    content = [t for t in tokens if is_content_token(t, stop_words)]
    if not content:
        return []

    frequency: Counter[str] = Counter()
    degree: Counter[str] = Counter()
    first_seen: dict[str, Token] = {}

    for i, token in enumerate(content):
        lo = max(0, i - window)
        hi = min(len(content), i + window + 1)
        frequency[token.stem] += 1
        degree[token.stem] += hi - lo
        first_seen.setdefault(token.stem, token)

    keywords = [
        Keyword(
            text=token.text,
            stem=stem,
            type=token.type,
            score=degree[stem] / frequency[stem],
        )
        for stem, token in first_seen.items()
    ]
    # sorted() is stable, so equal scores stay in first-occurrence order
    return sorted(keywords, key=lambda k: k.score, reverse=True)

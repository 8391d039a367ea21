"""Dictionary-based Chinese word segmentation (bidirectional maximum matching)."""

from __future__ import annotations

from .lexicon import DEFAULT_CHINESE_DICTIONARY


class BiMMSegmenter:
    """Segments CJK text by comparing forward and backward greedy matches.

    Both passes take the longest dictionary word at the current position,
    falling back to a single character when nothing matches, so every
    input terminates. The pass producing fewer tokens wins.

    Args:
        dictionary: Recognised words. Injected so tests and callers can
            segment against a domain vocabulary.
        prefer_backward_on_tie: Which pass wins when both produce the same
            number of tokens. Backward matching tends to do better on
            Chinese, so it is the default.
    """

    def __init__(
        self,
        dictionary: frozenset[str] = DEFAULT_CHINESE_DICTIONARY,
        prefer_backward_on_tie: bool = True,
    ) -> None:
        self._dictionary = dictionary
        self._max_len = max((len(word) for word in dictionary), default=1)
        self._prefer_backward = prefer_backward_on_tie

    def segment(self, text: str) -> list[str]:
        if not text:
            return []
        forward = self.forward_match(text)
        backward = self.backward_match(text)

        if len(forward) < len(backward):
            return forward
        if len(backward) < len(forward):
            return backward
        return backward if self._prefer_backward else forward

    def forward_match(self, text: str) -> list[str]:
        tokens: list[str] = []
        i = 0
        while i < len(text):
            size = min(self._max_len, len(text) - i)
            while size > 1 and text[i : i + size] not in self._dictionary:
                size -= 1
            tokens.append(text[i : i + size])
            i += size
        return tokens

    def backward_match(self, text: str) -> list[str]:
        tokens: list[str] = []
        end = len(text)
        while end > 0:
            size = min(self._max_len, end)
            while size > 1 and text[end - size : end] not in self._dictionary:
                size -= 1
            tokens.append(text[end - size : end])
            end -= size
        tokens.reverse()
        return tokens

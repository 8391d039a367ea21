"""Porter stemmer.

The five-step suffix-stripping algorithm from M. F. Porter, "An algorithm
for suffix stripping" (1980), without the later departures. Input is
expected to be a lowercase ASCII word.
"""

from __future__ import annotations

_VOWELS = frozenset("aeiou")

_STEP2_RULES: tuple[tuple[str, str], ...] = (
    ("ational", "ate"),
    ("tional", "tion"),
    ("enci", "ence"),
    ("anci", "ance"),
    ("izer", "ize"),
    ("abli", "able"),
    ("alli", "al"),
    ("entli", "ent"),
    ("eli", "e"),
    ("ousli", "ous"),
    ("ization", "ize"),
    ("ation", "ate"),
    ("ator", "ate"),
    ("alism", "al"),
    ("iveness", "ive"),
    ("fulness", "ful"),
    ("ousness", "ous"),
    ("aliti", "al"),
    ("iviti", "ive"),
    ("biliti", "ble"),
)

_STEP3_RULES: tuple[tuple[str, str], ...] = (
    ("icate", "ic"),
    ("ative", ""),
    ("alize", "al"),
    ("iciti", "ic"),
    ("ical", "ic"),
    ("ful", ""),
    ("ness", ""),
)

_STEP4_SUFFIXES: tuple[str, ...] = (
    "al", "ance", "ence", "er", "ic", "able", "ible", "ant", "ement", "ment",
    "ent", "ion", "ou", "ism", "ate", "iti", "ous", "ive", "ize",
)


# Longest suffix first: only the longest match in a step is considered.
_STEP2_ORDERED = sorted(_STEP2_RULES, key=lambda rule: len(rule[0]), reverse=True)
_STEP3_ORDERED = sorted(_STEP3_RULES, key=lambda rule: len(rule[0]), reverse=True)
_STEP4_ORDERED = sorted(_STEP4_SUFFIXES, key=len, reverse=True)


def _is_consonant(word: str, i: int) -> bool:
    char = word[i]
    if char in _VOWELS:
        return False
    if char == "y":
        return i == 0 or not _is_consonant(word, i - 1)
    return True


def measure(stem: str) -> int:
    """Return *m*, the number of VC sequences in ``[C](VC)^m[V]``."""
    m = 0
    previous_vowel = False
    for i in range(len(stem)):
        consonant = _is_consonant(stem, i)
        if consonant and previous_vowel:
            m += 1
        previous_vowel = not consonant
    return m


def contains_vowel(stem: str) -> bool:
    return any(not _is_consonant(stem, i) for i in range(len(stem)))


def ends_double_consonant(word: str) -> bool:
    return len(word) >= 2 and word[-1] == word[-2] and _is_consonant(word, len(word) - 1)


def ends_cvc(word: str) -> bool:
    """True when ``word`` ends consonant-vowel-consonant and the last
    consonant is not w, x or y."""
    if len(word) < 3:
        return False
    return (
        _is_consonant(word, len(word) - 3)
        and not _is_consonant(word, len(word) - 2)
        and _is_consonant(word, len(word) - 1)
        and word[-1] not in "wxy"
    )


class PorterStemmer:
    """Reduces English words to their stem (``running`` → ``run``).

    Words of two characters or fewer are returned unchanged.
    """

    def stem(self, word: str) -> str:
        if len(word) <= 2:
            return word
        word = self._step1a(word)
        word = self._step1b(word)
        word = self._step1c(word)
        word = self._step2(word)
        word = self._step3(word)
        word = self._step4(word)
        word = self._step5a(word)
        return self._step5b(word)

    # ── Step 1: plurals and -ed / -ing ──────────────────────────────────

    def _step1a(self, word: str) -> str:
        if word.endswith("sses"):
            return word[:-2]
        if word.endswith("ies"):
            return word[:-2]
        if word.endswith("ss"):
            return word
        if word.endswith("s"):
            return word[:-1]
        return word

    def _step1b(self, word: str) -> str:
        if word.endswith("eed"):
            return word[:-1] if measure(word[:-3]) > 0 else word

        for suffix in ("ed", "ing"):
            if word.endswith(suffix):
                stem = word[: -len(suffix)]
                if contains_vowel(stem):
                    return self._step1b_cleanup(stem)
                return word
        return word

    def _step1b_cleanup(self, stem: str) -> str:
        if stem.endswith(("at", "bl", "iz")):
            return stem + "e"
        if ends_double_consonant(stem) and stem[-1] not in "lsz":
            return stem[:-1]
        if measure(stem) == 1 and ends_cvc(stem):
            return stem + "e"
        return stem

    def _step1c(self, word: str) -> str:
        if word.endswith("y") and contains_vowel(word[:-1]):
            return word[:-1] + "i"
        return word

    # ── Steps 2-4: derivational suffixes ────────────────────────────────

    def _replace(self, word: str, rules, min_measure: int) -> str:
        for suffix, replacement in rules:
            if word.endswith(suffix):
                stem = word[: -len(suffix)]
                if measure(stem) > min_measure:
                    return stem + replacement
                return word
        return word

    def _step2(self, word: str) -> str:
        return self._replace(word, _STEP2_ORDERED, 0)

    def _step3(self, word: str) -> str:
        return self._replace(word, _STEP3_ORDERED, 0)

    def _step4(self, word: str) -> str:
        for suffix in _STEP4_ORDERED:
            if not word.endswith(suffix):
                continue
            stem = word[: -len(suffix)]
            if suffix == "ion" and not stem.endswith(("s", "t")):
                continue
            return stem if measure(stem) > 1 else word
        return word

    # ── Step 5: tidy up ─────────────────────────────────────────────────

    def _step5a(self, word: str) -> str:
        if word.endswith("e"):
            stem = word[:-1]
            m = measure(stem)
            if m > 1 or (m == 1 and not ends_cvc(stem)):
                return stem
        return word

    def _step5b(self, word: str) -> str:
        if measure(word) > 1 and ends_double_consonant(word) and word.endswith("l"):
            return word[:-1]
        return word

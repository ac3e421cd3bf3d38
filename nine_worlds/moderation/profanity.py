from __future__ import annotations

import re

from nine_worlds.config import PROFANITY_EXTRA_WORDS

BAD_WORDS = {
    # lowercase, single tokens
    "ass",
    "fuck",
    "shit",
    "bitch",
} | PROFANITY_EXTRA_WORDS

# whole-word match; a hit inside a longer word ("class") does not count
_patterns = [
    re.compile(rf"(?i)(?:^|(?<=\W))({re.escape(w)})(?=$|\W)", re.UNICODE)
    for w in sorted(BAD_WORDS)
]


class ProfanityError(ValueError):
    def __init__(self, field: str, word: str):
        super().__init__(f"{field} contains inappropriate language: \"{word}\".")
        self.field = field
        self.word = word


def contains_profanity(text: str) -> str | None:
    t = text or ""
    for pat in _patterns:
        m = pat.search(t)
        if m:
            return m.group(1)
    return None


def ensure_clean(text: str, field: str = "Text") -> None:
    hit = contains_profanity(text)
    if hit:
        raise ProfanityError(field, hit)

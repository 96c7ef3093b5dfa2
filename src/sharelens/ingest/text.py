"""Caller-side text normalisation applied before embedding a query.

Kept separate from the embedding adapter so providers with different input
conventions can be swapped without touching it.
"""

from __future__ import annotations

import re

_URL_RE = re.compile(r"https?://\S+")
_SPECIAL_RE = re.compile(r"[^a-zA-Z0-9\s.,!?-]")
_SPACE_RE = re.compile(r"\s+")

# English stop words (same list family as the common NLTK/stopword sets).
STOPWORDS: frozenset[str] = frozenset(
    """
    a about above after again against all am an and any are as at be because
    been before being below between both but by can could did do does doing
    down during each few for from further had has have having he her here hers
    herself him himself his how i if in into is it its itself just me more most
    my myself no nor not now of off on once only or other our ours ourselves out
    over own same she should so some such than that the their theirs them
    themselves then there these they this those through to too under until up
    very was we were what when where which while who whom why will with would
    you your yours yourself yourselves
    """.split()
)


def clean_text(text: str) -> str:
    """Normalise *text* for embedding.

    Strips URLs and special characters, collapses whitespace, lower-cases,
    and removes English stop words. Returns ``""`` for empty input.
    """
    if not text:
        return ""
    cleaned = _URL_RE.sub("", text)
    cleaned = _SPECIAL_RE.sub(" ", cleaned)
    cleaned = _SPACE_RE.sub(" ", cleaned).lower().strip()
    return " ".join(w for w in cleaned.split(" ") if w and w not in STOPWORDS)

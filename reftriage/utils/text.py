"""Lexical normalization shared by the extractor and the Trigger Table."""

import math
import re

_TOKEN_RE = re.compile(r"[a-z0-9_]+")

STOP_WORDS = frozenset({
    "a", "about", "all", "also", "am", "an", "and", "any", "are", "as", "at",
    "be", "been", "but", "by", "can", "could", "did", "do", "does", "for",
    "from", "get", "had", "has", "have", "how", "i", "if", "in", "into", "is",
    "it", "its", "just", "me", "my", "no", "not", "of", "on", "or", "our",
    "should", "so", "some", "that", "the", "their", "them", "then", "there",
    "these", "this", "those", "to", "use", "using", "was", "we", "were",
    "what", "when", "where", "which", "while", "who", "why", "will", "with",
    "would", "you", "your",
})


def stem(token: str) -> str:
    """Strip a plural ``s``: threads -> thread, but class stays class."""
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def tokenize(text: str) -> list[str]:
    """Lowercased, stemmed tokens with stop words removed, in text order."""
    tokens = []
    for raw in _TOKEN_RE.findall(text.lower()):
        if raw in STOP_WORDS:
            continue
        tokens.append(stem(raw))
    return tokens


def normalize_keyword(keyword: str) -> str | None:
    """
    Normalize a rule keyword the same way query text is normalized.

    Returns None unless the keyword reduces to exactly one token that is
    not a stop word.
    """
    tokens = _TOKEN_RE.findall(keyword.lower())
    if len(tokens) != 1 or tokens[0] in STOP_WORDS:
        return None
    return stem(tokens[0])


def inverse_document_frequency(df: int, n_documents: int) -> float:
    """Smoothed IDF, always positive: 1 + ln((1 + N) / (1 + df))."""
    return 1.0 + math.log((1 + n_documents) / (1 + df))


def normalize_setting_key(key: str) -> str:
    return key.strip().lower()

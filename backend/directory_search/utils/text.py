"""
Tokenization and trigram similarity helpers.

Trigrams follow the PostgreSQL pg_trgm convention: each word is lower-cased
and padded with two spaces in front and one behind before being cut into
three-character windows.
"""
import re

# Letters/digits plus in-word characters so tokens like c++, c#, .net and
# o'brien survive tokenization.
_TOKEN_RE = re.compile(r"[\w+#.][\w+#.'-]*")
_WORD_RE = re.compile(r"[^\W_]+")
_OPERATOR_RE = re.compile(r"[&|!()]")
_SPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Trim, strip query operators, collapse whitespace and case-fold."""
    cleaned = _OPERATOR_RE.sub(" ", text)
    return _SPACE_RE.sub(" ", cleaned).strip().casefold()


def strip_token(text: str) -> str:
    return text.strip(".'-")


def tokenize(text: str) -> list[str]:
    """Split normalized text into de-duplicated tokens, preserving order."""
    seen: dict[str, None] = {}
    for raw in _TOKEN_RE.findall(text.casefold()):
        token = strip_token(raw)
        if token and token not in seen:
            seen[token] = None
    return list(seen)


def words(text: str) -> list[str]:
    return _WORD_RE.findall(text.casefold())


def trigrams(text: str) -> set[str]:
    grams: set[str] = set()
    for word in words(text):
        padded = f"  {word} "
        for i in range(len(padded) - 2):
            grams.add(padded[i:i + 3])
    return grams


def similarity(a: str, b: str) -> float:
    """Symmetric trigram similarity: shared trigrams over all trigrams."""
    ta, tb = trigrams(a), trigrams(b)
    if not ta or not tb:
        return 0.0
    return len(ta & tb) / len(ta | tb)


def token_similarity(token: str, word: str) -> float:
    """
    Share of the token's trigrams found in ``word``.

    Not symmetric: "alexndr" scores 0.5 against "alexander".
    """
    tt = trigrams(token)
    if not tt:
        return 0.0
    return len(tt & trigrams(word)) / len(tt)

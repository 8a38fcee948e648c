"""Text normalization for comparing a target sentence with a transcript."""
from __future__ import annotations

# Stripped from sentences before scoring.
SENTENCE_PUNCTUATION = ".,!?—'\""

# Single-word checks also drop ; and :
WORD_PUNCTUATION = SENTENCE_PUNCTUATION + ";:"


def normalize(text: str, punctuation: str = SENTENCE_PUNCTUATION) -> list[str]:
    """Lowercase, strip punctuation and split on whitespace.

    An apostrophe in `punctuation` is only stripped at the edges of a word so
    contractions survive: "That's a fair point," -> ["that's", "a", "fair", "point"].
    Typographic apostrophes are folded to ASCII first. Empty tokens are dropped.
    """
    strip_edges = "'" in punctuation
    table = str.maketrans("", "", punctuation.replace("'", ""))

    tokens: list[str] = []
    for raw in text.lower().replace("’", "'").split():
        token = raw.translate(table)
        if strip_edges:
            token = token.strip("'")
        if token:
            tokens.append(token)
    return tokens


def normalize_word(word: str, punctuation: str = SENTENCE_PUNCTUATION) -> str:
    """Normalize a single display word; "" when nothing is left."""
    tokens = normalize(word, punctuation)
    return tokens[0] if tokens else ""


def tokenize_sentence(
    sentence: str, punctuation: str = SENTENCE_PUNCTUATION
) -> tuple[list[str], list[str]]:
    """Split a display sentence into (display_words, tokens), index-aligned.

    A display word made only of punctuation (e.g. a lone dash) keeps its slot
    with an empty token. Callers leave empty tokens out of alignment.
    """
    words = sentence.split()
    return words, [normalize_word(w, punctuation) for w in words]

"""Fuzzy word equality used by the aligner."""
from __future__ import annotations

# Words this short only match exactly ("a" vs "i", "on" vs "in").
SHORT_WORD_LEN = 2

# Up to this length one edit is tolerated, above it two.
MEDIUM_WORD_LEN = 6


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit cost substitution, insertion and deletion.

    Keeps a single row sized to the shorter string.
    """
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    row = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        diag, row[0] = row[0], i
        for j, cb in enumerate(b, 1):
            cost = diag if ca == cb else 1 + min(diag, row[j], row[j - 1])
            diag, row[j] = row[j], cost
    return row[len(b)]


def max_edits(a: str, b: str) -> int:
    return 1 if max(len(a), len(b)) <= MEDIUM_WORD_LEN else 2


def similar(a: str, b: str) -> bool:
    """True when two tokens should count as the same spoken word."""
    if a == b:
        return True
    # Contractions heard without the apostrophe ("i'm" vs "im").
    if "'" in a + b and a.replace("'", "") == b.replace("'", ""):
        return True
    if len(a) <= SHORT_WORD_LEN or len(b) <= SHORT_WORD_LEN:
        return False
    budget = max_edits(a, b)
    if abs(len(a) - len(b)) > budget:
        return False
    return levenshtein(a, b) <= budget

"""Order-preserving alignment of a target sentence against a transcript.

Longest common subsequence over tokens, where "common" means `similar()`
rather than strict equality. A global alignment recovers from a missed or
inserted word anywhere in the utterance; matching left to right with a
lookahead window does not, and one early miss desynchronizes every verdict
after it.
"""
from __future__ import annotations

from collections.abc import Callable, Sequence

from mimic_trainer.similarity import similar

Predicate = Callable[[str, str], bool]


def lcs_table(
    target: Sequence[str], spoken: Sequence[str], match: Predicate = similar
) -> tuple[list[list[int]], list[list[bool]]]:
    """Fill the (N+1) x (M+1) LCS length table.

    Also returns the N x M grid of predicate results so backtracking does not
    evaluate the predicate a second time.
    """
    n, m = len(target), len(spoken)
    dp = [[0] * (m + 1) for _ in range(n + 1)]
    hits = [[False] * m for _ in range(n)]
    for i in range(1, n + 1):
        t = target[i - 1]
        prev, cur, hit_row = dp[i - 1], dp[i], hits[i - 1]
        for j in range(1, m + 1):
            if match(t, spoken[j - 1]):
                hit_row[j - 1] = True
                cur[j] = prev[j - 1] + 1
            else:
                cur[j] = max(prev[j], cur[j - 1])
    return dp, hits


def align_pairs(
    target: Sequence[str], spoken: Sequence[str], match: Predicate = similar
) -> list[tuple[int, int]]:
    """Matched (target_index, spoken_index) pairs, both strictly increasing.

    Backtracks from the bottom-right cell. When skipping either token keeps
    the same LCS length, the target token is skipped (left unspoken); this
    picks one of several equally long alignments deterministically.
    """
    if not target or not spoken:
        return []
    dp, hits = lcs_table(target, spoken, match)

    pairs: list[tuple[int, int]] = []
    i, j = len(target), len(spoken)
    while i > 0 and j > 0:
        if hits[i - 1][j - 1]:
            pairs.append((i - 1, j - 1))
            i -= 1
            j -= 1
        elif dp[i - 1][j] >= dp[i][j - 1]:
            i -= 1
        else:
            j -= 1
    pairs.reverse()
    return pairs


def align(
    target: Sequence[str], spoken: Sequence[str], match: Predicate = similar
) -> set[int]:
    """Indices of `target` considered spoken. Never raises; empty input gives an empty set."""
    return {ti for ti, _ in align_pairs(target, spoken, match)}

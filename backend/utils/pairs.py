"""Canonical ordering for symmetric user pairs."""

from itertools import combinations


def canonical_pair(a: int, b: int) -> tuple[int, int]:
    """Return (lo, hi) so a pair has one storage key regardless of argument order."""
    return (a, b) if a < b else (b, a)


def unique_pairs(user_ids) -> list[tuple[int, int]]:
    """All distinct canonical pairs among the given users, in first-seen order."""
    seen = []
    for user_id in user_ids:
        if user_id not in seen:
            seen.append(user_id)

    pairs = []
    for a, b in combinations(seen, 2):
        pair = canonical_pair(a, b)
        if pair not in pairs:
            pairs.append(pair)
    return pairs


def signed_for(user_id: int, user1_id: int, amount: float) -> float:
    """Flip a stored pair amount so that positive means the other user owes user_id."""
    return amount if user_id == user1_id else -amount

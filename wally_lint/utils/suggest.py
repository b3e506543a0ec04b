"""Pick the value the user most likely meant."""

from __future__ import annotations


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def distance(a: str, b: str) -> float:
    """Edit distance normalized by the longer string, clamped to [0, 1]."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 0.0
    return max(0.0, min(levenshtein(a, b) / longest, 1.0))


def closest(value: str, options: list[str], fallback: str) -> str:
    """Return the option closest to ``value``.

    Options whose first characters agree with what has been typed so far win
    over pure edit distance, in iteration order. Empty input, or no options
    at all, gives back ``fallback``.
    """
    if not value or not options:
        return fallback

    lowered = value.lower()
    for option in options:
        shared = min(len(lowered), len(option))
        if lowered[:shared] == option[:shared].lower():
            return option

    # sorted() is stable, so equally distant options keep their order
    return sorted(options, key=lambda option: levenshtein(option, value))[0]

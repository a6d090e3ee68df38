"""Pick the one primary file of a subject, or refuse to guess.

Candidates whose name contains any excluded substring (e.g. ``PSIR``
reconstructions next to a T1w) are dropped first. Exactly one survivor is
selected; none or several are reported and left alone.
"""

from __future__ import annotations

from typing import Iterable

from .types import Selection


def select_primary(
    candidates: Iterable[str],
    exclude_patterns: Iterable[str] = (),
) -> Selection:
    """Return the single candidate left after applying *exclude_patterns*.

    Args:
        candidates: File names to choose from.
        exclude_patterns: Substrings that disqualify a candidate.

    Returns:
        Selection: ``selected`` with the name, ``none_found`` or ``ambiguous``.
    """
    patterns = [p for p in exclude_patterns if p]
    remaining = tuple(
        sorted(c for c in set(candidates) if not any(p in c for p in patterns))
    )
    if not remaining:
        return Selection(kind="none_found")
    if len(remaining) > 1:
        return Selection(kind="ambiguous", remaining=remaining)
    return Selection(kind="selected", name=remaining[0], remaining=remaining)


__all__ = ["select_primary"]

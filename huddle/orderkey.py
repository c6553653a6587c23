from __future__ import annotations

from typing import Optional, Sequence

from .models import Card

DEFAULT_KEY = 0.0
STEP = 1.0


def between(before: Optional[Card], after: Optional[Card]) -> float:
    """Return an order key strictly between ``before`` and ``after``.

    Either neighbour may be ``None`` to indicate unbounded on that side.
    Inserting at the head steps one below ``after``; inserting at the tail
    steps one above ``before``. Repeated midpoints against the same
    neighbour converge geometrically, which is what the renormalizer
    watches for.
    """
    if before is None and after is None:
        return DEFAULT_KEY
    if before is None:
        return after.order - STEP
    if after is None:
        return before.order + STEP
    return before.order + (after.order - before.order) / 2


def head_key(view: Sequence[Card]) -> float:
    return between(None, view[0] if view else None)


def tail_key(view: Sequence[Card]) -> float:
    return between(view[-1] if view else None, None)

"""
Order-key maintenance.

Midpoint insertions against the same neighbour halve the gap every time, so
after enough drags two keys become indistinguishable floats. The
renormalizer spots that (and a few related shapes) and rewrites a column's
keys to evenly spaced multiples of ``SPACING``.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Sequence

from . import column_index
from .models import Card, Lane

logger = logging.getLogger(__name__)

SPACING = 10_000.0
MAX_GAP = 100_000.0
# Gaps this small are a collision in waiting; floats run out of room
# about fifty halvings after a renormalization.
MIN_GAP = 1e-6


def is_degraded(view: Sequence[Card]) -> bool:
    """True when ``view`` (already sorted) needs fresh keys.

    A column is degraded if its first key is not positive, if two
    neighbours are closer than ``MIN_GAP`` (or out of order), or if a gap
    exceeds ``MAX_GAP``.
    """
    if not view:
        return False
    if view[0].order <= 0:
        return True
    for left, right in zip(view, view[1:]):
        gap = right.order - left.order
        if gap < MIN_GAP or gap > MAX_GAP:
            return True
    return False


def renormalize(view: Sequence[Card]) -> List[Card]:
    """Return copies of ``view`` keyed ``SPACING, 2 * SPACING, ...``."""
    return [replace(card, order=(i + 1) * SPACING) for i, card in enumerate(view)]


def renormalize_column(cards: Sequence[Card], column: Lane) -> List[Card]:
    """Renormalize one column of a full card list if it is degraded.

    Cards outside the column, and archived cards, come back untouched and
    in their original positions.
    """
    current = column_index.view(cards, column)
    if not is_degraded(current):
        return list(cards)
    logger.info("renormalizing %s (%d cards)", column.value, len(current))
    fresh = {c.id: c for c in renormalize(current)}
    return [fresh.get(c.id, c) for c in cards]

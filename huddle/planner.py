"""
Drag-and-drop planning.

The rendering layer resolves pointer geometry to an *anchor*: ``"head"``,
``"tail"`` or the id of the card the dragged card should land in front of.
The planner turns (card, destination column, anchor) into a single ``Move``
describing the card's new column and order key, or ``None`` when the drop
would leave the card where it already is.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from . import column_index
from .errors import CardNotFound
from .models import Card, Lane, now_ms
from .orderkey import between

logger = logging.getLogger(__name__)

HEAD = "head"
TAIL = "tail"


@dataclass(frozen=True)
class Move:
    card_id: str
    column: Lane
    order: float
    moved_at: int

    def apply(self, cards: Sequence[Card]) -> List[Card]:
        return [
            replace(c, column=self.column, order=self.order, last_moved_time=self.moved_at)
            if c.id == self.card_id
            else c
            for c in cards
        ]


def _anchor_index(view: Sequence[Card], anchor: str) -> int:
    if anchor == HEAD:
        return 0
    if anchor == TAIL:
        return len(view)
    for i, card in enumerate(view):
        if card.id == anchor:
            return i
    # stale anchor, e.g. the card was archived by someone else mid-drag
    logger.debug("anchor %r not in column, inserting at tail", anchor)
    return len(view)


def neighbours(view: Sequence[Card], anchor: str) -> Tuple[Optional[Card], Optional[Card]]:
    """Resolve ``anchor`` to the ``(before, after)`` pair it sits between."""
    index = _anchor_index(view, anchor)
    before = view[index - 1] if index > 0 else None
    after = view[index] if index < len(view) else None
    return before, after


def plan_move(
    cards: Sequence[Card],
    card_id: str,
    destination: Lane,
    anchor: str = TAIL,
    now: Optional[int] = None,
) -> Optional[Move]:
    card = next((c for c in cards if c.id == card_id), None)
    # archived cards are off the board; they can be edited but not dragged
    if card is None or card.is_archived:
        raise CardNotFound(card_id)
    if anchor == card_id:
        return None

    target = [c for c in column_index.view(cards, destination) if c.id != card_id]
    index = _anchor_index(target, anchor)

    if card.column == destination:
        current = column_index.view(cards, destination)
        if [c.id for c in current].index(card.id) == index:
            return None

    before = target[index - 1] if index > 0 else None
    after = target[index] if index < len(target) else None
    return Move(
        card_id=card.id,
        column=destination,
        order=between(before, after),
        moved_at=now if now is not None else now_ms(),
    )


def plan_insert(cards: Sequence[Card], column: Lane, anchor: str = TAIL) -> float:
    """Order key for a brand new card placed at ``anchor`` in ``column``."""
    before, after = neighbours(column_index.view(cards, column), anchor)
    return between(before, after)

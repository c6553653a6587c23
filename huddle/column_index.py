from __future__ import annotations

from typing import Dict, Iterable, List

from .models import Card, Lane


def view(cards: Iterable[Card], column: Lane) -> List[Card]:
    """Non-archived cards of ``column`` in ascending order.

    ``sorted`` is stable, so cards sharing an order key keep the order they
    had in ``cards`` and the rendering does not jitter between calls.
    """
    return sorted(
        (c for c in cards if c.column == column and not c.is_archived),
        key=lambda c: c.order,
    )


def views(cards: Iterable[Card]) -> Dict[Lane, List[Card]]:
    cards = list(cards)
    return {lane: view(cards, lane) for lane in Lane}

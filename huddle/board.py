from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from .errors import CardNotFound, InvalidTitle
from .identity import Editor
from .models import CalendarEvent, Card, Lane, now_ms
from .planner import HEAD, TAIL, Move, plan_insert, plan_move
from .reconcile import ReconciliationStore
from .renormalize import renormalize_column

logger = logging.getLogger(__name__)


def _clean_title(title: str) -> str:
    title = (title or "").strip()
    if not title:
        raise InvalidTitle("title must not be blank")
    return title


class BoardService:
    """Card operations offered to the rendering layer.

    Every method takes the acting ``Editor`` and goes through
    ``ReconciliationStore.mutate``, so a failed write surfaces as
    ``PersistenceError`` and leaves the board as it was.
    """

    def __init__(self, cards: ReconciliationStore) -> None:
        self.cards = cards

    async def _edit(self, card_id: str, editor: Editor, change: Callable[[Card], Dict[str, Any]]) -> Card:
        """Stamp ``editor`` on ``card_id`` and apply ``change(card)`` to it.

        ``change`` runs inside ``mutate`` against the card as it is once the
        lock is held, so concurrent edits build on each other.
        """
        self.cards.get(card_id)
        now = now_ms()

        def update(cards: List[Card]) -> List[Card]:
            return [
                replace(c, last_edited_by=editor.name, last_edited_time=now, **change(c))
                if c.id == card_id
                else c
                for c in cards
            ]

        return self._find(await self.cards.mutate(update), card_id)

    @staticmethod
    def _find(cards: List[Card], card_id: str) -> Card:
        for card in cards:
            if card.id == card_id:
                return card
        raise CardNotFound(card_id)

    async def _insert(self, editor: Editor, title: str, column: Lane, anchor: str) -> Card:
        title = _clean_title(title)
        card_id = str(uuid.uuid4())
        now = now_ms()

        def add(cards: List[Card]) -> List[Card]:
            cards = renormalize_column(cards, column)
            card = Card(
                id=card_id,
                title=title,
                column=column,
                order=plan_insert(cards, column, anchor),
                created_by=editor.name,
                created_at=now,
                last_edited_by=editor.name,
                last_edited_time=now,
                last_moved_time=now,
            )
            return cards + [card]

        return self._find(await self.cards.mutate(add), card_id)

    async def create_card(self, editor: Editor, column: Lane, title: str) -> Card:
        return await self._insert(editor, title, column, TAIL)

    async def rename_card(self, editor: Editor, card_id: str, title: str) -> Card:
        title = _clean_title(title)
        return await self._edit(card_id, editor, lambda c: {"title": title})

    async def toggle_completed(self, editor: Editor, card_id: str) -> Card:
        return await self._edit(card_id, editor, lambda c: {"completed": not c.completed})

    async def archive_card(self, editor: Editor, card_id: str) -> Card:
        now = now_ms()
        return await self._edit(card_id, editor, lambda c: {"is_archived": True, "last_moved_time": now})

    async def move_card(self, editor: Editor, card_id: str, column: Lane, anchor: str = TAIL) -> Optional[Card]:
        """Drop ``card_id`` into ``column`` in front of ``anchor``.

        Returns ``None`` without writing anything when the drop leaves the
        card where it is.
        """
        move = plan_move(renormalize_column(self.cards.cards(), column), card_id, column, anchor)
        if move is None:
            logger.debug("drop of %s is a no-op", card_id)
            return None
        logger.info("%s moves %s to %s", editor.name, card_id, column.value)

        def apply(cards: List[Card]) -> List[Card]:
            # Re-plan against whatever the board holds once the lock is ours.
            # Tied keys leave no room between neighbours, so space them first.
            spaced = renormalize_column(cards, column)
            latest: Optional[Move] = plan_move(spaced, card_id, column, anchor, now=move.moved_at)
            return latest.apply(spaced) if latest is not None else cards

        return self._find(await self.cards.mutate(apply), card_id)

    async def promote_event(self, editor: Editor, event: CalendarEvent) -> Card:
        """Copy a calendar event onto the top of the backlog."""
        return await self._insert(editor, event.title, Lane.BACKLOG, HEAD)

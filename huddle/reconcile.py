"""
The authoritative in-memory card set for one session.

Remote snapshots replace local state wholesale (last snapshot wins). Local
changes go through ``mutate``: the updater runs on a copy, touched columns
are renormalized, the whole resulting set is persisted in one batch, and
only then does local state advance. A failed write leaves local state as it
was and raises ``PersistenceError``; there is no automatic retry.

Snapshot bursts are coalesced: the first snapshot of a burst arms a timer
of ``debounce`` seconds and only the newest snapshot seen before it fires is
applied. Snapshots older than the last applied revision are dropped.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from . import column_index
from .errors import CardNotFound, PersistenceError
from .models import Card, Lane, now_ms
from .renormalize import SPACING, renormalize_column
from .storage import DocumentStore, Snapshot

logger = logging.getLogger(__name__)

Updater = Callable[[List[Card]], Sequence[Card]]

SEED_AUTHOR = "Huddle"

# (id, title, column), in display order within each column
DEFAULT_CARDS = (
    ("seed-01", "Look into render bug in dashboard", Lane.BACKLOG),
    ("seed-02", "SOX compliance checklist", Lane.BACKLOG),
    ("seed-03", "[SPIKE] Migrate to Azure", Lane.BACKLOG),
    ("seed-04", "Document Notifications service", Lane.BACKLOG),
    ("seed-05", "Research DB options for new microservice", Lane.TODO),
    ("seed-06", "Postmortem for outage", Lane.TODO),
    ("seed-07", "Sync with product on Q3 roadmap", Lane.TODO),
    ("seed-08", "Refactor context providers to use Zustand", Lane.DOING),
    ("seed-09", "Add logging to daily CRON", Lane.DOING),
    ("seed-10", "Set up DD dashboards for Lambda listener", Lane.DONE),
)


def default_cards(now: int) -> List[Card]:
    """The fixed dataset written to an empty board."""
    cards = []
    position: Dict[Lane, int] = {}
    for card_id, title, lane in DEFAULT_CARDS:
        position[lane] = position.get(lane, 0) + 1
        cards.append(
            Card(
                id=card_id,
                title=title,
                column=lane,
                order=position[lane] * SPACING,
                created_by=SEED_AUTHOR,
                created_at=now,
                last_edited_by=SEED_AUTHOR,
                last_edited_time=now,
                last_moved_time=now,
            )
        )
    return cards


def touched_columns(before: Sequence[Card], after: Sequence[Card]) -> List[Lane]:
    """Columns a card entered, left or changed in between two card sets."""
    previous = {c.id: c for c in before}
    touched = set()
    for card in after:
        old = previous.pop(card.id, None)
        if old is None:
            touched.add(card.column)
        elif old != card:
            touched.add(card.column)
            touched.add(old.column)
    touched.update(c.column for c in previous.values())
    return [lane for lane in Lane if lane in touched]


class SyncState(str, Enum):
    UNINITIALIZED = "uninitialized"
    SYNCED = "synced"


class ReconciliationStore:
    def __init__(
        self,
        store: DocumentStore[Card],
        debounce: float = 0.1,
        seed: bool = True,
    ) -> None:
        self.store = store
        self.debounce = debounce
        self.seed = seed
        self.state = SyncState.UNINITIALIZED
        self.revision = -1
        self._cards: List[Card] = []
        self._pending: Optional[Snapshot] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._seed_task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._synced = asyncio.Event()

    # === Subscription ===

    async def start(self) -> None:
        logger.info("subscribing to card store")
        self._unsubscribe = await self.store.subscribe(self._on_snapshot)

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            logger.info("unsubscribed from card store")
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None
        if self._seed_task is not None and not self._seed_task.done():
            self._seed_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._seed_task

    async def wait_synced(self, timeout: Optional[float] = None) -> None:
        """Block until the first snapshot is applied and any seeding is done."""
        await asyncio.wait_for(self._synced.wait(), timeout)
        if self._seed_task is not None:
            await self._seed_task

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        if self._pending is None or snapshot.revision >= self._pending.revision:
            self._pending = snapshot
        if self._timer is None:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self.debounce, self._flush)

    def _flush(self) -> None:
        self._timer = None
        snapshot, self._pending = self._pending, None
        if snapshot is not None:
            self.apply_snapshot(snapshot)

    def apply_snapshot(self, snapshot: Snapshot) -> bool:
        """Replace local state with ``snapshot`` unless it is stale."""
        if snapshot.revision < self.revision:
            logger.debug("dropping stale snapshot r%d (at r%d)", snapshot.revision, self.revision)
            return False
        first = self.state is SyncState.UNINITIALIZED
        self._cards = list(snapshot.items)
        self.revision = snapshot.revision
        self.state = SyncState.SYNCED
        self._synced.set()
        logger.debug("applied snapshot r%d with %d cards", snapshot.revision, len(self._cards))
        if first and not self._cards and self.seed:
            self._seed_task = asyncio.get_running_loop().create_task(self._seed())
        return True

    async def _seed(self) -> None:
        def populate(cards: List[Card]) -> List[Card]:
            # someone else got there first
            if cards:
                return cards
            return default_cards(now_ms())

        logger.info("card collection is empty, seeding %d default cards", len(DEFAULT_CARDS))
        try:
            await self.mutate(populate)
        except PersistenceError:
            logger.warning("seeding the board failed", exc_info=True)

    # === Reads ===

    def cards(self) -> List[Card]:
        """Every card held locally, archived ones included."""
        return list(self._cards)

    def get(self, card_id: str) -> Card:
        for card in self._cards:
            if card.id == card_id:
                return card
        raise CardNotFound(card_id)

    def board(self) -> Dict[Lane, List[Card]]:
        return column_index.views(self._cards)

    # === Writes ===

    async def mutate(self, updater: Updater) -> List[Card]:
        """Apply ``updater``, persist the resulting set and adopt it locally.

        Returns the card set now held locally. Raises ``PersistenceError``
        if the store rejects the batch.
        """
        async with self._lock:
            current = list(self._cards)
            result = list(updater(list(current)))
            for column in touched_columns(current, result):
                result = renormalize_column(result, column)
            if result == current:
                return current
            try:
                await self.store.persist_all(result)
            except PersistenceError:
                logger.warning("persisting %d cards failed, keeping local state", len(result))
                raise
            self._cards = result
            return list(result)

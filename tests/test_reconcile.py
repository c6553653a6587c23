"""
Tests for ReconciliationStore: seeding, snapshot intake and mutate().
"""
import asyncio
from dataclasses import replace

import pytest

from huddle.errors import CardNotFound, PersistenceError
from huddle.models import Card, Lane
from huddle.planner import plan_move
from huddle.reconcile import DEFAULT_CARDS, ReconciliationStore, SyncState, touched_columns
from huddle.storage import MemoryStore, Snapshot


def doc(card_id, order, column="todo", **extra):
    return {"id": card_id, "title": card_id.upper(), "column": column, "order": order, **extra}


async def started(store, **kwargs):
    kwargs.setdefault("debounce", 0)
    kwargs.setdefault("seed", False)
    cards = ReconciliationStore(store, **kwargs)
    await cards.start()
    await cards.wait_synced(timeout=1)
    return cards


async def settle():
    await asyncio.sleep(0.02)


def view_ids(cards, lane=Lane.TODO):
    return [c.id for c in cards.board()[lane]]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Seeding
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_empty_store_is_seeded_once():
    async def scenario():
        store = MemoryStore(Card)
        cards = await started(store, seed=True)
        await settle()
        await cards.stop()
        return store, cards

    store, cards = asyncio.run(scenario())
    assert cards.state is SyncState.SYNCED
    assert store.writes == 1
    assert sorted(store.documents) == sorted(card_id for card_id, _, _ in DEFAULT_CARDS)
    assert len(cards.cards()) == len(DEFAULT_CARDS)
    assert view_ids(cards, Lane.BACKLOG) == ["seed-01", "seed-02", "seed-03", "seed-04"]


def test_non_empty_store_is_not_seeded():
    async def scenario():
        store = MemoryStore(Card)
        store.put_raw(doc("a", 10000))
        cards = await started(store, seed=True)
        await cards.stop()
        return store, cards

    store, cards = asyncio.run(scenario())
    assert store.writes == 0
    assert [c.id for c in cards.cards()] == ["a"]


def test_seeding_can_be_disabled():
    async def scenario():
        store = MemoryStore(Card)
        cards = await started(store, seed=False)
        await cards.stop()
        return store, cards

    store, cards = asyncio.run(scenario())
    assert store.writes == 0
    assert cards.cards() == []
    assert cards.state is SyncState.SYNCED


def test_failed_seed_leaves_board_empty():
    async def scenario():
        store = MemoryStore(Card)
        store.fail_next()
        cards = await started(store, seed=True)
        await cards.stop()
        return store, cards

    store, cards = asyncio.run(scenario())
    assert store.documents == {}
    assert cards.cards() == []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Snapshots
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_remote_snapshot_replaces_local_state():
    async def scenario():
        store = MemoryStore(Card)
        store.put_raw(doc("a", 10000), doc("b", 20000))
        cards = await started(store)
        store.put_raw(doc("a", 30000, title="renamed elsewhere"))
        await settle()
        await cards.stop()
        return cards

    cards = asyncio.run(scenario())
    assert cards.get("a").title == "renamed elsewhere"
    assert view_ids(cards) == ["b", "a"]


def test_malformed_document_gets_defaults():
    async def scenario():
        store = MemoryStore(Card)
        store.put_raw({"id": "bare", "title": "no order, no flags", "column": "todo"})
        cards = await started(store)
        await cards.stop()
        return cards

    cards = asyncio.run(scenario())
    card = cards.get("bare")
    assert card.order == 0
    assert card.completed is False
    assert card.is_archived is False
    assert view_ids(cards) == ["bare"]


def test_burst_of_snapshots_is_applied_once():
    async def scenario():
        store = MemoryStore(Card)
        store.put_raw(doc("a", 10000))
        cards = await started(store, debounce=0.05)

        applied = []
        apply = cards.apply_snapshot
        cards.apply_snapshot = lambda snapshot: applied.append(snapshot.revision) or apply(snapshot)

        store.put_raw(doc("a", 10000, title="one"))
        store.put_raw(doc("a", 10000, title="two"))
        store.put_raw(doc("a", 10000, title="three"))
        await asyncio.sleep(0.2)
        await cards.stop()
        return store, cards, applied

    store, cards, applied = asyncio.run(scenario())
    assert applied == [store.revision]
    assert cards.get("a").title == "three"


def test_late_snapshot_inside_window_does_not_win():
    newer = Snapshot((Card(id="a", title="newer", column=Lane.TODO, order=1),), 10)
    older = Snapshot((Card(id="a", title="older", column=Lane.TODO, order=1),), 9)

    async def scenario():
        store = MemoryStore(Card)
        cards = await started(store)
        cards._on_snapshot(newer)
        cards._on_snapshot(older)
        await settle()
        await cards.stop()
        return cards

    cards = asyncio.run(scenario())
    assert cards.get("a").title == "newer"
    assert cards.revision == 10


def test_stale_snapshot_is_dropped():
    cards = ReconciliationStore(MemoryStore(Card), seed=False)
    card = Card(id="a", title="A", column=Lane.TODO, order=1)

    assert cards.apply_snapshot(Snapshot((card,), 5))
    assert not cards.apply_snapshot(Snapshot((), 3))
    assert cards.cards() == [card]
    assert cards.revision == 5


def test_stop_unsubscribes():
    async def scenario():
        store = MemoryStore(Card)
        store.put_raw(doc("a", 10000))
        cards = await started(store)
        await cards.stop()
        store.put_raw(doc("b", 20000))
        await settle()
        return cards

    cards = asyncio.run(scenario())
    assert [c.id for c in cards.cards()] == ["a"]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# mutate()
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def rename(card_id, title):
    return lambda cards: [replace(c, title=title) if c.id == card_id else c for c in cards]


def test_mutate_persists_whole_set_then_advances():
    async def scenario():
        store = MemoryStore(Card)
        store.put_raw(doc("a", 10000), doc("b", 20000), doc("c", 10000, column="done"))
        cards = await started(store)
        store.documents["c"]["title"] = "changed without a snapshot"
        result = await cards.mutate(rename("a", "new"))
        await cards.stop()
        return store, cards, result

    store, cards, result = asyncio.run(scenario())
    assert store.writes == 1
    assert store.documents["a"]["title"] == "new"
    # the whole local set is written back, untouched cards included
    assert store.documents["c"]["title"] == "C"
    assert cards.get("a").title == "new"
    assert [c.id for c in result] == ["a", "b", "c"]


def test_mutate_failure_leaves_local_state():
    async def scenario():
        store = MemoryStore(Card)
        store.put_raw(doc("a", 10000))
        cards = await started(store)
        store.fail_next()
        with pytest.raises(PersistenceError):
            await cards.mutate(rename("a", "lost"))
        return store, cards

    store, cards = asyncio.run(scenario())
    assert cards.get("a").title == "A"
    assert store.documents["a"]["title"] == "A"
    assert store.writes == 0


def test_mutate_without_changes_writes_nothing():
    async def scenario():
        store = MemoryStore(Card)
        store.put_raw(doc("a", 10000))
        cards = await started(store)
        await cards.mutate(lambda cs: cs)
        return store

    assert asyncio.run(scenario()).writes == 0


def test_mutate_renormalizes_touched_columns_only():
    async def scenario():
        store = MemoryStore(Card)
        store.put_raw(
            doc("a", 0), doc("b", 1), doc("c", 2),
            doc("x", 1, column="done"), doc("y", 1, column="done"),
        )
        cards = await started(store)
        await cards.mutate(rename("b", "B!"))
        return cards

    cards = asyncio.run(scenario())
    assert [c.order for c in cards.board()[Lane.TODO]] == [10000, 20000, 30000]
    assert [c.order for c in cards.board()[Lane.DONE]] == [1, 1]


def test_move_before_head_through_store():
    async def scenario():
        store = MemoryStore(Card)
        store.put_raw(doc("a", 0), doc("b", 1), doc("c", 2))
        cards = await started(store)
        move = plan_move(cards.cards(), "c", Lane.TODO, "a")
        assert move.order == -1
        await cards.mutate(move.apply)
        return cards

    cards = asyncio.run(scenario())
    view = cards.board()[Lane.TODO]
    assert [c.id for c in view] == ["c", "a", "b"]
    assert [c.order for c in view] == [10000, 20000, 30000]


def test_archived_card_stays_editable():
    async def scenario():
        store = MemoryStore(Card)
        store.put_raw(doc("a", 10000), doc("b", 20000))
        cards = await started(store)
        await cards.mutate(lambda cs: [replace(c, is_archived=True) if c.id == "a" else c for c in cs])
        hidden = all("a" not in [c.id for c in view] for view in cards.board().values())
        await cards.mutate(rename("a", "still here"))
        return store, cards, hidden

    store, cards, hidden = asyncio.run(scenario())
    assert hidden
    assert cards.get("a").title == "still here"
    assert store.documents["a"]["isArchived"] is True


def test_get_unknown_card():
    with pytest.raises(CardNotFound):
        ReconciliationStore(MemoryStore(Card)).get("nope")


def test_touched_columns(make_card):
    a, b, c = make_card("a", 1), make_card("b", 2), make_card("c", 1, column=Lane.DONE)
    assert touched_columns([a, b, c], [a, b, c]) == []
    assert touched_columns([a, b, c], [a, replace(b, title="x"), c]) == [Lane.TODO]
    assert touched_columns([a, b, c], [a, replace(b, column=Lane.DOING), c]) == [Lane.TODO, Lane.DOING]
    assert touched_columns([a, b], [a, b, c]) == [Lane.DONE]
    assert touched_columns([a, b, c], [a, c]) == [Lane.TODO]

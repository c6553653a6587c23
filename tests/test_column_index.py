from huddle import column_index
from huddle.models import Card, Lane


def test_view_filters_column_and_archived(make_card):
    cards = [
        make_card("a", 2),
        make_card("b", 1),
        make_card("c", 0, column=Lane.DONE),
        make_card("d", 3, is_archived=True),
    ]
    assert [c.id for c in column_index.view(cards, Lane.TODO)] == ["b", "a"]
    assert [c.id for c in column_index.view(cards, Lane.DONE)] == ["c"]


def test_view_ties_keep_input_order(make_card):
    x, y = make_card("x", 1), make_card("y", 1)
    assert [c.id for c in column_index.view([x, y], Lane.TODO)] == ["x", "y"]
    assert [c.id for c in column_index.view([y, x], Lane.TODO)] == ["y", "x"]


def test_view_does_not_touch_input(make_card):
    cards = [make_card("a", 2), make_card("b", 1)]
    column_index.view(cards, Lane.TODO)
    assert [c.id for c in cards] == ["a", "b"]


def test_missing_archived_flag_counts_as_live():
    card = Card.from_document({"id": "n", "title": "no flag", "column": "todo", "order": 1})
    assert [c.id for c in column_index.view([card], Lane.TODO)] == ["n"]


def test_views_cover_every_lane(make_card):
    board = column_index.views([make_card("a", 1)])
    assert list(board) == [Lane.BACKLOG, Lane.TODO, Lane.DOING, Lane.DONE]
    assert [c.id for c in board[Lane.TODO]] == ["a"]
    assert board[Lane.BACKLOG] == []

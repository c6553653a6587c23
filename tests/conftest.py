import pytest

from huddle.models import Card, Lane


@pytest.fixture
def make_card():
    def factory(card_id, order=0.0, column=Lane.TODO, **fields):
        return Card(id=card_id, title=fields.pop("title", card_id.upper()), column=column, order=order, **fields)

    return factory

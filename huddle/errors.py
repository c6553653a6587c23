class HuddleError(Exception):
    """Base class for board errors."""

    code = "error"


class PersistenceError(HuddleError):
    """The card or event store rejected a write. Nothing was applied locally."""

    code = "persistence_failed"


class CardNotFound(HuddleError):
    code = "card_not_found"

    def __init__(self, card_id: str) -> None:
        super().__init__(f"card {card_id!r} not found")
        self.card_id = card_id


class EventNotFound(HuddleError):
    code = "event_not_found"

    def __init__(self, event_id: str) -> None:
        super().__init__(f"event {event_id!r} not found")
        self.event_id = event_id


class MissingEditorName(HuddleError):
    code = "editor_name_required"


class InvalidTitle(HuddleError):
    code = "invalid_title"

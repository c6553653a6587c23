from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse
import uvicorn

from . import __version__
from .board import BoardService
from .config import Settings, configure_logging
from .db import make_session_factory
from .errors import (
    CardNotFound,
    EventNotFound,
    HuddleError,
    InvalidTitle,
    MissingEditorName,
    PersistenceError,
)
from .identity import Editor, get_editor
from .models import (
    BoardOut,
    CalendarEvent,
    Card,
    CardCreate,
    CardMove,
    CardOut,
    CardUpdate,
    DayOut,
    EventIn,
    EventOut,
    LaneOut,
    MonthOut,
)
from .reconcile import ReconciliationStore
from .schedule import EventBook, month_grid
from .storage import card_store, event_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")

ERROR_STATUS = {
    PersistenceError: 503,
    CardNotFound: 404,
    EventNotFound: 404,
    MissingEditorName: 401,
    InvalidTitle: 422,
}


# === Helpers ===


def card_out(card: Card) -> CardOut:
    return CardOut(
        id=card.id,
        title=card.title,
        column=card.column,
        order=card.order,
        completed=card.completed,
        createdBy=card.created_by,
        createdAt=card.created_at,
        lastEditedBy=card.last_edited_by,
        lastEditedTime=card.last_edited_time,
        lastMovedTime=card.last_moved_time,
        isArchived=card.is_archived,
    )


def event_out(event: CalendarEvent) -> EventOut:
    return EventOut(**event.to_document())


def get_board(request: Request) -> BoardService:
    return request.app.state.board


def get_events(request: Request) -> EventBook:
    return request.app.state.events


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    session_factory = make_session_factory(settings.database_url) if settings.store == "sql" else None
    cards = ReconciliationStore(
        card_store(session_factory),
        debounce=settings.debounce_ms / 1000,
        seed=settings.seed,
    )
    app.state.cards = cards
    app.state.board = BoardService(cards)
    app.state.events = EventBook(event_store(session_factory))
    await cards.start()
    await cards.wait_synced()
    logger.info("board ready (%s store)", settings.store)
    try:
        yield
    finally:
        await cards.stop()


async def huddle_error(request: Request, exc: HuddleError) -> JSONResponse:
    return JSONResponse(status_code=ERROR_STATUS.get(type(exc), 400), content={"detail": exc.code})


# === Health & metadata ===


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/version")
def version() -> dict:
    return {"version": __version__}


# === Board ===


@router.get("/board", response_model=BoardOut)
def read_board(request: Request):
    cards: ReconciliationStore = request.app.state.cards
    lanes = [
        LaneOut(column=lane, title=lane.heading, cards=[card_out(c) for c in view])
        for lane, view in cards.board().items()
    ]
    return BoardOut(state=cards.state.value, lanes=lanes)


@router.post("/cards", response_model=CardOut, status_code=201)
async def create_card(
    payload: CardCreate,
    editor: Editor = Depends(get_editor),
    board: BoardService = Depends(get_board),
):
    return card_out(await board.create_card(editor, payload.column, payload.title))


@router.patch("/cards/{card_id}", response_model=CardOut)
async def rename_card(
    card_id: str,
    payload: CardUpdate,
    editor: Editor = Depends(get_editor),
    board: BoardService = Depends(get_board),
):
    return card_out(await board.rename_card(editor, card_id, payload.title))


@router.post("/cards/{card_id}:toggle", response_model=CardOut)
async def toggle_card(
    card_id: str,
    editor: Editor = Depends(get_editor),
    board: BoardService = Depends(get_board),
):
    return card_out(await board.toggle_completed(editor, card_id))


@router.post("/cards/{card_id}:archive", response_model=CardOut)
async def archive_card(
    card_id: str,
    editor: Editor = Depends(get_editor),
    board: BoardService = Depends(get_board),
):
    return card_out(await board.archive_card(editor, card_id))


@router.post("/cards/{card_id}:move", response_model=CardOut)
async def move_card(
    card_id: str,
    payload: CardMove,
    editor: Editor = Depends(get_editor),
    board: BoardService = Depends(get_board),
):
    card = await board.move_card(editor, card_id, payload.toColumn, payload.anchor)
    if card is None:
        return Response(status_code=204)
    return card_out(card)


# === Calendar ===


@router.get("/events", response_model=dict)
async def list_events(events: EventBook = Depends(get_events)):
    return {"events": [event_out(e) for e in await events.events()]}


@router.get("/events/counts", response_model=dict)
async def event_counts(events: EventBook = Depends(get_events)):
    return {"counts": await events.counts()}


@router.post("/events", response_model=EventOut, status_code=201)
async def create_event(
    payload: EventIn,
    editor: Editor = Depends(get_editor),
    events: EventBook = Depends(get_events),
):
    event = CalendarEvent(
        id="",
        title=payload.title,
        date=payload.date,
        start_time=payload.startTime,
        end_time=payload.endTime,
        is_all_day=payload.isAllDay,
    )
    return event_out(await events.save(editor, event))


@router.put("/events/{event_id}", response_model=EventOut)
async def update_event(
    event_id: str,
    payload: EventIn,
    editor: Editor = Depends(get_editor),
    events: EventBook = Depends(get_events),
):
    event = CalendarEvent(
        id=event_id,
        title=payload.title,
        date=payload.date,
        start_time=payload.startTime,
        end_time=payload.endTime,
        is_all_day=payload.isAllDay,
    )
    return event_out(await events.save(editor, event))


@router.post("/events/{event_id}:archive", status_code=204)
async def archive_event(event_id: str, events: EventBook = Depends(get_events)):
    await events.archive(event_id)
    return Response(status_code=204)


@router.delete("/events/{event_id}", status_code=204)
async def delete_event(event_id: str, events: EventBook = Depends(get_events)):
    await events.delete(event_id)
    return Response(status_code=204)


@router.post("/events/placeholders/{day}", response_model=dict)
async def toggle_placeholder(day: date, events: EventBook = Depends(get_events)):
    placeholder = await events.toggle_placeholder(day.isoformat())
    return {"placeholder": event_out(placeholder) if placeholder else None}


@router.post("/events/{event_id}:promote", response_model=CardOut, status_code=201)
async def promote_event(
    event_id: str,
    editor: Editor = Depends(get_editor),
    events: EventBook = Depends(get_events),
    board: BoardService = Depends(get_board),
):
    event = await events.get(event_id)
    return card_out(await board.promote_event(editor, event))


@router.get("/calendar", response_model=list[MonthOut])
def read_calendar(
    year: Optional[int] = Query(default=None, ge=1, le=9998),
    month: Optional[int] = Query(default=None, ge=1, le=12),
):
    today = date.today()
    grids = month_grid(year or today.year, month or today.month, today)
    return [
        MonthOut(
            name=m.name,
            year=m.year,
            days=[DayOut(date=d.date, isCurrentMonth=d.is_current_month, isToday=d.is_today) for d in m.days],
        )
        for m in grids
    ]


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    app = FastAPI(title="Huddle Board API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.add_exception_handler(HuddleError, huddle_error)
    app.include_router(router)
    return app


app = create_app()


def main() -> None:
    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()

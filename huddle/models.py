from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class Lane(str, Enum):
    """Board columns, lowest priority first."""

    BACKLOG = "backlog"
    TODO = "todo"
    DOING = "doing"
    DONE = "done"

    @property
    def heading(self) -> str:
        return LANE_TITLES[self]

    @classmethod
    def from_str(cls, value: Any) -> "Lane":
        try:
            return cls(value)
        except ValueError:
            logger.warning("unknown lane %r, using backlog", value)
            return cls.BACKLOG


LANE_TITLES = {
    Lane.BACKLOG: "Backlog",
    Lane.TODO: "Low",
    Lane.DOING: "Medium",
    Lane.DONE: "High",
}


# === Domain objects held by the stores ===


@dataclass
class Card:
    id: str
    title: str
    column: Lane
    order: float = 0.0
    completed: bool = False
    created_by: str = ""
    created_at: int = 0
    last_edited_by: str = ""
    last_edited_time: int = 0
    last_moved_time: int = 0
    is_archived: bool = False

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "column": self.column.value,
            "order": self.order,
            "completed": self.completed,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "lastEditedBy": self.last_edited_by,
            "lastEditedTime": self.last_edited_time,
            "lastMovedTime": self.last_moved_time,
            "isArchived": self.is_archived,
        }

    @classmethod
    def from_document(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> "Card":
        """Build a card from a stored document, tolerating missing fields."""
        order = data.get("order")
        return cls(
            id=doc_id or data.get("id", ""),
            title=data.get("title") or "",
            column=Lane.from_str(data.get("column")),
            order=float(order) if order is not None else 0.0,
            completed=bool(data.get("completed") or False),
            created_by=data.get("createdBy") or "",
            created_at=int(data.get("createdAt") or 0),
            last_edited_by=data.get("lastEditedBy") or "",
            last_edited_time=int(data.get("lastEditedTime") or 0),
            last_moved_time=int(data.get("lastMovedTime") or 0),
            is_archived=bool(data.get("isArchived") or False),
        )


@dataclass
class CalendarEvent:
    id: str
    title: str
    date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_all_day: Optional[bool] = None
    created_at: Optional[int] = None
    created_by: Optional[str] = None
    last_edited_by: Optional[str] = None
    last_updated: Optional[int] = None
    is_archived: bool = False

    def to_document(self) -> Dict[str, Any]:
        doc = {
            "id": self.id,
            "title": self.title,
            "date": self.date,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "isAllDay": self.is_all_day,
            "createdAt": self.created_at,
            "createdBy": self.created_by,
            "lastEditedBy": self.last_edited_by,
            "lastUpdated": self.last_updated,
            "isArchived": self.is_archived,
        }
        return {k: v for k, v in doc.items() if v is not None}

    @classmethod
    def from_document(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> "CalendarEvent":
        return cls(
            id=doc_id or data.get("id", ""),
            title=data.get("title") or "",
            date=data.get("date") or "",
            start_time=data.get("startTime"),
            end_time=data.get("endTime"),
            is_all_day=data.get("isAllDay"),
            created_at=data.get("createdAt"),
            created_by=data.get("createdBy"),
            last_edited_by=data.get("lastEditedBy"),
            last_updated=data.get("lastUpdated"),
            is_archived=bool(data.get("isArchived") or False),
        )


# === API Schemas ===


class CardCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    column: Lane = Lane.BACKLOG


class CardUpdate(BaseModel):
    title: str = Field(min_length=1, max_length=500)


class CardMove(BaseModel):
    toColumn: Lane
    anchor: str = "tail"


class CardOut(BaseModel):
    id: str
    title: str
    column: Lane
    order: float
    completed: bool
    createdBy: str
    createdAt: int
    lastEditedBy: str
    lastEditedTime: int
    lastMovedTime: int
    isArchived: bool


class LaneOut(BaseModel):
    column: Lane
    title: str
    cards: List[CardOut]


class BoardOut(BaseModel):
    state: str
    lanes: List[LaneOut]


class EventIn(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    isAllDay: Optional[bool] = None


class EventOut(BaseModel):
    id: str
    title: str
    date: str
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    isAllDay: Optional[bool] = None
    createdAt: Optional[int] = None
    createdBy: Optional[str] = None
    lastEditedBy: Optional[str] = None
    lastUpdated: Optional[int] = None
    isArchived: bool = False


class DayOut(BaseModel):
    date: str
    isCurrentMonth: bool
    isToday: bool


class MonthOut(BaseModel):
    name: str
    year: int
    days: List[DayOut]

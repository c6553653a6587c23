from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import BigInteger, Boolean, Float, String, Text, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from .models import CalendarEvent, Card


class Base(DeclarativeBase):
    pass


class CardRow(Base):
    __tablename__ = "cards"
    # Everything but the id is nullable: rows written by older clients may
    # lack fields, and Card.from_document fills the defaults.
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    column: Mapped[str | None] = mapped_column(String(16), nullable=True, index=True)
    order: Mapped[float | None] = mapped_column(Float, nullable=True)
    completed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    last_edited_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    last_edited_time: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    last_moved_time: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    is_archived: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    model = Card

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "column": self.column,
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
    def from_document(cls, doc: Dict[str, Any]) -> "CardRow":
        return cls(
            id=doc["id"],
            title=doc.get("title"),
            column=doc.get("column"),
            order=doc.get("order"),
            completed=doc.get("completed"),
            created_by=doc.get("createdBy"),
            created_at=doc.get("createdAt"),
            last_edited_by=doc.get("lastEditedBy"),
            last_edited_time=doc.get("lastEditedTime"),
            last_moved_time=doc.get("lastMovedTime"),
            is_archived=doc.get("isArchived"),
        )


class EventRow(Base):
    __tablename__ = "events"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    date: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)
    start_time: Mapped[str | None] = mapped_column(String(8), nullable=True)
    end_time: Mapped[str | None] = mapped_column(String(8), nullable=True)
    is_all_day: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    created_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    last_edited_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    last_updated: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    is_archived: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    model = CalendarEvent

    def to_document(self) -> Dict[str, Any]:
        return {
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

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "EventRow":
        return cls(
            id=doc["id"],
            title=doc.get("title"),
            date=doc.get("date"),
            start_time=doc.get("startTime"),
            end_time=doc.get("endTime"),
            is_all_day=doc.get("isAllDay"),
            created_at=doc.get("createdAt"),
            created_by=doc.get("createdBy"),
            last_edited_by=doc.get("lastEditedBy"),
            last_updated=doc.get("lastUpdated"),
            is_archived=doc.get("isArchived"),
        )


def make_session_factory(database_url: str) -> sessionmaker:
    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False} if database_url.startswith("sqlite") else {},
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)

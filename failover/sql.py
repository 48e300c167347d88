"""SQLAlchemy-backed delivery history.

Two tables: ``delivery_records`` (one row per message, indexed by recipient
and creation time for the history query) and ``channel_attempts`` (one row
per attempt, ordered by ``position``). Rows are only ever inserted.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Engine, ForeignKey, Index, Integer, String, Text, create_engine, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, sessionmaker

from .errors import DuplicateRecordError, HistoryError
from .history import DEFAULT_PAGE_SIZE, UsageSummary, as_utc, check_page, summarize
from .types import (
    AttemptOutcome,
    Category,
    Channel,
    ChannelAttempt,
    DeliveryRecord,
    FailureReason,
    FinalOutcome,
    IdentifierIssue,
    NormalizedRecipient,
)

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for the history ORM models."""


class DeliveryRecordRow(Base):
    __tablename__ = "delivery_records"
    __table_args__ = (Index("ix_delivery_records_recipient_created_at", "recipient", "created_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    recipient: Mapped[str] = mapped_column(String(20), index=True)
    body: Mapped[str] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(20))
    final_outcome: Mapped[str] = mapped_column(String(16))
    final_channel: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    attempts: Mapped[list[ChannelAttemptRow]] = relationship(
        back_populates="record",
        order_by="ChannelAttemptRow.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class ChannelAttemptRow(Base):
    __tablename__ = "channel_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    record_id: Mapped[str] = mapped_column(ForeignKey("delivery_records.id"), index=True)
    position: Mapped[int] = mapped_column(Integer)
    channel: Mapped[str] = mapped_column(String(16))
    outcome: Mapped[str] = mapped_column(String(16))
    provider_identifier: Mapped[str | None] = mapped_column(String(64), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(String(32), nullable=True)
    failure_detail: Mapped[str | None] = mapped_column(Text, nullable=True)
    identifier_issue: Mapped[str | None] = mapped_column(String(32), nullable=True)
    attempted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    record: Mapped[DeliveryRecordRow] = relationship(back_populates="attempts")


class SQLHistoryStore:
    """History store over any SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, url: str, **engine_kwargs: Any) -> SQLHistoryStore:
        """Create an engine for *url* and make sure the tables exist."""
        store = cls(create_engine(url, **engine_kwargs))
        store.create_schema()
        return store

    def create_schema(self) -> None:
        Base.metadata.create_all(self._engine)

    def append(self, record: DeliveryRecord) -> None:
        try:
            with self._session_factory.begin() as session:
                session.add(_to_row(record))
        except IntegrityError as exc:
            raise DuplicateRecordError(record.id) from exc
        except SQLAlchemyError as exc:
            logger.error("Failed to persist delivery record %s: %s", record.id, exc)
            raise HistoryError(str(exc)) from exc

    def get(self, record_id: str) -> DeliveryRecord | None:
        with self._session_factory() as session:
            row = session.get(DeliveryRecordRow, record_id)
            return _from_row(row) if row is not None else None

    def recent(
        self,
        recipient: NormalizedRecipient | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[DeliveryRecord]:
        check_page(limit, offset)
        stmt = select(DeliveryRecordRow)
        if recipient is not None:
            stmt = stmt.where(DeliveryRecordRow.recipient == str(recipient))
        stmt = (
            stmt.order_by(DeliveryRecordRow.created_at.desc(), DeliveryRecordRow.id.desc())
            .limit(limit)
            .offset(offset)
        )
        with self._session_factory() as session:
            return [_from_row(row) for row in session.scalars(stmt)]

    def summary(self, since: datetime | None = None) -> UsageSummary:
        stmt = select(DeliveryRecordRow)
        if since is not None:
            stmt = stmt.where(DeliveryRecordRow.created_at >= as_utc(since))
        with self._session_factory() as session:
            return summarize(_from_row(row) for row in session.scalars(stmt))


def _to_row(record: DeliveryRecord) -> DeliveryRecordRow:
    return DeliveryRecordRow(
        id=record.id,
        recipient=str(record.recipient),
        body=record.body,
        category=record.category.value,
        final_outcome=record.final_outcome.value,
        final_channel=record.final_channel.value if record.final_channel else None,
        created_at=as_utc(record.created_at),
        completed_at=as_utc(record.completed_at),
        attempts=[
            ChannelAttemptRow(
                position=position,
                channel=attempt.channel.value,
                outcome=attempt.outcome.value,
                provider_identifier=attempt.provider_identifier,
                failure_reason=attempt.failure_reason.value if attempt.failure_reason else None,
                failure_detail=attempt.failure_detail,
                identifier_issue=attempt.identifier_issue.value if attempt.identifier_issue else None,
                attempted_at=as_utc(attempt.attempted_at),
                completed_at=as_utc(attempt.completed_at) if attempt.completed_at else None,
            )
            for position, attempt in enumerate(record.attempts)
        ],
    )


def _from_row(row: DeliveryRecordRow) -> DeliveryRecord:
    return DeliveryRecord(
        id=row.id,
        recipient=NormalizedRecipient(row.recipient),
        body=row.body,
        category=Category(row.category),
        attempts=tuple(
            ChannelAttempt(
                channel=Channel(a.channel),
                outcome=AttemptOutcome(a.outcome),
                provider_identifier=a.provider_identifier,
                failure_reason=FailureReason(a.failure_reason) if a.failure_reason else None,
                failure_detail=a.failure_detail,
                identifier_issue=IdentifierIssue(a.identifier_issue) if a.identifier_issue else None,
                attempted_at=as_utc(a.attempted_at),
                completed_at=as_utc(a.completed_at) if a.completed_at else None,
            )
            for a in row.attempts
        ),
        final_outcome=FinalOutcome(row.final_outcome),
        final_channel=Channel(row.final_channel) if row.final_channel else None,
        created_at=as_utc(row.created_at),
        completed_at=as_utc(row.completed_at),
    )

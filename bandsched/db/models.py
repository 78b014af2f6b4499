import datetime as dt

from sqlalchemy import (
    Column,
    DateTime,
    CheckConstraint,
    DDL,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import relationship

from . import Base


class Venue(Base):
    __tablename__ = "venues"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    address = Column(String, nullable=True)


class RehearsalRecord(Base):
    __tablename__ = "rehearsals"
    __table_args__ = (CheckConstraint("end_at > start_at", name="rehearsals_end_after_start"),)

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(String, nullable=False, index=True)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=True, index=True)
    title = Column(String(100), nullable=False, default="")
    description = Column(String(500), nullable=False, default="")
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)
    # IANA zone the rehearsal was planned in; recurrences keep its wall-clock time
    time_zone = Column(String, nullable=True)
    # Recurrence, all null for one-off rehearsals
    frequency = Column(String, nullable=True)
    day_of_week = Column(Integer, nullable=True)
    interval = Column(Integer, nullable=True)
    recurrence_end = Column(DateTime(timezone=True), nullable=True)
    setlist_id = Column(String, nullable=True)
    notes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=lambda: dt.datetime.now(dt.timezone.utc))

    venue = relationship("Venue")
    attendees = relationship(
        "AttendeeRecord", back_populates="rehearsal", cascade="all, delete-orphan", order_by="AttendeeRecord.id"
    )


class AttendeeRecord(Base):
    __tablename__ = "rehearsal_attendees"
    __table_args__ = (UniqueConstraint("rehearsal_id", "user_id"),)

    id = Column(Integer, primary_key=True)
    rehearsal_id = Column(Integer, ForeignKey("rehearsals.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending")
    response_time = Column(DateTime(timezone=True), nullable=True)

    rehearsal = relationship("RehearsalRecord", back_populates="attendees")


# PostgreSQL enforces the no-overlap rule itself, so concurrent writers that
# both passed the read-side check cannot both commit.
event.listen(
    Base.metadata,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    RehearsalRecord.__table__,
    "after_create",
    DDL(
        "ALTER TABLE rehearsals ADD CONSTRAINT rehearsals_venue_no_overlap "
        "EXCLUDE USING gist (venue_id WITH =, tstzrange(start_at, end_at) WITH &&)"
    ).execute_if(dialect="postgresql"),
)

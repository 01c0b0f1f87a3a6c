"""
Event model with spot inventory tracking.

Key design decisions:
- `spots_remaining` is denormalized so a reservation is a single conditional
  UPDATE on one row instead of a SUM over registrations
- CHECK constraints keep 0 <= spots_remaining <= capacity even if a buggy
  writer slips past the reservation service
- `has_unlimited_capacity` events never have spots_remaining decremented
- Index on `event_date` serves the public "upcoming, published" listing
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from district_events.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Event(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "events"

    church_id = Column(String(36), ForeignKey("churches.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(255), nullable=False)
    event_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=True)
    image_url = Column(String(1000), nullable=True)
    external_registration_url = Column(String(1000), nullable=True)

    capacity = Column(Integer, nullable=False, default=100)
    spots_remaining = Column(Integer, nullable=False, default=100)
    has_unlimited_capacity = Column(Boolean, nullable=False, default=False)

    is_free = Column(Boolean, nullable=False, default=True)
    price = Column(Numeric(10, 2), nullable=True)
    is_published = Column(Boolean, nullable=False, default=False)

    church = relationship("Church", back_populates="events", lazy="joined")
    registrations = relationship("Registration", back_populates="event", lazy="noload")

    __table_args__ = (
        CheckConstraint("capacity >= 0", name="check_event_capacity_non_negative"),
        CheckConstraint("spots_remaining >= 0", name="check_spots_remaining_non_negative"),
        CheckConstraint("spots_remaining <= capacity", name="check_spots_remaining_lte_capacity"),
        CheckConstraint("price IS NULL OR price >= 0", name="check_event_price_non_negative"),
        Index("ix_events_event_date", "event_date"),
        # Public listing: WHERE is_published AND event_date >= now ORDER BY event_date
        Index("ix_events_published_date", "is_published", "event_date"),
    )

    @property
    def church_name(self):
        return self.church.name if self.church is not None else None

    @property
    def accepts_registrations(self) -> bool:
        return not self.external_registration_url

    def __repr__(self) -> str:
        if self.has_unlimited_capacity:
            return f"<Event(id={self.id}, title={self.title}, unlimited)>"
        return f"<Event(id={self.id}, title={self.title}, remaining={self.spots_remaining}/{self.capacity})>"

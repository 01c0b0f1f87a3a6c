"""
Registration model: one attendee's claim on spots of an event.

Key design decisions:
- Capacity lives on the event; a registration only records how many tickets
  it holds (`num_tickets`)
- Status is never deleted, only moved to `cancelled`, so the sweeper and the
  cancel endpoint can use `registration_status != 'cancelled'` as the
  release-once guard
- `payment_status` and `checked_in` move independently of capacity
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
)
from sqlalchemy.orm import relationship

from district_events.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class RegistrationStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentStatus:
    FREE = "free"
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class Registration(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "registrations"

    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    attendee_name = Column(String(100), nullable=False)
    attendee_email = Column(String(255), nullable=False, index=True)
    attendee_phone = Column(String(20), nullable=True)
    num_tickets = Column(Integer, nullable=False, default=1)
    total_amount = Column(Numeric(10, 2), nullable=True)

    registration_status = Column(String(20), nullable=False, default=RegistrationStatus.PENDING)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING)
    hold_expires_at = Column(DateTime(timezone=True), nullable=True)

    checked_in = Column(Boolean, nullable=False, default=False)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    confirmation_sent = Column(Boolean, nullable=False, default=False)

    event = relationship("Event", back_populates="registrations", lazy="joined")

    __table_args__ = (
        CheckConstraint("num_tickets > 0", name="check_registration_tickets_positive"),
        CheckConstraint(
            "registration_status IN ('pending', 'confirmed', 'cancelled')",
            name="check_registration_status",
        ),
        CheckConstraint(
            "payment_status IN ('free', 'pending', 'paid', 'failed')",
            name="check_payment_status",
        ),
        # Sweeper scan: pending holds ordered by expiry
        Index("ix_registrations_status_hold", "registration_status", "hold_expires_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Registration(id={self.id}, event={self.event_id}, "
            f"tickets={self.num_tickets}, status={self.registration_status})>"
        )

"""
Pending admin invitation. The token is single-use: `accepted_at` is set by a
conditional UPDATE so two concurrent accepts cannot both create a user.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String

from district_events.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Invite(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "pending_invites"

    email = Column(String(255), nullable=False, index=True)
    full_name = Column(String(100), nullable=True)
    role = Column(String(20), nullable=False)
    church_id = Column(String(36), ForeignKey("churches.id"), nullable=True)
    invite_token = Column(String(64), nullable=False, unique=True, index=True)
    invited_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("role IN ('county_admin', 'church_admin')", name="check_invite_role"),
    )

    def __repr__(self) -> str:
        return f"<Invite(id={self.id}, email={self.email}, role={self.role})>"

"""
Admin user model. Roles gate the management endpoints: county admins see
everything, church admins only their own church.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, String
from sqlalchemy.orm import relationship

from district_events.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Role:
    COUNTY_ADMIN = "county_admin"
    CHURCH_ADMIN = "church_admin"

    ALL = (COUNTY_ADMIN, CHURCH_ADMIN)


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "users"

    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(100), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False)
    church_id = Column(String(36), ForeignKey("churches.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    church = relationship("Church", lazy="joined")

    __table_args__ = (
        CheckConstraint("role IN ('county_admin', 'church_admin')", name="check_user_role"),
    )

    @property
    def is_county_admin(self) -> bool:
        return self.role == Role.COUNTY_ADMIN

    def can_manage_church(self, church_id: str) -> bool:
        return self.is_county_admin or (self.church_id is not None and self.church_id == church_id)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

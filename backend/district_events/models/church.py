"""
Church model. Every event is hosted by one church.
"""

from sqlalchemy import Column, String, Text
from sqlalchemy.orm import relationship

from district_events.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Church(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "churches"

    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    pastor = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    website = Column(String(500), nullable=True)

    events = relationship("Event", back_populates="church", lazy="noload")

    def __repr__(self) -> str:
        return f"<Church(id={self.id}, name={self.name})>"

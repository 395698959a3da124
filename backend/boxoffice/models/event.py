"""
Event model: the catalog entry that performances are scheduled for.

An event held at a registered venue sells seats from that venue's layout.
Events without a venue (location is free text) accept any seat label.
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Index

from boxoffice.db.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String(2000), nullable=True)
    category = Column(String(100), nullable=True)
    location = Column(String(255), nullable=True)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=True, index=True)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    is_published = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("ix_events_active_created", "is_active", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title})>"

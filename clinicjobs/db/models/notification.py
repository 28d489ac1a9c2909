"""
In-app notification model written by the notification dispatcher.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from clinicjobs.db.base import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    event = Column(String(50), nullable=False)  # application_created, application_withdrawn, ...
    type = Column(String(20), nullable=False, default="info")  # info | success | warning | error
    title = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    channel = Column(String(20), nullable=False, default="inapp")

    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    user = relationship("User", backref="notifications")

    __table_args__ = (
        Index("idx_notifications_user_read", "user_id", "read_at"),
    )

    def __repr__(self):
        return f"<Notification(id={self.id}, user_id={self.user_id}, event='{self.event}')>"

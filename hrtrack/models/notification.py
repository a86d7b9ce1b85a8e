"""
Notification model
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from hrtrack.db.base import Base


class NotificationType(str, enum.Enum):
    LEAVE_APPROVAL = "LEAVE_APPROVAL"
    LEAVE_REJECTION = "LEAVE_REJECTION"
    ATTENDANCE = "ATTENDANCE"
    SYSTEM = "SYSTEM"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(SQLEnum(NotificationType), nullable=False, default=NotificationType.SYSTEM)
    related_id = Column(Integer, nullable=True)  # weak reference, e.g. leave_requests.id
    is_read = Column(Boolean, nullable=False, default=False)
    # "metadata" is reserved on declarative classes
    meta_json = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)

    user = relationship("Employee", backref="notifications")

    __table_args__ = (
        Index("ix_notifications_user_read_created", "user_id", "is_read", "created_at"),
    )

"""
Notification schemas
"""
from datetime import datetime
from typing import Optional, Any, Dict, List
from pydantic import BaseModel, ConfigDict, Field, field_serializer

from hrtrack.models.notification import NotificationType
from hrtrack.utils.datetime_utils import iso_local


class NotificationOut(BaseModel):
    """Schema for notification output"""
    id: int
    user_id: int
    title: str
    message: str
    type: NotificationType
    related_id: Optional[int] = None
    is_read: bool
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="meta_json")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    @field_serializer("created_at", when_used="always")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return iso_local(dt)


class NotificationListResponse(BaseModel):
    """Newest notifications for the caller"""
    items: List[NotificationOut]
    unread_count: int

# src/schema/notification.py
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    MILESTONE_UPDATED = "milestone-updated"
    MILESTONE_ADDED = "milestone-added"
    FILE_SUBMITTED = "file-submitted"
    GRADE_UPDATED = "grade-updated"
    GRADE_SUBMITTED = "grade-submitted"
    GRADE_APPROVED = "grade-approved"
    GRADE_REJECTED = "grade-rejected"
    WORK_INFO_UPDATED = "work-info-updated"


class NotificationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class NotificationEvent(BaseModel):
    """Structured event handed to the notification port"""
    type: NotificationType
    recipient: str
    sender: Optional[str] = None
    title: str
    message: str
    link: Optional[str] = None
    priority: NotificationPriority = NotificationPriority.NORMAL
    metadata: Dict[str, Any] = Field(default_factory=dict)

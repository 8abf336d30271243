from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
from .users import UserBrief
from .comments import CommentBrief
from ..models.notifications import NotificationType

class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    message: str
    type: NotificationType
    comment_id: Optional[int] = None
    comment: Optional[CommentBrief] = None
    parent_content: Optional[str] = None
    read: bool = False
    created_at: datetime
    recipient: UserBrief


def notification_to_dict(notification) -> dict:
    return NotificationOut.model_validate(notification).model_dump(mode='json')

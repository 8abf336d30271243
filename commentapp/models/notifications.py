import enum
from sqlalchemy import Column, Integer, Text, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from ..core import utcnow
from . import Base

class NotificationType(str, enum.Enum):
    REPLY = 'reply'
    MENTION = 'mention'

class Notification(Base):
    __tablename__ = 'notifications'
    id = Column(Integer, primary_key=True)
    recipient_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    message = Column(Text, nullable=False)
    type = Column(Enum(NotificationType, name='notification_type', values_callable=lambda e: [m.value for m in e]), nullable=False)
    comment_id = Column(Integer, ForeignKey('comments.id', ondelete='SET NULL'), nullable=True)
    parent_content = Column(Text, nullable=True)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    recipient = relationship('User', back_populates='notifications')
    comment = relationship('Comment')

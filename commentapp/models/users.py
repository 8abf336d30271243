from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from ..core import utcnow
from . import Base

class User(Base):
    __tablename__ = 'users'
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    refresh_token_hash = Column(String(255), nullable=True)
    last_login = Column(DateTime, nullable=True)
    is_email_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    comments = relationship('Comment', back_populates='author')
    notifications = relationship('Notification', back_populates='recipient')

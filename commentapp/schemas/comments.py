from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from .users import UserBrief

class CommentIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str = Field(min_length=1)
    parent_id: Optional[int] = Field(default=None, alias='parentId')

class CommentUpdateIn(BaseModel):
    content: str = Field(min_length=1)

class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    content: str
    author: UserBrief
    parent_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

class CommentBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    content: str
    parent_id: Optional[int] = None
    deleted_at: Optional[datetime] = None


def comment_to_dict(comment) -> dict:
    """JSON-ready dict of a comment row; cached and fresh reads share this shape"""
    return CommentOut.model_validate(comment).model_dump(mode='json')

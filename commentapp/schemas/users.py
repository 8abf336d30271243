from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

class RegisterIn(BaseModel):
    email: str
    password: str

class LoginIn(BaseModel):
    email: str
    password: str

class RefreshIn(BaseModel):
    refresh_token: str

class UserBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    is_email_verified: bool = False
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

class TokenOut(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = 'bearer'
    user: UserBrief

class ActionOkOut(BaseModel):
    success: bool = True

from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional


class RegisterIn(BaseModel):
    username: str = Field(..., min_length=3, max_length=30)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=255)
    avatar: Optional[str] = None
    bio: Optional[str] = None


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class UserOut(BaseModel):
    id: int
    username: str
    email: EmailStr
    avatar: Optional[str] = None
    bio: Optional[str] = None
    is_online: bool
    last_seen: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserSearchOut(BaseModel):
    id: int
    username: str
    email: EmailStr
    avatar: Optional[str] = None
    bio: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AuthOut(BaseModel):
    user: UserOut
    access_token: str
    token_type: str = 'bearer'


class PresenceIn(BaseModel):
    is_online: bool = False


class PresenceOut(BaseModel):
    is_online: bool
    last_seen: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ActionOkOut(BaseModel):
    ok: bool = True
    message: Optional[str] = None

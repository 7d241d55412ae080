from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional

from ..models import MAX_ID


class FriendRequestIn(BaseModel):
    receiver_id: int = Field(..., gt=0, le=MAX_ID)


class FriendRequestOut(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    status: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SenderOut(BaseModel):
    id: int
    username: str
    email: EmailStr
    avatar: Optional[str] = None
    bio: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PendingRequestOut(FriendRequestOut):
    sender: SenderOut


class FriendshipOut(BaseModel):
    id: int
    user_id1: int
    user_id2: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class FriendOut(BaseModel):
    id: int
    username: str
    email: EmailStr
    avatar: Optional[str] = None
    bio: Optional[str] = None
    is_online: bool
    last_seen: Optional[datetime] = None
    created_at: Optional[datetime] = None
    friendship_created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

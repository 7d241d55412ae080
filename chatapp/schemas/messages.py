from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

from ..models import MAX_ID


class MessageIn(BaseModel):
    message: Optional[str] = None
    receiver_id: Optional[int] = Field(None, gt=0, le=MAX_ID)


class MessageOut(BaseModel):
    id: int
    sender_id: int
    receiver_id: Optional[int] = None
    username: str
    message: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    is_private: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

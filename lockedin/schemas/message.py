from typing import Optional

from pydantic import BaseModel


class MessageCreate(BaseModel):
    session_id: Optional[int] = None
    content: Optional[str] = None
    attachment_url: Optional[str] = None


class MessagePublic(BaseModel):
    id: int
    group_id: int
    session_id: Optional[int] = None
    sender_id: str
    sender_name: Optional[str] = None
    content: Optional[str] = None
    attachment_url: Optional[str] = None
    created_at: str

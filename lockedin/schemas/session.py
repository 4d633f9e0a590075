from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from lockedin.core.timeutils import iso_z_from_utc_naive


class SessionCreate(BaseModel):
    # sin tipo: ISO o epoch, se valida a mano (requerido / parseable / futuro) con 400
    start_at: Any = None
    venue: Optional[str] = None
    topic: Optional[str] = None
    time_goal_minutes: Optional[int] = None
    content_goal: Optional[str] = None


class SessionPublic(BaseModel):
    id: int
    group_id: int
    creator_id: str
    start_at: str
    venue: Optional[str] = None
    topic: Optional[str] = None
    time_goal_minutes: Optional[int] = None
    content_goal: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_model(cls, s) -> "SessionPublic":
        return cls(
            id=s.id,
            group_id=s.group_id,
            creator_id=s.creator_id,
            start_at=iso_z_from_utc_naive(s.start_at),
            venue=s.venue,
            topic=s.topic,
            time_goal_minutes=s.time_goal_minutes,
            content_goal=s.content_goal,
            created_at=iso_z_from_utc_naive(s.created_at),
        )


class SessionEnvelope(BaseModel):
    session: SessionPublic


class SessionList(BaseModel):
    sessions: list[SessionPublic]


class RsvpRequest(BaseModel):
    status: Any = None


class InvitePublic(BaseModel):
    session_id: int
    user_id: str
    status: str
    responded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RsvpResponse(BaseModel):
    message: str
    invite: InvitePublic

from typing import Optional

from pydantic import BaseModel, ConfigDict


class EmailSendRequest(BaseModel):
    # claves extra se pasan tal cual a la plantilla
    model_config = ConfigDict(extra="allow")

    to: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None
    recipient_name: Optional[str] = None
    topic: Optional[str] = None
    session_time: Optional[str] = None
    venue: Optional[str] = None
    time_goal: Optional[str] = None
    content_goal: Optional[str] = None

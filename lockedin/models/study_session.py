from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from lockedin.core.database import Base


class StudySession(Base):
    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id"), nullable=False, index=True)
    creator_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # UTC naive, precisión de milisegundos
    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    venue: Mapped[str | None] = mapped_column(String(255), nullable=True)
    topic: Mapped[str | None] = mapped_column(String(255), nullable=True)
    time_goal_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    content_goal: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

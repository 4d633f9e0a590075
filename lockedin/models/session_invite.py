from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from lockedin.core.database import Base

INVITE_PENDING = "pending"
INVITE_ACCEPTED = "accepted"
INVITE_DECLINED = "declined"


class SessionInvite(Base):
    __tablename__ = "session_invites"
    __table_args__ = (
        UniqueConstraint("session_id", "user_id", name="uq_session_invite_user"),
        # NULL no colisiona: solo las invitaciones aceptadas quedan restringidas
        UniqueConstraint("user_id", "accepted_start_at", name="uq_user_accepted_start"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    status: Mapped[str] = mapped_column(String(20), default=INVITE_PENDING, nullable=False)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # copia de sessions.start_at mientras status == accepted
    accepted_start_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

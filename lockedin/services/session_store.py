from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lockedin.core.errors import DoubleBookingError, ValidationError
from lockedin.core.timeutils import parse_instant, to_utc_naive, utc_now_naive
from lockedin.models.membership import GroupMember
from lockedin.models.profile import Profile
from lockedin.models.session_invite import INVITE_ACCEPTED, INVITE_PENDING, SessionInvite
from lockedin.models.study_session import StudySession


@dataclass(frozen=True)
class MemberContact:
    user_id: str
    email: Optional[str]
    full_name: Optional[str]


def parse_start_at(raw, now: datetime | None = None) -> datetime:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise ValidationError("start_at is required")

    if isinstance(raw, datetime):
        starts = to_utc_naive(raw)
    else:
        try:
            starts = parse_instant(raw)
        except ValueError:  # incluye pydantic.ValidationError
            raise ValidationError("Invalid start_at") from None

    if starts <= (now or utc_now_naive()):
        raise ValidationError("start_at cannot be in the past")
    return starts


class SessionStore:
    """Acceso a sessions / session_invites / group_members con firmas fijas."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now_naive):
        self.db = db
        self.clock = clock

    # --- sessions ---

    def create_session(
        self,
        group_id: int,
        creator_id: str,
        start_at,
        venue: str | None = None,
        topic: str | None = None,
        time_goal_minutes: int | None = None,
        content_goal: str | None = None,
    ) -> StudySession:
        starts = parse_start_at(start_at, now=self.clock())

        session = StudySession(
            group_id=group_id,
            creator_id=creator_id,
            start_at=starts,
            venue=venue,
            topic=topic,
            time_goal_minutes=time_goal_minutes,
            content_goal=content_goal,
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        return session

    def list_sessions(self, group_id: int) -> list[StudySession]:
        stmt = (
            select(StudySession)
            .where(StudySession.group_id == group_id)
            .order_by(StudySession.start_at.asc(), StudySession.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_session(self, session_id: int) -> Optional[StudySession]:
        return self.db.get(StudySession, session_id)

    def delete_session(self, session_id: int) -> None:
        self.db.execute(delete(SessionInvite).where(SessionInvite.session_id == session_id))
        self.db.execute(delete(StudySession).where(StudySession.id == session_id))
        self.db.commit()

    def get_session_start_times(self, session_ids: list[int]) -> list[datetime]:
        if not session_ids:
            return []
        stmt = select(StudySession.start_at).where(StudySession.id.in_(session_ids))
        return list(self.db.execute(stmt).scalars().all())

    # --- invites ---

    def get_invite(self, session_id: int, user_id: str) -> Optional[SessionInvite]:
        return self.db.execute(
            select(SessionInvite).where(
                SessionInvite.session_id == session_id,
                SessionInvite.user_id == user_id,
            )
        ).scalar_one_or_none()

    def upsert_invite(self, session_id: int, user_id: str, status: str) -> SessionInvite:
        accepted_start_at = None
        if status == INVITE_ACCEPTED:
            session = self.db.get(StudySession, session_id)
            accepted_start_at = session.start_at if session else None

        # 2 intentos: si otra petición insertó la fila (session_id, user_id)
        # entre el select y el insert, el segundo pasa como update
        for attempt in range(2):
            invite = self.get_invite(session_id, user_id)
            if invite is None:
                invite = SessionInvite(session_id=session_id, user_id=user_id)
                self.db.add(invite)

            invite.status = status
            if status != INVITE_PENDING:
                invite.responded_at = self.clock()
            invite.accepted_start_at = accepted_start_at

            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                if accepted_start_at is not None and self._accepted_elsewhere(
                    session_id, user_id, accepted_start_at
                ):
                    raise DoubleBookingError(user_id, accepted_start_at) from None
                if attempt:
                    raise
                continue

            self.db.refresh(invite)
            return invite

    def _accepted_elsewhere(self, session_id: int, user_id: str, start_at: datetime) -> bool:
        found = self.db.execute(
            select(SessionInvite.id).where(
                SessionInvite.user_id == user_id,
                SessionInvite.accepted_start_at == start_at,
                SessionInvite.session_id != session_id,
            )
        ).first()
        return found is not None

    def list_accepted_invites_for_user(self, user_id: str) -> list[int]:
        stmt = select(SessionInvite.session_id).where(
            SessionInvite.user_id == user_id,
            SessionInvite.status == INVITE_ACCEPTED,
        )
        return list(self.db.execute(stmt).scalars().all())

    # --- miembros ---

    def list_group_members(self, group_id: int) -> list[MemberContact]:
        rows = self.db.execute(
            select(GroupMember.user_id, Profile.email, Profile.full_name)
            .outerjoin(Profile, Profile.id == GroupMember.user_id)
            .where(GroupMember.group_id == group_id)
            .order_by(GroupMember.id.asc())
        ).all()
        return [MemberContact(user_id=r.user_id, email=r.email, full_name=r.full_name) for r in rows]

    def get_profile(self, user_id: str) -> Optional[Profile]:
        return self.db.get(Profile, user_id)

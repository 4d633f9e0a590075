from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from lockedin.core.auth import AuthUser
from lockedin.core.errors import NotFound, Unauthenticated, ValidationError
from lockedin.core.timeutils import iso_z_from_utc_naive
from lockedin.models.group_message import GroupMessage
from lockedin.models.profile import Profile
from lockedin.models.study_session import StudySession
from lockedin.schemas.message import MessageCreate, MessagePublic
from lockedin.services.membership import MembershipGate


class GroupMessageService:
    def __init__(self, db: Session, gate: MembershipGate):
        self.db = db
        self.gate = gate

    def _sender_names(self, sender_ids: set[str]) -> dict[str, Optional[str]]:
        if not sender_ids:
            return {}
        rows = self.db.execute(
            select(Profile.id, Profile.full_name).where(Profile.id.in_(sender_ids))
        ).all()
        return {r.id: r.full_name for r in rows}

    @staticmethod
    def _public(m: GroupMessage, sender_name: Optional[str]) -> MessagePublic:
        return MessagePublic(
            id=m.id,
            group_id=m.group_id,
            session_id=m.session_id,
            sender_id=m.sender_id,
            sender_name=sender_name,
            content=m.content,
            attachment_url=m.attachment_url,
            created_at=iso_z_from_utc_naive(m.created_at),
        )

    def post_message(self, group_id: int, caller: Optional[AuthUser], payload: MessageCreate) -> MessagePublic:
        if caller is None:
            raise Unauthenticated("Unauthorized")
        self.gate.require_member(group_id, caller.id)

        if not payload.content and not payload.attachment_url:
            raise ValidationError("content or attachment_url required")

        # la sesión etiquetada tiene que ser de este grupo
        if payload.session_id is not None:
            session = self.db.get(StudySession, payload.session_id)
            if session is None or session.group_id != group_id:
                raise NotFound("Session not found")

        msg = GroupMessage(
            group_id=group_id,
            session_id=payload.session_id,
            sender_id=caller.id,
            content=payload.content,
            attachment_url=payload.attachment_url,
        )
        self.db.add(msg)
        self.db.commit()
        self.db.refresh(msg)

        names = self._sender_names({msg.sender_id})
        return self._public(msg, names.get(msg.sender_id))

    def list_messages(
        self,
        group_id: int,
        caller: Optional[AuthUser],
        session_id: Optional[int] = None,
        limit: int = 100,
    ) -> list[MessagePublic]:
        if caller is None:
            raise Unauthenticated("Unauthorized")
        self.gate.require_member(group_id, caller.id)

        # los `limit` más recientes, devueltos en orden cronológico
        stmt = (
            select(GroupMessage)
            .where(GroupMessage.group_id == group_id)
            .order_by(GroupMessage.created_at.desc(), GroupMessage.id.desc())
            .limit(limit)
        )
        if session_id is not None:
            stmt = stmt.where(GroupMessage.session_id == session_id)

        msgs = list(self.db.execute(stmt).scalars().all())
        names = self._sender_names({m.sender_id for m in msgs})
        return [self._public(m, names.get(m.sender_id)) for m in reversed(msgs)]

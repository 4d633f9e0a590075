from sqlalchemy import select
from sqlalchemy.orm import Session

from lockedin.core.errors import Forbidden
from lockedin.models.membership import GroupMember


class MembershipGate:
    def __init__(self, db: Session):
        self.db = db

    def is_member(self, group_id: int, user_id: str) -> bool:
        # errores de DB se propagan (no es lo mismo que "no es miembro")
        m = self.db.execute(
            select(GroupMember.id).where(
                GroupMember.group_id == group_id,
                GroupMember.user_id == user_id,
            )
        ).first()
        return m is not None

    def require_member(self, group_id: int, user_id: str) -> None:
        if not self.is_member(group_id, user_id):
            raise Forbidden("Not a group member")

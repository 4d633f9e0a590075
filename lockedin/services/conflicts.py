from datetime import datetime

from lockedin.core.timeutils import to_utc_naive
from lockedin.services.session_store import SessionStore


class ConflictDetector:
    """
    Conflicto = el usuario ya tiene una sesión ACEPTADA que empieza exactamente
    en el mismo instante (igualdad al milisegundo, sin solapes de intervalos).
    """

    def __init__(self, store: SessionStore):
        self.store = store

    def has_conflict(
        self,
        user_id: str,
        candidate_start_at: datetime,
        exclude_session_id: int | None = None,
    ) -> bool:
        session_ids = [
            sid
            for sid in self.store.list_accepted_invites_for_user(user_id)
            if sid != exclude_session_id
        ]
        if not session_ids:
            return False

        candidate = to_utc_naive(candidate_start_at)
        starts = self.store.get_session_start_times(session_ids)
        return any(to_utc_naive(s) == candidate for s in starts)

import logging
from typing import Callable, Optional

from lockedin.core.auth import AuthUser
from lockedin.core.errors import (
    Conflict,
    DoubleBookingError,
    Forbidden,
    NotFound,
    Unauthenticated,
    ValidationError,
)
from lockedin.models.session_invite import (
    INVITE_ACCEPTED,
    INVITE_DECLINED,
    INVITE_PENDING,
    SessionInvite,
)
from lockedin.models.study_session import StudySession
from lockedin.schemas.session import SessionCreate
from lockedin.services.conflicts import ConflictDetector
from lockedin.services.membership import MembershipGate
from lockedin.services.notifications import (
    KIND_CONFLICT_ALERT,
    KIND_INVITATION,
    NotificationDispatcher,
    NotificationJob,
    conflict_alert_params,
    dispatch_notifications,
    invitation_params,
)
from lockedin.services.session_store import MemberContact, SessionStore, parse_start_at

log = logging.getLogger("lockedin.sessions")

RSVP_STATUSES = (INVITE_ACCEPTED, INVITE_DECLINED)
CONFLICT_DETAIL = "You already have an accepted session at this time"


def _run_now(fn, *args):
    fn(*args)


class SessionLifecycleController:
    """
    Orquesta sesiones de estudio: validación, gate de miembros, persistencia,
    fan-out de invitaciones y transiciones RSVP (pending -> accepted | declined).

    `defer` recibe (fn, *args) y decide cuándo se ejecuta el envío de emails;
    en la API es BackgroundTasks.add_task, así la respuesta no espera al fan-out.
    """

    def __init__(
        self,
        store: SessionStore,
        gate: MembershipGate,
        detector: ConflictDetector,
        dispatcher: NotificationDispatcher,
        *,
        organizer: str,
        base_url: str,
        support_url: str,
        stagger_seconds: float = 0.0,
        defer: Optional[Callable] = None,
    ):
        self.store = store
        self.gate = gate
        self.detector = detector
        self.dispatcher = dispatcher
        self.organizer = organizer
        self.base_url = base_url
        self.support_url = support_url
        self.stagger_seconds = stagger_seconds
        self.defer = defer or _run_now

    @staticmethod
    def _require_user(caller: Optional[AuthUser]) -> AuthUser:
        if caller is None:
            raise Unauthenticated("Unauthorized")
        return caller

    def _session_in_group(self, group_id: int, session_id: int) -> StudySession:
        session = self.store.get_session(session_id)
        if session is None or session.group_id != group_id:
            raise NotFound("Session not found")
        return session

    # --- create / list / delete ---

    def create(self, group_id: int, caller: Optional[AuthUser], payload: SessionCreate) -> StudySession:
        user = self._require_user(caller)
        self.gate.require_member(group_id, user.id)

        # validar antes de cualquier escritura
        starts = parse_start_at(payload.start_at, now=self.store.clock())

        session = self.store.create_session(
            group_id,
            user.id,
            starts,
            venue=payload.venue,
            topic=payload.topic,
            time_goal_minutes=payload.time_goal_minutes,
            content_goal=payload.content_goal,
        )

        members = [m for m in self.store.list_group_members(group_id) if m.user_id != user.id]
        if not members:
            log.info("session %s: no other members, skipping fan-out", session.id)
            return session

        creator = self.store.get_profile(user.id)
        creator_email = (creator.email if creator else None) or user.email
        creator_name = creator.full_name if creator else None

        jobs: list[NotificationJob] = []
        for member in members:
            if self.detector.has_conflict(member.user_id, session.start_at):
                log.info("session %s: member %s has a conflict, not invited", session.id, member.user_id)
                if creator_email:
                    jobs.append(self._conflict_job(session, creator_email, creator_name, member))
                continue

            self.store.upsert_invite(session.id, member.user_id, INVITE_PENDING)
            if not member.email:
                log.info("session %s: member %s has no email, invite stored only", session.id, member.user_id)
                continue
            jobs.append(
                NotificationJob(
                    KIND_INVITATION,
                    member.email,
                    invitation_params(
                        session,
                        user_id=member.user_id,
                        recipient_name=member.full_name,
                        organizer=self.organizer,
                        base_url=self.base_url,
                        support_url=self.support_url,
                    ),
                )
            )

        if jobs:
            self.defer(dispatch_notifications, self.dispatcher, jobs, self.stagger_seconds)
        return session

    def list_for_group(self, group_id: int, caller: Optional[AuthUser]) -> list[StudySession]:
        user = self._require_user(caller)
        self.gate.require_member(group_id, user.id)
        return self.store.list_sessions(group_id)

    def delete(self, group_id: int, session_id: int, caller: Optional[AuthUser]) -> None:
        user = self._require_user(caller)
        self.gate.require_member(group_id, user.id)

        session = self._session_in_group(group_id, session_id)
        if session.creator_id != user.id:
            raise Forbidden("Only the creator can delete")
        self.store.delete_session(session_id)

    # --- RSVP ---

    def respond(
        self,
        group_id: int,
        session_id: int,
        caller: Optional[AuthUser],
        status: Optional[str],
    ) -> SessionInvite:
        user = self._require_user(caller)
        self.gate.require_member(group_id, user.id)

        if status not in RSVP_STATUSES:
            raise ValidationError("status must be 'accepted' or 'declined'")

        session = self._session_in_group(group_id, session_id)
        return self._apply_rsvp(session, user.id, status)

    def respond_via_link(self, session_id: int, user_id: str, status: str) -> SessionInvite:
        # enlace de email: sin token ni gate de miembros, pero con el mismo control de conflictos
        if status not in RSVP_STATUSES:
            raise ValidationError("status must be 'accepted' or 'declined'")
        session = self.store.get_session(session_id)
        if session is None:
            raise NotFound("Session not found")
        return self._apply_rsvp(session, user_id, status)

    def _apply_rsvp(self, session: StudySession, user_id: str, status: str) -> SessionInvite:
        if status == INVITE_ACCEPTED and self.detector.has_conflict(
            user_id, session.start_at, exclude_session_id=session.id
        ):
            self._alert_creator(session, user_id)
            raise Conflict(CONFLICT_DETAIL)

        try:
            return self.store.upsert_invite(session.id, user_id, status)
        except DoubleBookingError:
            # otra aceptación concurrente ganó la carrera
            self._alert_creator(session, user_id)
            raise Conflict(CONFLICT_DETAIL) from None

    # --- conflict alerts ---

    def _conflict_job(
        self,
        session: StudySession,
        creator_email: str,
        creator_name: Optional[str],
        member: MemberContact,
    ) -> NotificationJob:
        return NotificationJob(
            KIND_CONFLICT_ALERT,
            creator_email,
            conflict_alert_params(
                session,
                creator_name=creator_name,
                conflict_member=member.full_name or member.email or member.user_id,
                organizer=self.organizer,
                support_url=self.support_url,
            ),
        )

    def _alert_creator(self, session: StudySession, user_id: str) -> None:
        creator = self.store.get_profile(session.creator_id)
        if creator is None or not creator.email:
            log.warning("session %s: creator has no email, conflict alert skipped", session.id)
            return

        profile = self.store.get_profile(user_id)
        member = MemberContact(
            user_id=user_id,
            email=profile.email if profile else None,
            full_name=profile.full_name if profile else None,
        )
        job = self._conflict_job(session, creator.email, creator.full_name, member)
        # la petición va a fallar con 409: se envía ya, no en background
        dispatch_notifications(self.dispatcher, [job])

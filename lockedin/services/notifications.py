import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Protocol

import httpx

from lockedin.core.timeutils import iso_z_from_utc_naive
from lockedin.models.study_session import StudySession

log = logging.getLogger("lockedin.notifications")

KIND_INVITATION = "invitation"
KIND_CONFLICT_ALERT = "conflict_alert"


@dataclass
class NotifyResult:
    success: bool
    error: Optional[str] = None
    response: Any = None


@dataclass(frozen=True)
class NotificationJob:
    kind: str
    recipient_email: str
    template_data: dict = field(default_factory=dict)


class NotificationDispatcher(Protocol):
    service: str

    def notify(self, kind: str, recipient_email: str, template_data: dict) -> NotifyResult: ...


class EmailJSDispatcher:
    """
    Envío vía API REST de EmailJS (plantillas).
    Respuesta "OK" en texto plano o JSON => éxito. Nunca lanza excepción.
    """

    service = "emailjs"

    def __init__(
        self,
        url: str,
        service_id: str,
        user_id: str,
        invitation_template_id: str,
        conflict_template_id: str = "",
        access_token: str = "",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.url = url
        self.service_id = service_id
        self.user_id = user_id
        self.invitation_template_id = invitation_template_id
        self.conflict_template_id = conflict_template_id
        self.access_token = access_token
        self.timeout = timeout
        self.transport = transport

    def _template_for(self, kind: str) -> str:
        if kind == KIND_CONFLICT_ALERT and self.conflict_template_id:
            return self.conflict_template_id
        return self.invitation_template_id

    def notify(self, kind: str, recipient_email: str, template_data: dict) -> NotifyResult:
        if not (self.service_id and self.user_id and self.invitation_template_id):
            log.error("EmailJS config incomplete, skipping %s to %s", kind, recipient_email)
            return NotifyResult(
                success=False,
                error="EmailJS configuration incomplete - check environment variables",
            )

        body = {
            "service_id": self.service_id,
            "template_id": self._template_for(kind),
            "user_id": self.user_id,
            "template_params": {**template_data, "email": recipient_email},
        }
        if self.access_token:
            body["accessToken"] = self.access_token

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.post(self.url, json=body)
        except httpx.RequestError as e:
            log.warning("emailjs request failed to=%s: %s", recipient_email, e)
            return NotifyResult(success=False, error=f"Email service failed: {e}")

        text = resp.text.strip()
        try:
            parsed = resp.json()
        except ValueError:
            if text != "OK":
                return NotifyResult(
                    success=False,
                    error=f"Email service failed: EmailJS returned: {text[:300]}",
                )
            parsed = {"status": "success", "message": "Email sent successfully"}

        if not resp.is_success:
            return NotifyResult(
                success=False,
                error=f"Email service failed: EmailJS API error: {resp.status_code} - {text[:300]}",
            )

        return NotifyResult(success=True, response=parsed)


class RecordingDispatcher:
    """
    No envía nada: guarda cada llamada. `fail_for` simula fallos por destinatario.
    Pensado para tests; solo conserva los últimos `max_records` envíos.
    """

    service = "recording"

    def __init__(self, fail_for: Iterable[str] = (), max_records: int = 1000):
        self.sent: list[NotificationJob] = []
        self.fail_for = set(fail_for)
        self.max_records = max_records

    def notify(self, kind: str, recipient_email: str, template_data: dict) -> NotifyResult:
        self.sent.append(NotificationJob(kind, recipient_email, dict(template_data)))
        if len(self.sent) > self.max_records:
            del self.sent[: len(self.sent) - self.max_records]
        if recipient_email in self.fail_for:
            return NotifyResult(success=False, error=f"delivery to {recipient_email} failed")
        return NotifyResult(success=True, response={"status": "recorded"})


def build_dispatcher(settings) -> NotificationDispatcher:
    if settings.EMAIL_BACKEND == "recording":
        return RecordingDispatcher()
    return EmailJSDispatcher(
        url=settings.EMAILJS_URL,
        service_id=settings.EMAILJS_SERVICE_ID,
        user_id=settings.EMAILJS_USER_ID,
        invitation_template_id=settings.EMAILJS_INVITATION_TEMPLATE_ID,
        conflict_template_id=settings.EMAILJS_CONFLICT_TEMPLATE_ID,
        access_token=settings.EMAILJS_ACCESS_TOKEN,
        timeout=settings.EMAIL_TIMEOUT_SECONDS,
    )


def dispatch_notifications(
    dispatcher: NotificationDispatcher,
    jobs: list[NotificationJob],
    stagger_seconds: float = 0.0,
    sleep: Callable[[float], None] = time.sleep,
) -> list[NotifyResult]:
    """Best-effort, at-most-once por destinatario. Un fallo no corta el resto."""
    results: list[NotifyResult] = []
    for index, job in enumerate(jobs):
        if index and stagger_seconds > 0:
            sleep(stagger_seconds)
        try:
            result = dispatcher.notify(job.kind, job.recipient_email, job.template_data)
        except Exception as e:
            log.exception("%s notification to %s raised", job.kind, job.recipient_email)
            result = NotifyResult(success=False, error=str(e))

        if result.success:
            log.info("%s notification sent to %s", job.kind, job.recipient_email)
        else:
            log.warning("%s notification to %s failed: %s", job.kind, job.recipient_email, result.error)
        results.append(result)
    return results


# --- parámetros de plantilla ---

def _time_goal(session: StudySession) -> str:
    if session.time_goal_minutes is None:
        return ""
    return f"{session.time_goal_minutes} minutes"


def rsvp_links(base_url: str, session_id: int, user_id: str) -> tuple[str, str]:
    base = base_url.rstrip("/")
    return (
        f"{base}/api/sessions/{session_id}/accept/{user_id}",
        f"{base}/api/sessions/{session_id}/decline/{user_id}",
    )


def invitation_params(
    session: StudySession,
    *,
    user_id: str,
    recipient_name: str | None,
    organizer: str,
    base_url: str,
    support_url: str,
) -> dict:
    accept_url, decline_url = rsvp_links(base_url, session.id, user_id)
    return {
        "name": recipient_name or "",
        "topic": session.topic or "Study session",
        "session_time": iso_z_from_utc_naive(session.start_at),
        "venue": session.venue or "",
        "time_goal": _time_goal(session),
        "content_goal": session.content_goal or "",
        "organizer": organizer,
        "action_url": accept_url,
        "decline_url": decline_url,
        "support_url": support_url,
    }


def conflict_alert_params(
    session: StudySession,
    *,
    creator_name: str | None,
    conflict_member: str,
    organizer: str,
    support_url: str,
) -> dict:
    return {
        "name": creator_name or "",
        "topic": f"Scheduling conflict: {session.topic or 'Study session'}",
        "session_time": iso_z_from_utc_naive(session.start_at),
        "venue": session.venue or "",
        "time_goal": _time_goal(session),
        "content_goal": f"{conflict_member} already has an accepted session at this time.",
        "conflict_member": conflict_member,
        "organizer": organizer,
        "action_url": support_url,
        "support_url": support_url,
    }

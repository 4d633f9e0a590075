import logging
from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from lockedin.api.deps import get_dispatcher
from lockedin.core.config import settings
from lockedin.schemas.email import EmailSendRequest
from lockedin.services.notifications import KIND_INVITATION, NotificationDispatcher

log = logging.getLogger("lockedin.email")

router = APIRouter(prefix="/email", tags=["email"])

# fijos en la plantilla: no se aceptan del cliente
_FIXED_PARAMS = {"organizer", "action_url", "support_url", "from_name"}


@router.get("/health")
def email_health():
    return {
        "status": "OK",
        "service": "Email API",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/send")
def send_email(
    payload: EmailSendRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    if not payload.to or not payload.subject or not payload.message:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Missing required fields: to, subject, message"},
        )

    try:
        validate_email(payload.to, check_deliverability=False)
    except EmailNotValidError:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid email address format"},
        )

    extra = {k: v for k, v in (payload.model_extra or {}).items() if k not in _FIXED_PARAMS}
    template_params = {
        "name": payload.recipient_name or payload.to.split("@")[0],
        "topic": payload.topic or payload.subject,
        "session_time": payload.session_time or "",
        "venue": payload.venue or "",
        "time_goal": payload.time_goal or "",
        "content_goal": payload.content_goal or payload.message,
        "organizer": settings.EMAIL_ORGANIZER,
        "action_url": settings.PUBLIC_BASE_URL,
        "support_url": settings.SUPPORT_URL,
        "email": payload.to,
        **extra,
    }

    result = dispatcher.notify(KIND_INVITATION, payload.to, template_params)
    if not result.success:
        log.warning("public email send to %s failed: %s", payload.to, result.error)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": result.error or "Failed to send email",
                "to": payload.to,
                "template_params": template_params,
            },
        )

    return {
        "success": True,
        "message": "Email sent successfully",
        "to": payload.to,
        "subject": payload.subject,
        "service": dispatcher.service,
        "template_params": template_params,
    }

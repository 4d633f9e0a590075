import anyio
from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from lockedin.api.deps import get_session_controller
from lockedin.core.auth import AuthUser, get_current_user_optional
from lockedin.core.errors import Conflict, NotFound
from lockedin.core.timeutils import iso_z_from_utc_naive
from lockedin.models.session_invite import INVITE_ACCEPTED, INVITE_DECLINED
from lockedin.realtime.sse import broadcast  # ✅ SSE
from lockedin.schemas.session import (
    InvitePublic,
    RsvpRequest,
    RsvpResponse,
    SessionCreate,
    SessionEnvelope,
    SessionList,
    SessionPublic,
)
from lockedin.services.sessions import SessionLifecycleController

router = APIRouter(tags=["sessions"])


@router.post("/groups/{group_id}/sessions", response_model=SessionEnvelope)
def create_session(
    group_id: int,
    payload: SessionCreate | None = None,
    controller: SessionLifecycleController = Depends(get_session_controller),
    current_user: AuthUser | None = Depends(get_current_user_optional),
):
    session = controller.create(group_id, current_user, payload or SessionCreate())

    anyio.from_thread.run(
        broadcast,
        "SESSION_CREATED",
        {
            "id": session.id,
            "group_id": session.group_id,
            "start_at": iso_z_from_utc_naive(session.start_at),
        },
    )

    return SessionEnvelope(session=SessionPublic.from_model(session))


@router.get("/groups/{group_id}/sessions", response_model=SessionList)
def list_sessions(
    group_id: int,
    controller: SessionLifecycleController = Depends(get_session_controller),
    current_user: AuthUser | None = Depends(get_current_user_optional),
):
    sessions = controller.list_for_group(group_id, current_user)
    return SessionList(sessions=[SessionPublic.from_model(s) for s in sessions])


@router.delete("/groups/{group_id}/sessions/{session_id}")
def delete_session(
    group_id: int,
    session_id: int,
    controller: SessionLifecycleController = Depends(get_session_controller),
    current_user: AuthUser | None = Depends(get_current_user_optional),
):
    controller.delete(group_id, session_id, current_user)

    anyio.from_thread.run(
        broadcast,
        "SESSION_DELETED",
        {"id": session_id, "group_id": group_id},
    )

    return {"message": "Session deleted"}


@router.post("/groups/{group_id}/sessions/{session_id}/respond", response_model=RsvpResponse)
def respond_to_session(
    group_id: int,
    session_id: int,
    payload: RsvpRequest | None = None,
    controller: SessionLifecycleController = Depends(get_session_controller),
    current_user: AuthUser | None = Depends(get_current_user_optional),
):
    status = payload.status if payload else None
    invite = controller.respond(group_id, session_id, current_user, status)

    anyio.from_thread.run(
        broadcast,
        "SESSION_RSVP",
        {"group_id": group_id, "session_id": session_id, "user_id": invite.user_id, "status": invite.status},
    )

    return RsvpResponse(
        message=f"Session {invite.status}",
        invite=InvitePublic.model_validate(invite),
    )


# --- enlaces de los emails (sin token) ---

def _rsvp_from_link(
    controller: SessionLifecycleController,
    session_id: int,
    user_id: str,
    status: str,
) -> PlainTextResponse:
    try:
        invite = controller.respond_via_link(session_id, user_id, status)
    except NotFound:
        return PlainTextResponse("Session not found.", status_code=404)
    except Conflict:
        return PlainTextResponse(
            "You already accepted another session at this time. The organizer has been notified.",
            status_code=409,
        )

    session = controller.store.get_session(session_id)
    group_id = session.group_id if session else None
    anyio.from_thread.run(
        broadcast,
        "SESSION_RSVP",
        {"group_id": group_id, "session_id": session_id, "user_id": invite.user_id, "status": invite.status},
    )

    return PlainTextResponse(f"You have {status} the study session.")


@router.get("/sessions/{session_id}/accept/{user_id}", response_class=PlainTextResponse)
def accept_from_link(
    session_id: int,
    user_id: str,
    controller: SessionLifecycleController = Depends(get_session_controller),
):
    return _rsvp_from_link(controller, session_id, user_id, INVITE_ACCEPTED)


@router.get("/sessions/{session_id}/decline/{user_id}", response_class=PlainTextResponse)
def decline_from_link(
    session_id: int,
    user_id: str,
    controller: SessionLifecycleController = Depends(get_session_controller),
):
    return _rsvp_from_link(controller, session_id, user_id, INVITE_DECLINED)

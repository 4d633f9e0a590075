import anyio
from fastapi import APIRouter, Depends, Query

from lockedin.api.deps import get_message_service
from lockedin.core.auth import AuthUser, get_current_user_optional
from lockedin.realtime.sse import broadcast
from lockedin.schemas.message import MessageCreate
from lockedin.services.messages import GroupMessageService

router = APIRouter(tags=["messages"])


@router.get("/groups/{group_id}/messages")
def list_messages(
    group_id: int,
    session_id: int | None = Query(None, alias="sessionId"),
    limit: int = Query(100, ge=1, le=500),
    service: GroupMessageService = Depends(get_message_service),
    current_user: AuthUser | None = Depends(get_current_user_optional),
):
    messages = service.list_messages(group_id, current_user, session_id=session_id, limit=limit)
    return {"messages": messages}


@router.post("/groups/{group_id}/messages")
def post_message(
    group_id: int,
    payload: MessageCreate | None = None,
    service: GroupMessageService = Depends(get_message_service),
    current_user: AuthUser | None = Depends(get_current_user_optional),
):
    message = service.post_message(group_id, current_user, payload or MessageCreate())

    anyio.from_thread.run(
        broadcast,
        "MESSAGE_POSTED",
        {"id": message.id, "group_id": group_id, "session_id": message.session_id},
    )

    return {"message": message}

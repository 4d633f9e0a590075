from functools import lru_cache

from fastapi import BackgroundTasks, Depends
from sqlalchemy.orm import Session

from lockedin.core.config import settings
from lockedin.core.database import get_db
from lockedin.services.conflicts import ConflictDetector
from lockedin.services.membership import MembershipGate
from lockedin.services.messages import GroupMessageService
from lockedin.services.notifications import NotificationDispatcher, build_dispatcher
from lockedin.services.session_store import SessionStore
from lockedin.services.sessions import SessionLifecycleController

__all__ = ["get_db", "get_dispatcher", "get_session_controller", "get_message_service"]


@lru_cache
def get_dispatcher() -> NotificationDispatcher:
    return build_dispatcher(settings)


def get_session_controller(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> SessionLifecycleController:
    store = SessionStore(db)
    return SessionLifecycleController(
        store,
        MembershipGate(db),
        ConflictDetector(store),
        dispatcher,
        organizer=settings.EMAIL_ORGANIZER,
        base_url=settings.PUBLIC_BASE_URL,
        support_url=settings.SUPPORT_URL,
        stagger_seconds=settings.EMAIL_STAGGER_SECONDS,
        defer=background_tasks.add_task,
    )


def get_message_service(db: Session = Depends(get_db)) -> GroupMessageService:
    return GroupMessageService(db, MembershipGate(db))

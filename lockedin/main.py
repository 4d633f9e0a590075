import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from lockedin.core.config import settings
from lockedin.core.database import Base, engine
from lockedin.core.errors import AppError
from lockedin.models.profile import Profile  # noqa: F401
from lockedin.models.group import Group  # noqa: F401
from lockedin.models.membership import GroupMember  # noqa: F401
from lockedin.models.study_session import StudySession  # noqa: F401
from lockedin.models.session_invite import SessionInvite  # noqa: F401
from lockedin.models.group_message import GroupMessage  # noqa: F401

from lockedin.api.routes.sessions import router as sessions_router
from lockedin.api.routes.messages import router as messages_router
from lockedin.api.routes.email import router as email_router

# ✅ SSE
from lockedin.realtime.sse import router as sse_router

log = logging.getLogger("lockedin.main")

Base.metadata.create_all(bind=engine)

app = FastAPI(title="LockedIn API", version="0.1.0")

# ✅ CORS primero
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    allow_credentials=False,
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.detail, exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(SQLAlchemyError)
async def db_error_handler(request: Request, exc: SQLAlchemyError):
    log.error("%s %s: datastore error", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ✅ Routers después
app.include_router(sessions_router, prefix="/api")
app.include_router(messages_router, prefix="/api")
app.include_router(email_router, prefix="/api")
app.include_router(sse_router, prefix="/api")


@app.get("/")
def root():
    return {"ok": True, "service": "LockedIn backend"}


@app.get("/api/health")
def health():
    return {
        "status": "OK",
        "message": "Service is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

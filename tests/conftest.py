# tests/conftest.py
import os

# antes de importar lockedin: Settings se instancia al importar
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EMAIL_BACKEND", "recording")
os.environ.setdefault("EMAIL_STAGGER_SECONDS", "0")
os.environ.setdefault("AUTH_VERIFIER", "jwt")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.testclient import TestClient

from lockedin.api.deps import get_dispatcher
from lockedin.core.database import Base, get_db
from lockedin.main import app
from lockedin.services.notifications import RecordingDispatcher

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture(scope="function")
def client(db_session, dispatcher):
    """
    TestClient contra la SQLite en memoria y con el dispatcher que solo graba.
    Auth real: los tokens se firman con tests.utils.auth.
    """

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()

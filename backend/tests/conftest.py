import os
import sqlite3
import tempfile
from contextlib import contextmanager

# Settings and the engine are built at import time, so the environment has to
# be in place before anything from authgate is imported.
_DB_DIR = tempfile.mkdtemp(prefix="authgate-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'authgate_test.db')}"
os.environ["ENVIRONMENT"] = "test"
os.environ["ACCESS_TOKEN_SECRET"] = "test-access-secret-0123456789abcdef0123456789"
os.environ["REFRESH_TOKEN_SECRET"] = "test-refresh-secret-0123456789abcdef012345678"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["REGISTRY_LOCK_TIMEOUT_SECONDS"] = "1"
os.environ["DB_INIT_MODE"] = "create_all"
os.environ["LOG_FILE"] = ""
os.environ["ADMIN_EMAIL"] = "admin@example.com"
os.environ["ADMIN_PASSWORD"] = "admin-password-1"

import pytest  # noqa: E402

from authgate.core.database import Base, SessionLocal, engine  # noqa: E402
from authgate.schemas.user import UserCreate, UserRole  # noqa: E402
from authgate.services.rate_limiter import rate_limiter  # noqa: E402
from authgate.services.user_service import user_service  # noqa: E402

ADMIN_EMAIL = os.environ["ADMIN_EMAIL"]
ADMIN_PASSWORD = os.environ["ADMIN_PASSWORD"]
DEFAULT_PASSWORD = "correct-horse-battery"


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make_user(email="alice@example.com", password=DEFAULT_PASSWORD, role=UserRole.USER, name=None):
        return user_service.create_user(
            db,
            UserCreate(email=email, name=name or email.split("@")[0], password=password, role=role),
        )
    return _make_user


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from authgate.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def locked_database(db):
    """Hold an exclusive SQLite lock so other connections time out"""
    @contextmanager
    def _locked():
        db.commit()
        holder = sqlite3.connect(engine.url.database, isolation_level=None)
        holder.execute("BEGIN EXCLUSIVE")
        try:
            yield
        finally:
            holder.execute("ROLLBACK")
            holder.close()
    return _locked

import os
import uuid

# Settings are read at import time, so the test environment must be in place
# before anything under app/ is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("JWT_ALGORITHM", "HS256")

import pytest  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import app.models  # noqa: E402,F401
from app.config import settings  # noqa: E402
from app.db import Base  # noqa: E402
from app.models.company import Company, User  # noqa: E402
from app.models.customer import Customer  # noqa: E402
from app.models.enums import UserRole  # noqa: E402
from app.services import query_cache as query_cache_module  # noqa: E402
from app.services.auth import build_auth_context  # noqa: E402
from app.websocket import manager as manager_module  # noqa: E402


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(bind=connection, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture(autouse=True)
def _fresh_singletons(monkeypatch):
    """Each test gets its own query cache and connection manager."""
    monkeypatch.setattr(query_cache_module, "_cache", None)
    monkeypatch.setattr(manager_module, "_manager", None)
    yield


def _unique_email() -> str:
    return f"test-{uuid.uuid4().hex}@example.com"


def make_user(db, company=None, role=UserRole.agent, first_name="Test", last_name="Agent", is_active=True):
    user = User(
        id=f"user-{uuid.uuid4().hex[:12]}",
        email=_unique_email(),
        first_name=first_name,
        last_name=last_name,
        role=role,
        company_id=company.id if company is not None else None,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_token(sub: str, **claims) -> str:
    payload = {"sub": sub, **claims}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


@pytest.fixture()
def company(db_session):
    company = Company(name="Acme Support", max_users=5)
    db_session.add(company)
    db_session.commit()
    db_session.refresh(company)
    return company


@pytest.fixture()
def other_company(db_session):
    company = Company(name="Globex Care", max_users=5)
    db_session.add(company)
    db_session.commit()
    db_session.refresh(company)
    return company


@pytest.fixture()
def agent(db_session, company):
    return make_user(db_session, company, first_name="Jane", last_name="Doe")


@pytest.fixture()
def company_admin(db_session, company):
    return make_user(db_session, company, role=UserRole.company_admin, first_name="Carl", last_name="Admin")


@pytest.fixture()
def super_admin(db_session):
    return make_user(db_session, None, role=UserRole.super_admin, first_name="Sue", last_name="Root")


@pytest.fixture()
def customer(db_session, company):
    customer = Customer(
        name="Maria Lopez",
        phone="+15550001111",
        email="maria@example.com",
        company_id=company.id,
    )
    db_session.add(customer)
    db_session.commit()
    db_session.refresh(customer)
    return customer


@pytest.fixture()
def auth_as():
    """Holder for the user the API client authenticates as."""

    class _AuthHolder:
        user = None

        def __call__(self, user):
            self.user = user
            return user

    return _AuthHolder()


@pytest.fixture()
def client(db_session, auth_as):
    from fastapi import HTTPException
    from fastapi.testclient import TestClient

    from app.db import get_db
    from app.main import app
    from app.services.auth_dependencies import require_user_auth

    def _override_get_db():
        yield db_session

    def _override_auth():
        if auth_as.user is None:
            raise HTTPException(status_code=401, detail="Unauthorized")
        db_session.refresh(auth_as.user)
        return build_auth_context(auth_as.user)

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[require_user_auth] = _override_auth
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def user_factory(db_session):
    def _make(company=None, **kwargs):
        return make_user(db_session, company, **kwargs)

    return _make


@pytest.fixture()
def token_factory():
    return make_token

"""
Pytest configuration and fixtures for backend tests.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from entity_shared.infrastructure.db import enable_sqlite_foreign_keys, get_db
from entity_shared.security.auth import create_access_token
from entity_api.main import create_app
from entity_api.models import Base
from entity_api.services.permissions import MemoryPolicyAdapter


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def engine():
    """
    Fresh in-memory database per test.
    StaticPool keeps one connection so every session sees the same data.
    """
    test_engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(test_engine)
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine):
    """Session shared by the test body and every request it makes."""
    TestingSessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def policy_adapter():
    return MemoryPolicyAdapter()


@pytest.fixture
def app(engine, db_session, policy_adapter):
    """Application wired to the test database and in-memory policies."""
    application = create_app(engine=engine, policy_adapter=policy_adapter, create_schema=False)

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture
def kernel(app):
    """Registries, service, enforcer and binder of the test application."""
    return app.state.kernel


@pytest.fixture
def service(kernel):
    return kernel.service


@pytest.fixture
def client(app):
    """
    Create a test client with database session override.
    """
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers_for():
    """
    Build bearer headers for a subject and roles.

    Usage:
        headers = auth_headers_for("user-1", ["user"])
    """

    def _headers(user_id: str = "user-1", roles=("user",)) -> dict[str, str]:
        token = create_access_token(user_id, list(roles))
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def user_headers(auth_headers_for):
    """Plain user: read and create on every entity."""
    return auth_headers_for("user-1", ["user"])


@pytest.fixture
def admin_headers(auth_headers_for):
    return auth_headers_for("admin-1", ["administrator"])

"""
Tests for middleware and infrastructure components.
"""

import pytest
from unittest.mock import MagicMock
from fastapi import FastAPI
from fastapi.testclient import TestClient

from entity_shared.config.settings import settings
from entity_shared.infrastructure.correlation import (
    CorrelationIdFilter,
    CorrelationIdMiddleware,
    get_request_id,
    request_id_var,
)
from entity_shared.infrastructure.db import in_transaction, safe_commit, transaction
from entity_shared.infrastructure.deadline import remaining
from entity_api.core.cors import DEFAULT_CORS_ORIGINS, get_cors_origins
from entity_api.core.middlewares import (
    DeadlineMiddleware,
    RegistryFreezeMiddleware,
    register_middlewares,
)


# =============================================================================
# DeadlineMiddleware Tests
# =============================================================================

class TestDeadlineMiddleware:
    """Tests for per-request deadline binding."""

    @pytest.fixture
    def app_with_deadline(self):
        app = FastAPI()
        app.add_middleware(DeadlineMiddleware)

        @app.get("/remaining")
        def remaining_endpoint():
            return {"remaining": remaining()}

        return app

    def test_default_deadline(self, app_with_deadline):
        """Should bind the configured timeout when no header is sent."""
        client = TestClient(app_with_deadline)
        left = client.get("/remaining").json()["remaining"]

        assert 0 < left <= settings.request_timeout_seconds

    def test_header_shortens_deadline(self, app_with_deadline):
        """Should honour a shorter X-Request-Timeout."""
        client = TestClient(app_with_deadline)
        left = client.get("/remaining", headers={"X-Request-Timeout": "2"}).json()["remaining"]

        assert 0 < left <= 2

    def test_header_cannot_extend_deadline(self, app_with_deadline):
        """Should clamp to the configured timeout."""
        client = TestClient(app_with_deadline)
        left = client.get("/remaining", headers={"X-Request-Timeout": "99999"}).json()["remaining"]

        assert left <= settings.request_timeout_seconds

    @pytest.mark.parametrize("value", ["soon", "-1", "0"])
    def test_invalid_header_is_ignored(self, app_with_deadline, value):
        """Should fall back to the configured timeout."""
        client = TestClient(app_with_deadline)
        left = client.get("/remaining", headers={"X-Request-Timeout": value}).json()["remaining"]

        assert 0 < left <= settings.request_timeout_seconds

    def test_no_deadline_outside_requests(self):
        assert remaining() is None


# =============================================================================
# RegistryFreezeMiddleware Tests
# =============================================================================

class TestRegistryFreezeMiddleware:
    def test_freezes_on_first_request(self):
        """Should freeze the kernel's registry once, on the first request."""
        registry = MagicMock()
        registry.is_frozen = False
        app = FastAPI()
        app.state.kernel = MagicMock(registry=registry)
        app.add_middleware(RegistryFreezeMiddleware)

        @app.get("/ping")
        def ping():
            return {}

        client = TestClient(app)
        client.get("/ping")
        registry.freeze.assert_called_once()

        registry.is_frozen = True
        client.get("/ping")
        registry.freeze.assert_called_once()


# =============================================================================
# CorrelationIdMiddleware Tests
# =============================================================================

class TestCorrelationIdMiddleware:
    """Tests for correlation ID middleware."""

    @pytest.fixture
    def app_with_correlation(self):
        app = FastAPI()
        app.add_middleware(CorrelationIdMiddleware)

        @app.get("/test")
        def test_endpoint():
            return {"request_id": get_request_id()}

        return app

    def test_generates_request_id_when_not_provided(self, app_with_correlation):
        """Should generate a new request ID when not provided."""
        client = TestClient(app_with_correlation)
        response = client.get("/test")

        request_id = response.headers.get("X-Request-ID")
        assert request_id is not None
        assert len(request_id) == 36
        assert response.json()["request_id"] == request_id

    def test_uses_provided_request_id(self, app_with_correlation):
        """Should use the provided X-Request-ID header."""
        client = TestClient(app_with_correlation)
        response = client.get("/test", headers={"X-Request-ID": "my-custom-request-id-12345"})

        assert response.headers.get("X-Request-ID") == "my-custom-request-id-12345"
        assert response.json()["request_id"] == "my-custom-request-id-12345"


# =============================================================================
# CorrelationIdFilter Tests
# =============================================================================

class TestCorrelationIdFilter:
    """Tests for correlation ID logging filter."""

    def test_adds_request_id_to_log_record(self):
        filter_obj = CorrelationIdFilter()
        token = request_id_var.set("test-request-123")
        try:
            record = MagicMock()
            assert filter_obj.filter(record) is True
            assert record.request_id == "test-request-123"
        finally:
            request_id_var.reset(token)

    def test_uses_dash_when_no_request_id(self):
        filter_obj = CorrelationIdFilter()
        token = request_id_var.set("")
        try:
            record = MagicMock()
            assert filter_obj.filter(record) is True
            assert record.request_id == "-"
        finally:
            request_id_var.reset(token)


# =============================================================================
# Transaction helpers
# =============================================================================

def mock_session():
    db = MagicMock()
    db.info = {}
    return db


class TestSafeCommit:
    """Tests for safe_commit utility."""

    def test_commits_successfully(self):
        db = mock_session()
        safe_commit(db)
        db.commit.assert_called_once()
        db.rollback.assert_not_called()

    def test_rollbacks_on_error(self):
        db = mock_session()
        db.commit.side_effect = RuntimeError("Database error")

        with pytest.raises(RuntimeError, match="Database error"):
            safe_commit(db)

        db.rollback.assert_called_once()


class TestTransaction:
    """Tests for the unit-of-work context manager."""

    def test_outermost_block_commits(self):
        db = mock_session()
        with transaction(db):
            assert in_transaction(db)
        assert not in_transaction(db)
        db.commit.assert_called_once()

    def test_nested_blocks_join_the_outer_one(self):
        db = mock_session()
        with transaction(db):
            with transaction(db):
                pass
            db.commit.assert_not_called()
        db.commit.assert_called_once()

    def test_failure_rolls_back_once(self):
        db = mock_session()
        with pytest.raises(ValueError):
            with transaction(db):
                with transaction(db):
                    raise ValueError("hook failed")

        db.rollback.assert_called_once()
        db.commit.assert_not_called()
        assert not in_transaction(db)


# =============================================================================
# Registration
# =============================================================================

class TestRegisterMiddlewares:
    def test_registers_all_middlewares(self):
        app = FastAPI()
        register_middlewares(app)

        middleware_classes = [m.cls for m in app.user_middleware]
        assert RegistryFreezeMiddleware in middleware_classes
        assert DeadlineMiddleware in middleware_classes
        assert CorrelationIdMiddleware in middleware_classes


class TestCors:
    def test_default_origins(self, monkeypatch):
        monkeypatch.setattr(settings, "allowed_origins", "")
        assert get_cors_origins() == DEFAULT_CORS_ORIGINS

    def test_configured_origins(self, monkeypatch):
        monkeypatch.setattr(settings, "allowed_origins", "https://a.example, https://b.example,")
        assert get_cors_origins() == ["https://a.example", "https://b.example"]

"""Integration tests for API endpoints."""

import pytest
from httpx import AsyncClient, ASGITransport

from src.api.exception_handlers import status_code_for
from src.api.routes.sessions import _progress_events
from src.core.exceptions import (
    AccountSuspendedError,
    IdentityError,
    PersistenceWriteFailedError,
    SessionBusyError,
)
from src.domain.models.account import AdminUser, User
from src.services.progression_service import ProgressionController

AUTH = {"Authorization": "Bearer good-token"}


@pytest.fixture
def app_with_context(context, identity, user):
    """App wired to the test context; the identity gateway accepts good-token."""
    from src.main import app

    async def current_user(token):
        return user if token == "good-token" else None

    identity.get_current_user.side_effect = current_user
    app.state.context = context
    yield app
    app.state.context = None


@pytest.fixture
async def client(app_with_context):
    transport = ASGITransport(app=app_with_context)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# =============================================================================
# System
# =============================================================================


async def test_root_endpoint(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["name"] == "Carry On"
    assert "X-Request-ID" in response.headers


async def test_health_endpoint(client):
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "database" in data["components"]


async def test_liveness_and_readiness(client):
    assert (await client.get("/health/live")).json()["status"] == "alive"
    assert (await client.get("/health/ready")).json()["status"] == "ready"


# =============================================================================
# Auth
# =============================================================================


async def test_missing_token_is_401(client):
    response = await client.get("/sessions/current")

    assert response.status_code == 401
    assert response.json()["error"]["type"] == "AuthRequiredError"


async def test_invalid_token_is_401(client):
    response = await client.get("/auth/me", headers={"Authorization": "Bearer expired"})

    assert response.status_code == 401


async def test_me(client):
    response = await client.get("/auth/me", headers=AUTH)

    assert response.status_code == 200
    assert response.json() == {
        "user": {"id": "user-1", "email": "ada@example.com", "created_at": None, "last_sign_in_at": None},
        "is_admin": False,
    }


async def test_sign_in_failure_is_400(client, identity):
    identity.sign_in.side_effect = IdentityError("Invalid login credentials")

    response = await client.post(
        "/auth/sign-in", json={"email": "ada@example.com", "password": "wrongpass"}
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Invalid login credentials"


async def test_sign_up_pending_confirmation(client, identity):
    identity.sign_up.return_value = None

    response = await client.post(
        "/auth/sign-up", json={"email": "new@example.com", "password": "secret12"}
    )

    assert response.status_code == 201
    assert response.json()["confirmation_required"] is True


async def test_suspended_user_is_403(client, context, user):
    await context.admin().create_suspension(user.id, "admin-1", "spam")

    response = await client.get("/sessions/current", headers=AUTH)

    assert response.status_code == 403
    assert response.json()["error"]["type"] == "AccountSuspendedError"


# =============================================================================
# Sessions
# =============================================================================


async def test_interview_flow(client, context):
    current = await client.get("/sessions/current", headers=AUTH)
    assert current.status_code == 200
    session_id = current.json()["id"]
    assert current.json()["progress_percentage"] == 0

    turn = await client.post(
        f"/sessions/{session_id}/turns", json={"text": "I grew up near the sea."}, headers=AUTH
    )
    assert turn.status_code == 200
    body = turn.json()
    assert body["assistant_text"] == "Question 1?"
    assert body["fallback_used"] is False
    assert body["progress"]["questions_answered"] == 1
    assert body["progress"]["current_category_id"] == "early_life"

    messages = await client.get(f"/sessions/{session_id}/messages", headers=AUTH)
    assert [m["role"] for m in messages.json()["messages"]] == ["user", "assistant"]

    progress = await client.get(f"/sessions/{session_id}/progress", headers=AUTH)
    assert progress.json()["phase"] == "interview"
    assert len(progress.json()["categories"]) == 9

    again = await client.get("/sessions/current", headers=AUTH)
    assert again.json()["id"] == session_id


async def test_turn_with_generation_failure_returns_fallback(
    client, session, llm_client, failing_llm_error, context
):
    llm_client.fail_with = failing_llm_error

    response = await client.post(
        f"/sessions/{session.id}/turns", json={"text": "Hello"}, headers=AUTH
    )

    assert response.status_code == 200
    assert response.json()["fallback_used"] is True
    assert response.json()["assistant_text"] == context.config.fallback_reply


async def test_empty_turn_rejected(client, session):
    response = await client.post(f"/sessions/{session.id}/turns", json={"text": ""}, headers=AUTH)

    assert response.status_code == 422


async def test_reset_then_read_is_404(client, session):
    await client.post(f"/sessions/{session.id}/turns", json={"text": "Hi"}, headers=AUTH)

    reset = await client.delete(f"/sessions/{session.id}", headers=AUTH)
    assert reset.status_code == 204

    for path in ("", "/messages", "/progress"):
        response = await client.get(f"/sessions/{session.id}{path}", headers=AUTH)
        assert response.status_code == 404


async def test_other_users_session_is_404(client, context):
    from src.services.session_service import SessionService

    other = await SessionService(context).create_session(User(id="someone-else"))

    response = await client.get(f"/sessions/{other.id}", headers=AUTH)

    assert response.status_code == 404


async def test_insights_grouped(client, context, session):
    from src.services.insight_service import InsightService

    await InsightService(context).record_insight(
        session.id, "origins", "Porto", "Grew up in Porto", 0.9, "early_life"
    )

    response = await client.get(f"/sessions/{session.id}/insights", headers=AUTH)

    data = response.json()
    assert data["total"] == 1
    assert data["groups"]["Early Life & Family"][0]["confidence_band"] == "high"


async def test_progress_events_format(context, session):
    events = _progress_events(ProgressionController(context), session.id)

    first = await events.__anext__()
    await events.aclose()

    assert first.startswith("event: progress\ndata: {")
    assert first.endswith("\n\n")


# =============================================================================
# Shell
# =============================================================================


async def test_shell_view_and_dashboard(client):
    view = await client.get("/shell/view", params={"requested": "corpus"}, headers=AUTH)
    assert view.json()["view"] == "interview"

    admin_view = await client.get("/shell/view", params={"requested": "admin"}, headers=AUTH)
    assert admin_view.json()["view"] == "interview"

    dashboard = await client.get("/shell/dashboard", headers=AUTH)
    assert dashboard.json()["test_mode_unlocked"] is False
    assert dashboard.json()["progress_percentage"] == 0


# =============================================================================
# Admin
# =============================================================================


async def test_admin_routes_require_admin(client):
    response = await client.get("/admin/users", headers=AUTH)

    assert response.status_code == 403
    assert response.json()["error"]["type"] == "AdminRequiredError"


async def test_admin_suspend_and_audit(client, context, identity, user):
    await context.admin().add_admin(AdminUser(id=user.id, email=user.email))
    identity.list_users.return_value = [user, User(id="user-9", email="zed@example.com")]

    suspend = await client.post(
        "/admin/users/user-9/suspend", json={"reason": "spam"}, headers=AUTH
    )
    assert suspend.status_code == 204

    users = await client.get("/admin/users", headers=AUTH)
    assert users.json()["stats"] == {"total_users": 2, "active_users": 1, "suspended_users": 1}

    audit = await client.get("/admin/audit-log", headers=AUTH)
    entry = audit.json()["entries"][0]
    assert entry["action"] == "SUSPEND_USER"
    assert entry["target_email"] == "zed@example.com"
    assert entry["admin_email"] == "ada@example.com"


# =============================================================================
# Error mapping
# =============================================================================


def test_status_codes_for_errors():
    assert status_code_for(SessionBusyError("busy")) == 409
    assert status_code_for(PersistenceWriteFailedError("disk")) == 503
    assert status_code_for(AccountSuspendedError("no")) == 403
    assert status_code_for(IdentityError("down", status_code=503)) == 503

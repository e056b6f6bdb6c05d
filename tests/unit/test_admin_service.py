"""Tests for admin portal operations."""

from unittest.mock import AsyncMock

import pytest

from src.core.exceptions import (
    AdminRequiredError,
    PersistenceWriteFailedError,
    SessionBusyError,
    ValidationError,
)
from src.domain.models.account import AdminAction, AdminUser, User
from src.services.admin_service import AdminService
from src.services.insight_service import InsightService
from src.services.progression_service import ProgressionController


@pytest.fixture
def service(context):
    return AdminService(context)


@pytest.fixture
async def admin(context):
    return await context.admin().add_admin(AdminUser(id="admin-1", email="root@example.com"))


@pytest.fixture
def directory(identity):
    identity.list_users.return_value = [
        User(id="admin-1", email="root@example.com"),
        User(id="user-1", email="ada@example.com"),
        User(id="user-2", email="grace@example.com"),
    ]
    return identity


async def test_require_admin(service, admin):
    assert (await service.require_admin(User(id="admin-1"))).id == "admin-1"
    with pytest.raises(AdminRequiredError):
        await service.require_admin(User(id="user-1"))


async def test_list_users_joins_suspensions(service, admin, directory):
    await service.suspend_user(admin, "user-2", "abusive content")

    accounts, stats = await service.list_users()

    assert {a.id: a.is_suspended for a in accounts} == {
        "admin-1": False,
        "user-1": False,
        "user-2": True,
    }
    assert (stats.total_users, stats.active_users, stats.suspended_users) == (3, 2, 1)


async def test_list_users_search_filters_accounts_not_stats(service, directory):
    accounts, stats = await service.list_users(search="GRACE")

    assert [a.id for a in accounts] == ["user-2"]
    assert stats.total_users == 3


async def test_suspend_requires_reason(service, admin):
    with pytest.raises(ValidationError):
        await service.suspend_user(admin, "user-1", "  ")


async def test_actions_append_audit_entries(service, context, admin, directory):
    await service.suspend_user(admin, "user-1", "spam")
    await service.unsuspend_user(admin, "user-1")
    await service.reset_password(admin, "user-1", "ada@example.com")
    await service.delete_user(admin, "user-2", "grace@example.com")

    entries = await service.list_audit_log()

    assert [e.action for e in entries] == [
        AdminAction.DELETE_USER.value,
        AdminAction.RESET_PASSWORD.value,
        AdminAction.UNSUSPEND_USER.value,
        AdminAction.SUSPEND_USER.value,
    ]
    assert entries[-1].details == {"reason": "spam"}
    assert entries[0].admin_email == "root@example.com"
    assert entries[1].target_email == "ada@example.com"
    directory.delete_user.assert_awaited_once_with("user-2")
    directory.send_password_reset.assert_awaited_once_with("ada@example.com")


async def test_audit_emails_fall_back_to_unknown(service, context, identity):
    await context.admin().append_audit("DELETE_USER", "gone-admin", "gone-user", {})
    identity.list_users.return_value = []

    entries = await service.list_audit_log()

    assert entries[0].admin_email == "Unknown"
    assert entries[0].target_email == "Unknown"


async def test_audit_failure_does_not_fail_action(service, context, admin, monkeypatch):
    repo = context.admin()
    repo.append_audit = AsyncMock(side_effect=PersistenceWriteFailedError("disk full"))
    monkeypatch.setattr(context, "admin", lambda: repo)

    await service.suspend_user(admin, "user-1", "spam")

    assert await repo.is_suspended("user-1") is True
    repo.append_audit.assert_awaited_once()


async def test_delete_user_removes_their_data(service, context, admin, user, session):
    await ProgressionController(context).record_turn(session.id, "I grew up in Porto.")
    await InsightService(context).record_insight(
        session.id, "origins", "Porto", "Grew up in Porto", 0.9, "early_life"
    )
    await context.admin().create_suspension(user.id, admin.id, "spam")
    context.cache.set(user.id, session.id)

    deleted = await service.delete_user(admin, user.id, user.email)

    assert deleted == 1
    assert await context.sessions().list_for_user(user.id) == []
    assert await context.messages().count(session.id) == 0
    assert await context.insights().list_for_session(session.id) == []
    assert await context.progress().get_state(session.id) is None
    assert await context.admin().is_suspended(user.id) is False
    assert context.cache.get(user.id) is None
    entries = await service.list_audit_log()
    assert entries[0].details == {"email": "ada@example.com", "sessions_deleted": 1}


async def test_delete_user_rejected_while_turn_running(service, context, admin, user, session):
    async with context.guard.hold(session.id, "turn"):
        with pytest.raises(SessionBusyError):
            await service.delete_user(admin, user.id, user.email)

    context.identity.delete_user.assert_not_awaited()
    assert await context.sessions().get(session.id) is not None

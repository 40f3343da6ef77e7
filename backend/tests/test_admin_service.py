"""Tests for admin login, role gate and bootstrap."""

import pytest

from authgate.common.exceptions import (
    AlreadyExists,
    Forbidden,
    InvalidCredentials,
    InvalidToken,
)
from authgate.domains.admin.models import Admin, AdminRole
from authgate.domains.admin.repository import admin_repository, audit_log_repository
from authgate.domains.admin.schemas import CreateAdminRequest


async def make_super_admin(session, admin_service):
    return await admin_service.ensure_default_admin(session, username="root", password="rootpass")


class TestBootstrap:

    @pytest.mark.asyncio
    async def test_creates_super_admin_when_empty(self, session, admin_service):
        admin = await make_super_admin(session, admin_service)
        assert admin.role == AdminRole.SUPER_ADMIN
        assert admin.is_super_admin
        assert admin.password_hash != "rootpass"

    @pytest.mark.asyncio
    async def test_runs_once(self, session, admin_service):
        await make_super_admin(session, admin_service)
        assert await admin_service.ensure_default_admin(session, username="other", password="x") is None
        assert await admin_repository.count_all(session) == 1


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_and_authenticate(self, session, admin_service, token_issuer):
        admin = await make_super_admin(session, admin_service)
        result = await admin_service.login(session, "ROOT", "rootpass")
        assert result.role == 0

        payload = token_issuer.verify(result.access_token)
        assert payload["typ"] == "admin"
        assert payload["role"] == 0

        resolved = await admin_service.authenticate(session, result.access_token)
        assert resolved.id == admin.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("username,password", [
        ("root", "wrong"),
        ("nobody", "rootpass"),
    ])
    async def test_bad_credentials(self, session, admin_service, username, password):
        await make_super_admin(session, admin_service)
        with pytest.raises(InvalidCredentials):
            await admin_service.login(session, username, password)

    @pytest.mark.asyncio
    async def test_user_token_rejected(self, session, admin_service, token_issuer):
        admin = await make_super_admin(session, admin_service)
        token = token_issuer.issue({"sub": admin.id, "typ": "user"})
        with pytest.raises(InvalidToken):
            await admin_service.authenticate(session, token)

    @pytest.mark.asyncio
    async def test_removed_admin_rejected(self, session, admin_service, token_issuer):
        token = token_issuer.issue({"sub": "gone", "typ": "admin", "role": 0})
        with pytest.raises(InvalidToken):
            await admin_service.authenticate(session, token)

    @pytest.mark.asyncio
    async def test_role_reread_from_storage(self, session, admin_service):
        admin = await make_super_admin(session, admin_service)
        token = (await admin_service.login(session, "root", "rootpass")).access_token
        admin.role = AdminRole.ADMIN
        await session.flush()
        resolved = await admin_service.authenticate(session, token)
        with pytest.raises(Forbidden):
            admin_service.require_super_admin(resolved)


class TestCreateAdmin:

    @pytest.mark.asyncio
    async def test_super_admin_creates_admin(self, session, admin_service):
        root = await make_super_admin(session, admin_service)
        created = await admin_service.create_admin(
            session, root, CreateAdminRequest(name="Ops", username="ops", password="opspass")
        )
        assert created.role == AdminRole.ADMIN
        assert {a.username for a in await admin_service.list_admins(session, root)} == {"root", "ops"}

        entries = await audit_log_repository.list_for_resource(session, "admin", created.id)
        assert entries[0].action == "admin.create"
        assert entries[0].actor_id == root.id

    @pytest.mark.asyncio
    async def test_regular_admin_forbidden(self, session, admin_service):
        root = await make_super_admin(session, admin_service)
        ops = await admin_service.create_admin(
            session, root, CreateAdminRequest(name="Ops", username="ops", password="opspass")
        )
        with pytest.raises(Forbidden):
            await admin_service.create_admin(
                session, ops, CreateAdminRequest(name="X", username="xxx", password="xxxxxx")
            )
        with pytest.raises(Forbidden):
            await admin_service.list_admins(session, ops)

    @pytest.mark.asyncio
    async def test_duplicate_username(self, session, admin_service):
        root = await make_super_admin(session, admin_service)
        with pytest.raises(AlreadyExists):
            await admin_service.create_admin(
                session, root, CreateAdminRequest(name="Dup", username="ROOT", password="another")
            )

    @pytest.mark.asyncio
    async def test_unique_index_backs_duplicate_check(self, session):
        await admin_repository.create(session, Admin(name="A", username="same", password_hash="x"))
        with pytest.raises(AlreadyExists):
            await admin_repository.create(session, Admin(name="B", username="same", password_hash="x"))

"""End-to-end tests through the FastAPI app."""

import uuid

import pytest

from authgate.common.config import settings
from authgate.common.database import db_manager

API = "/api/v1"
PASSWORD = "secret123"


async def signup(client, notifier, username="alice", email="a@x.io", verify=True):
    r = await client.post(f"{API}/auth/signup/step1", json={
        "username": username, "email": email, "password": PASSWORD,
    })
    assert r.status_code == 201, r.text
    user_id = r.json()["user_id"]

    r = await client.post(f"{API}/auth/signup/step2/{user_id}", json={"full_name": username.title()})
    assert r.status_code == 200, r.text
    otp_id = r.json()["verification_otp_id"]

    if verify:
        r = await client.post(f"{API}/auth/verify-email", json={
            "otp_id": otp_id, "code": notifier.last_code(),
        })
        assert r.status_code == 200, r.text
    return user_id


async def signin(client, identifier="alice", password=PASSWORD):
    return await client.post(f"{API}/auth/signin", json={"identifier": identifier, "password": password})


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def super_admin(admin_service):
    async def _create():
        async with db_manager.get_session() as session:
            await admin_service.ensure_default_admin(session, username="root", password="rootpass")

    return _create


async def admin_token(client, username="root", password="rootpass"):
    r = await client.post(f"{API}/admin/login", json={"username": username, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        r = await client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_health_simple(self, client):
        r = await client.get("/health/simple")
        assert r.json() == {"status": "ok"}


class TestAuthRoutes:

    @pytest.mark.asyncio
    async def test_signup_signin_me(self, client, notifier):
        user_id = await signup(client, notifier)
        r = await signin(client, "A@X.io")
        assert r.status_code == 200
        body = r.json()
        assert body["user"]["id"] == user_id
        assert "password_hash" not in body["user"]

        r = await client.get(f"{API}/auth/me", headers=bearer(body["access_token"]))
        assert r.status_code == 200
        assert r.json()["user"]["username"] == "alice"

    @pytest.mark.asyncio
    async def test_me_requires_token(self, client):
        r = await client.get(f"{API}/auth/me")
        assert r.status_code == 401
        assert r.json()["error"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_duplicate_signup_conflict(self, client, notifier):
        await signup(client, notifier)
        r = await client.post(f"{API}/auth/signup/step1", json={
            "username": "other", "email": "A@x.io", "password": PASSWORD,
        })
        assert r.status_code == 409
        assert r.json() == {"error": "already_exists", "message": "Email already in use"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"username": "ab", "email": "a@x.io", "password": PASSWORD},
        {"username": "bad name", "email": "a@x.io", "password": PASSWORD},
        {"username": "alice", "email": "not-an-email", "password": PASSWORD},
        {"username": "alice", "email": "a@x.io", "password": "12345"},
    ])
    async def test_signup_validation(self, client, payload):
        r = await client.post(f"{API}/auth/signup/step1", json=payload)
        assert r.status_code == 422

    @pytest.mark.asyncio
    async def test_unverified_signin_generic_401(self, client, notifier):
        await signup(client, notifier, verify=False)
        r = await signin(client)
        assert r.status_code == 401
        assert r.json() == {"error": "unauthorized", "message": "Invalid credentials"}

    @pytest.mark.asyncio
    async def test_verify_token_route(self, client, notifier):
        await signup(client, notifier)
        token = (await signin(client)).json()["access_token"]
        r = await client.post(f"{API}/auth/verify-token", json={"token": token})
        assert r.json()["valid"] is True
        r = await client.post(f"{API}/auth/verify-token", json={"token": "garbage"})
        assert r.json() == {"valid": False, "user": None}

    @pytest.mark.asyncio
    async def test_password_reset_flow(self, client, notifier):
        await signup(client, notifier)
        old_token = (await signin(client)).json()["access_token"]

        r = await client.post(f"{API}/auth/forgot-password", json={"email": "a@x.io"})
        assert r.status_code == 200
        otp_id = r.json()["otp_id"]

        r = await client.post(f"{API}/auth/reset-password", json={
            "otp_id": otp_id, "code": notifier.last_code(), "new_password": "newpass1",
        })
        assert r.status_code == 200

        assert (await signin(client)).status_code == 401
        assert (await signin(client, password="newpass1")).status_code == 200
        r = await client.get(f"{API}/auth/me", headers=bearer(old_token))
        assert r.status_code == 401

    @pytest.mark.asyncio
    async def test_forgot_password_unknown_email_same_response(self, client, notifier):
        await signup(client, notifier)
        known = await client.post(f"{API}/auth/forgot-password", json={"email": "a@x.io"})
        unknown = await client.post(f"{API}/auth/forgot-password", json={"email": "nobody@x.io"})
        assert known.status_code == unknown.status_code == 200
        assert known.json().keys() == unknown.json().keys()
        assert known.json()["message"] == unknown.json()["message"]

    @pytest.mark.asyncio
    async def test_resend_too_soon(self, client, notifier):
        await signup(client, notifier, verify=False)
        r = await client.post(f"{API}/auth/request-email-verification", json={"email": "a@x.io"})
        otp_id = r.json()["otp_id"]
        r = await client.post(f"{API}/auth/resend-email-verification", json={"otp_id": otp_id})
        assert r.status_code == 429
        assert r.json()["error"] == "rate_limited"

    @pytest.mark.asyncio
    async def test_dispatch_failure_is_503(self, client, notifier):
        notifier.fail = True
        r = await client.post(f"{API}/auth/signup/step1", json={
            "username": "alice", "email": "a@x.io", "password": PASSWORD,
        })
        user_id = r.json()["user_id"]
        r = await client.post(f"{API}/auth/signup/step2/{user_id}", json={"full_name": "Alice"})
        assert r.status_code == 503
        assert r.json()["error"] == "dependency_unavailable"

    @pytest.mark.asyncio
    async def test_dev_otps_hidden_unless_debug(self, client, notifier, monkeypatch):
        await signup(client, notifier, verify=False)
        monkeypatch.setattr(settings, "debug", False)
        r = await client.get(f"{API}/auth/dev/active-otps")
        assert r.status_code == 404
        assert r.json() == {"error": "not_found", "message": "Not Found"}

        monkeypatch.setattr(settings, "debug", True)
        r = await client.get(f"{API}/auth/dev/active-otps")
        assert r.status_code == 200
        assert r.json()["otps"][0]["code"] == notifier.last_code()


class TestUserRoutes:

    @pytest.mark.asyncio
    async def test_find_and_get(self, client, notifier):
        user_id = await signup(client, notifier)
        r = await client.get(f"{API}/users/find", params={"username": "ALICE"})
        assert r.status_code == 200
        assert r.json()["user"]["id"] == user_id

        r = await client.get(f"{API}/users/{user_id}")
        assert r.json()["user"]["email"] == "a@x.io"

        r = await client.get(f"{API}/users/find", params={"email": "nobody@x.io"})
        assert r.status_code == 404

    @pytest.mark.asyncio
    async def test_update_own_profile(self, client, notifier):
        user_id = await signup(client, notifier)
        token = (await signin(client)).json()["access_token"]
        r = await client.put(
            f"{API}/users/{user_id}",
            json={"college": "MIT", "username": "Alice2"},
            headers=bearer(token),
        )
        assert r.status_code == 200
        assert r.json()["college"] == "MIT"
        assert r.json()["username"] == "alice2"

    @pytest.mark.asyncio
    async def test_cannot_update_other_profile(self, client, notifier):
        await signup(client, notifier)
        bob_id = await signup(client, notifier, username="bob", email="b@x.io")
        token = (await signin(client)).json()["access_token"]
        r = await client.put(f"{API}/users/{bob_id}", json={"college": "X"}, headers=bearer(token))
        assert r.status_code == 403

    @pytest.mark.asyncio
    async def test_username_taken(self, client, notifier):
        user_id = await signup(client, notifier)
        await signup(client, notifier, username="bob", email="b@x.io")
        token = (await signin(client)).json()["access_token"]
        r = await client.put(f"{API}/users/{user_id}", json={"username": "BOB"}, headers=bearer(token))
        assert r.status_code == 409

    @pytest.mark.asyncio
    async def test_delete_own_account(self, client, notifier, super_admin):
        user_id = await signup(client, notifier)
        token = (await signin(client)).json()["access_token"]

        r = await client.delete(f"{API}/users/{user_id}", headers=bearer(token))
        assert r.status_code == 200
        assert r.json() == {"message": "User account deactivated successfully"}

        assert (await client.get(f"{API}/auth/me", headers=bearer(token))).status_code == 401
        assert (await client.delete(f"{API}/users/{user_id}", headers=bearer(token))).status_code == 401
        assert (await client.get(f"{API}/users/{user_id}")).status_code == 404
        r = await signin(client)
        assert r.status_code == 401
        assert "deactivated" in r.json()["message"]

        await super_admin()
        admin = await admin_token(client)
        r = await client.get(f"{API}/admin/users/{user_id}", headers=bearer(admin))
        assert r.json()["deleted_at"] is not None
        r = await client.patch(f"{API}/admin/users/{user_id}/reactivate", headers=bearer(admin))
        assert r.status_code == 200
        assert (await signin(client)).status_code == 200

    @pytest.mark.asyncio
    async def test_cannot_delete_other_account(self, client, notifier):
        await signup(client, notifier)
        bob_id = await signup(client, notifier, username="bob", email="b@x.io")
        token = (await signin(client)).json()["access_token"]

        r = await client.delete(f"{API}/users/{bob_id}", headers=bearer(token))
        assert r.status_code == 403
        assert (await client.get(f"{API}/users/{bob_id}")).status_code == 200

    @pytest.mark.asyncio
    async def test_delete_requires_token(self, client, notifier):
        user_id = await signup(client, notifier)
        assert (await client.delete(f"{API}/users/{user_id}")).status_code == 401


class TestAdminRoutes:

    @pytest.mark.asyncio
    async def test_login_and_me(self, client, super_admin):
        await super_admin()
        token = await admin_token(client)
        r = await client.get(f"{API}/admin/me", headers=bearer(token))
        assert r.status_code == 200
        assert r.json()["username"] == "root"
        assert "password_hash" not in r.json()

    @pytest.mark.asyncio
    async def test_bad_login(self, client, super_admin):
        await super_admin()
        r = await client.post(f"{API}/admin/login", json={"username": "root", "password": "nope"})
        assert r.status_code == 401

    @pytest.mark.asyncio
    async def test_user_token_cannot_reach_admin_routes(self, client, notifier, super_admin):
        await signup(client, notifier)
        token = (await signin(client)).json()["access_token"]
        r = await client.get(f"{API}/admin/users", headers=bearer(token))
        assert r.status_code == 401

    @pytest.mark.asyncio
    async def test_create_admin_requires_super_admin(self, client, super_admin):
        await super_admin()
        root_token = await admin_token(client)
        r = await client.post(f"{API}/admin/create", headers=bearer(root_token), json={
            "name": "Ops", "username": "ops", "password": "opspass", "role": 1,
        })
        assert r.status_code == 201
        assert r.json()["role"] == 1

        ops_token = await admin_token(client, "ops", "opspass")
        r = await client.post(f"{API}/admin/create", headers=bearer(ops_token), json={
            "name": "X", "username": "xxx", "password": "xxxxxx",
        })
        assert r.status_code == 403
        assert (await client.get(f"{API}/admin/list", headers=bearer(ops_token))).status_code == 403

        r = await client.get(f"{API}/admin/list", headers=bearer(root_token))
        assert {a["username"] for a in r.json()["admins"]} == {"root", "ops"}

    @pytest.mark.asyncio
    async def test_deactivate_and_reactivate(self, client, notifier, super_admin):
        user_id = await signup(client, notifier)
        user_token = (await signin(client)).json()["access_token"]
        await super_admin()
        token = await admin_token(client)

        r = await client.patch(
            f"{API}/admin/users/{user_id}/deactivate", headers=bearer(token), json={"reason": "spam"}
        )
        assert r.status_code == 200
        assert r.json()["is_active"] is False

        r = await signin(client)
        assert r.status_code == 401
        assert "deactivated" in r.json()["message"]
        assert (await client.get(f"{API}/auth/me", headers=bearer(user_token))).status_code == 401
        assert (await client.get(f"{API}/users/{user_id}")).status_code == 404

        r = await client.patch(f"{API}/admin/users/{user_id}/deactivate", headers=bearer(token))
        assert r.status_code == 400

        r = await client.get(f"{API}/admin/users/{user_id}", headers=bearer(token))
        assert r.json()["deleted_at"] is not None

        r = await client.patch(f"{API}/admin/users/{user_id}/reactivate", headers=bearer(token))
        assert r.status_code == 200
        assert (await signin(client)).status_code == 200

    @pytest.mark.asyncio
    async def test_invalid_user_id(self, client, super_admin):
        await super_admin()
        token = await admin_token(client)
        r = await client.patch(f"{API}/admin/users/not-a-uuid/deactivate", headers=bearer(token))
        assert r.status_code == 422
        r = await client.patch(f"{API}/admin/users/{uuid.uuid4()}/deactivate", headers=bearer(token))
        assert r.status_code == 404

    @pytest.mark.asyncio
    async def test_list_users(self, client, notifier, super_admin):
        await signup(client, notifier)
        await signup(client, notifier, username="bob", email="b@y.io", verify=False)
        await super_admin()
        token = await admin_token(client)

        r = await client.get(
            f"{API}/admin/users",
            headers=bearer(token),
            params={"page": 0, "limit": 500, "sort_by": "username", "sort_order": "asc"},
        )
        assert r.status_code == 200
        body = r.json()
        assert body["pagination"] == {"page": 1, "limit": 100, "total": 2, "total_pages": 1}
        assert [u["username"] for u in body["users"]] == ["alice", "bob"]

        r = await client.get(
            f"{API}/admin/users", headers=bearer(token), params={"verified": "false"}
        )
        assert [u["username"] for u in r.json()["users"]] == ["bob"]

        r = await client.get(
            f"{API}/admin/users",
            headers=bearer(token),
            params={"search": "y.io", "search_field": "email"},
        )
        assert r.json()["pagination"]["total"] == 1

        r = await client.get(f"{API}/admin/users", headers=bearer(token), params={"sort_by": "password_hash"})
        assert r.status_code == 422


class TestStartupChecks:

    @pytest.mark.asyncio
    async def test_unreachable_notification_service_blocks_startup(self, notifier, monkeypatch):
        from authgate import main
        import authgate.domains.notification as notification

        notifier.healthy = False
        monkeypatch.setattr(notification, "get_notification_client", lambda: notifier)
        monkeypatch.setattr(settings, "skip_notification_health_check", False)
        with pytest.raises(RuntimeError):
            await main.check_notification_service()

        monkeypatch.setattr(settings, "skip_notification_health_check", True)
        await main.check_notification_service()

    @pytest.mark.asyncio
    async def test_bootstrap_admin(self, database):
        from authgate import main
        from authgate.domains.admin.repository import admin_repository

        await main.bootstrap_admin()
        await main.bootstrap_admin()
        async with db_manager.get_session() as session:
            admin = await admin_repository.get_by_username(session, settings.default_admin_username)
            assert admin.is_super_admin
            assert await admin_repository.count_all(session) == 1

"""
Marketplace Backend — API Tests (auth, errors, health)
=======================================================

What we test:
    ✅ Register → login → bearer token round trip
    ✅ Verification codes are emailed, never echoed in the response
    ✅ 401 / 403 messages and the WWW-Authenticate header
    ✅ Body decoding errors (bad JSON, unknown keys, wrong types)
    ✅ Unknown routes and methods, request IDs, health check
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models import User

API = "/api/v1"
PASSWORD = "pa55word!"


class TestRegistration:
    @pytest.mark.asyncio
    async def test_register_creates_inactive_user_and_queues_welcome(self, client, context, mailer):
        response = await client.post(
            f"{API}/auth/register",
            json={
                "first_name": "Ada",
                "last_name": "Lovelace",
                "email": "ada@example.com",
                "password": PASSWORD,
                "role": "client",
            },
        )

        assert response.status_code == 201
        user = response.json()["user"]
        assert user["email"] == "ada@example.com"
        assert user["activated"] is False
        assert "password" not in user and "password_hash" not in user

        await context.task_pool.drain(timeout=2)
        assert mailer.sent == [
            ("ada@example.com", "user_welcome", {"user_id": user["id"], "first_name": "Ada"})
        ]

    @pytest.mark.asyncio
    async def test_duplicate_email_is_a_conflict(self, client, signup):
        await signup(email="ada@example.com")

        response = await client.post(
            f"{API}/auth/register",
            json={
                "first_name": "Ada",
                "last_name": "Again",
                "email": "ada@example.com",
                "password": PASSWORD,
                "role": "client",
            },
        )

        assert response.status_code == 409
        assert response.json() == {"error": {"email": "a user with this email address already exists"}}

    @pytest.mark.asyncio
    async def test_field_errors_come_back_as_a_map(self, client):
        response = await client.post(
            f"{API}/auth/register",
            json={"first_name": "", "last_name": "L", "email": "nope", "password": "short", "role": "admin"},
        )

        assert response.status_code == 422
        assert response.json() == {
            "error": {
                "first_name": "must be provided",
                "email": "must be a valid email address",
                "password": "must be at least 8 bytes long",
                "role": "invalid role value",
            }
        }

    @pytest.mark.asyncio
    async def test_failed_welcome_email_does_not_fail_registration(self, client, context, mailer):
        mailer.error = OSError("smtp down")

        response = await client.post(
            f"{API}/auth/register",
            json={
                "first_name": "Ada",
                "last_name": "Lovelace",
                "email": "ada@example.com",
                "password": PASSWORD,
                "role": "client",
            },
        )

        assert response.status_code == 201
        await context.task_pool.drain(timeout=2)

    @pytest.mark.asyncio
    async def test_no_welcome_email_when_the_account_is_not_saved(self, client, context, mailer):
        with patch.object(AsyncSession, "commit", AsyncMock(side_effect=RuntimeError("disk full"))):
            response = await client.post(
                f"{API}/auth/register",
                json={
                    "first_name": "Ada",
                    "last_name": "Lovelace",
                    "email": "ada@example.com",
                    "password": PASSWORD,
                    "role": "client",
                },
            )

        assert response.status_code == 500
        await context.task_pool.drain(timeout=2)
        assert mailer.sent == []
        async with context.session_factory() as session:
            assert (await session.execute(select(func.count()).select_from(User))).scalar_one() == 0


class TestLogin:
    @pytest.mark.asyncio
    async def test_wrong_password(self, client, signup):
        await signup(email="ada@example.com")

        response = await client.post(
            f"{API}/auth/login", json={"email": "ada@example.com", "password": "wrong-password"}
        )

        assert response.status_code == 401
        assert response.json() == {"error": "invalid authentication credentials"}
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_unknown_email_looks_the_same(self, client):
        response = await client.post(
            f"{API}/auth/login", json={"email": "ghost@example.com", "password": PASSWORD}
        )

        assert response.status_code == 401
        assert response.json() == {"error": "invalid authentication credentials"}

    @pytest.mark.asyncio
    async def test_token_shape(self, client, signup):
        headers = await signup(email="ada@example.com")
        token = headers["Authorization"].split(" ", 1)[1]
        assert len(token) == 26


class TestEmailVerification:
    @pytest.mark.asyncio
    async def test_code_is_emailed_and_activates_the_account(self, client, context, mailer, signup):
        await signup(email="ada@example.com")

        response = await client.post(
            f"{API}/auth/request-verification", json={"email": "ada@example.com"}
        )
        assert response.status_code == 202
        body = response.json()
        assert body == {
            "data": {
                "message": "a verification code has been sent to your email address",
                "email": "ada@example.com",
            }
        }

        await context.task_pool.drain(timeout=2)
        recipient, template, data = mailer.sent[-1]
        assert (recipient, template) == ("ada@example.com", "email_verification")
        assert data["token"] not in response.text

        response = await client.post(f"{API}/auth/verify-token", json={"token": data["token"]})
        assert response.status_code == 200
        assert response.json()["data"]["message"] == "email verification successful"

        async with context.session_factory() as session:
            user = await context.users.get_by_email(session, "ada@example.com")
        assert user.activated

        # Single use
        response = await client.post(f"{API}/auth/verify-token", json={"token": data["token"]})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_code(self, client):
        response = await client.post(f"{API}/auth/verify-token", json={"token": "A" * 26})

        assert response.status_code == 422
        assert response.json() == {"error": {"token": "invalid or expired verification token"}}

    @pytest.mark.asyncio
    async def test_malformed_code(self, client):
        response = await client.post(f"{API}/auth/verify-token", json={"token": "ABC"})

        assert response.status_code == 422
        assert response.json() == {"error": {"token": "must be 26 bytes long"}}


class TestAuthenticationBoundary:
    @pytest.mark.asyncio
    async def test_missing_header(self, client):
        response = await client.get(f"{API}/categories")

        assert response.status_code == 401
        assert response.json() == {"error": "you must be authenticated to access this resource"}
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "header",
        ["Basic dXNlcjpwYXNz", "Bearer abc", "Bearer ABCDEF", "Bearer " + "A" * 26],
    )
    async def test_bad_credentials(self, client, header):
        response = await client.get(f"{API}/categories", headers={"Authorization": header})

        assert response.status_code == 401
        assert response.json() == {"error": "invalid or missing authentication token"}

    @pytest.mark.asyncio
    async def test_client_role_cannot_create_a_provider(self, client, signup):
        headers = await signup(email="client@example.com", role="client")

        response = await client.post(
            f"{API}/providers",
            json={"name": "Nope", "email": "client@example.com", "phone_number": "5559876543"},
            headers=headers,
        )

        assert response.status_code == 403
        assert response.json() == {
            "error": "your user account doesn't have the necessary permissions to access this resource"
        }

    @pytest.mark.asyncio
    async def test_provider_without_profile(self, client, signup):
        headers = await signup()

        response = await client.get(f"{API}/services", headers=headers)

        assert response.status_code == 403
        assert response.json() == {"error": "you must setup a provider profile"}

    @pytest.mark.asyncio
    async def test_authenticated_responses_vary_on_authorization(self, client, open_provider):
        headers, _ = await open_provider()

        response = await client.get(f"{API}/categories", headers=headers)

        assert response.status_code == 200
        assert "Authorization" in response.headers["Vary"]


class TestBodyDecoding:
    @pytest.mark.asyncio
    async def test_badly_formed_json(self, client):
        response = await client.post(
            f"{API}/auth/login",
            content=b'{"email": "ada@example.com",',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "body contains badly-formed JSON"}

    @pytest.mark.asyncio
    async def test_unknown_key(self, client):
        response = await client.post(
            f"{API}/auth/login",
            json={"email": "ada@example.com", "password": PASSWORD, "nickname": "ada"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "body contains unknown key 'nickname'"}

    @pytest.mark.asyncio
    async def test_wrong_type(self, client):
        response = await client.post(
            f"{API}/auth/login", json={"email": ["ada@example.com"], "password": PASSWORD}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "body contains incorrect JSON type for field 'email'"}

    @pytest.mark.asyncio
    async def test_empty_body(self, client):
        response = await client.post(f"{API}/auth/login")

        assert response.status_code == 400
        assert response.json() == {"error": "body must not be empty"}


class TestRoutingAndHealth:
    @pytest.mark.asyncio
    async def test_unknown_route(self, client):
        response = await client.get(f"{API}/nothing-here")

        assert response.status_code == 404
        assert response.json() == {"error": "the requested resource could not be found"}

    @pytest.mark.asyncio
    async def test_unsupported_method(self, client):
        response = await client.delete(f"{API}/auth/login")

        assert response.status_code == 405
        assert response.json() == {"error": "the DELETE method is not supported for this resource"}

    @pytest.mark.asyncio
    async def test_non_numeric_id_is_not_found(self, client, open_provider):
        headers, _ = await open_provider()

        response = await client.get(f"{API}/providers/abc", headers=headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_healthcheck(self, client):
        response = await client.get(f"{API}/healthcheck")

        assert response.status_code == 200
        health = response.json()["health"]
        assert health["status"] == "available"
        assert health["database"] == "connected"
        assert health["environment"] == "test"
        assert health["background_tasks"] == 0

    @pytest.mark.asyncio
    async def test_request_id_is_generated_or_echoed(self, client):
        response = await client.get(f"{API}/healthcheck")
        assert len(response.headers["X-Request-ID"]) == 8

        response = await client.get(f"{API}/healthcheck", headers={"X-Request-ID": "trace-123"})
        assert response.headers["X-Request-ID"] == "trace-123"

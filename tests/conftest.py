"""
Marketplace Backend — Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets its own SQLite file database under tmp_path (each
       session opens its own connection, as on PostgreSQL), a recording
       storage gateway and a recording mailer, all wired into a real
       AppContext.

Fixture Hierarchy (all function-scoped):
    settings ─┬─ context ── app ── client ─┬─ signup
    storage ──┤                            └─ open_provider
    mailer ───┘
    sample_image_bytes, make_image
"""

import asyncio
import os
import tempfile
from typing import Dict, List, Optional, Sequence

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Override settings for testing BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="marketplace_test_")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["ENV"] = "test"

from marketplace.config import Settings  # noqa: E402
from marketplace.context import build_context  # noqa: E402
from marketplace.database import Base  # noqa: E402
from marketplace.main import create_app  # noqa: E402
from marketplace.services.storage import StorageGateway  # noqa: E402
from marketplace.services.uploads import ImageUpload  # noqa: E402

API = "/api/v1"
PASSWORD = "pa55word!"


# ══════════════════════════════════════════════════════════════════════════
# Fakes
# ══════════════════════════════════════════════════════════════════════════


class RecordingStorage(StorageGateway):
    """
    In-memory storage gateway.

    Behaviour is keyed by upload content, since object keys are random:
        delays[content]    seconds to sleep before storing
        failures[content]  exception to raise instead of storing
    """

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.completed: List[bytes] = []
        self.deleted: List[str] = []
        self.delays: Dict[bytes, float] = {}
        self.failures: Dict[bytes, Exception] = {}
        self.delete_error: Optional[Exception] = None

    async def upload(self, key: str, content: bytes, content_type: str) -> str:
        delay = self.delays.get(content)
        if delay:
            await asyncio.sleep(delay)
        if content in self.failures:
            raise self.failures[content]
        self.objects[key] = content
        self.completed.append(content)
        return key

    async def delete(self, keys: Sequence[str]) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        for key in keys:
            self.deleted.append(key)
            self.objects.pop(key, None)


class RecordingMailer:
    def __init__(self):
        self.sent: List[tuple] = []
        self.error: Optional[Exception] = None

    async def send(self, recipient: str, template: str, data=None) -> str:
        if self.error is not None:
            raise self.error
        self.sent.append((recipient, template, dict(data or {})))
        return f"<{len(self.sent)}@test>"


# ══════════════════════════════════════════════════════════════════════════
# Application Fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        storage_root=str(tmp_path / "storage"),
        bcrypt_rounds=4,  # fastest cost bcrypt accepts
        background_workers=2,
        shutdown_grace_period=2,
        mail_retry_attempts=1,
        log_level="WARNING",
    )


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest_asyncio.fixture
async def context(settings, storage, mailer):
    ctx = build_context(settings, storage=storage, mailer=mailer)
    async with ctx.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield ctx
    await ctx.aclose()


@pytest.fixture
def app(context):
    return create_app(settings=context.settings, context=context)


@pytest_asyncio.fixture
async def client(app):
    """
    HTTPX AsyncClient talking to the app in-process.

    raise_app_exceptions=False: unexpected errors come back as the 500
    response the catch-all handler renders.
    """
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ══════════════════════════════════════════════════════════════════════════
# Data Helpers
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def sample_image_bytes() -> bytes:
    # Minimal JPEG: SOI + JFIF header + EOI
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


@pytest.fixture
def make_image(sample_image_bytes):
    """Distinct image payloads so the recording storage can tell them apart."""

    def _make(tag: str, filename: str = "photo.jpg") -> ImageUpload:
        return ImageUpload(filename=filename, content=sample_image_bytes + tag.encode())

    return _make


@pytest.fixture
def signup(client):
    """Register and log in through the API; returns the Authorization header."""

    async def _signup(
        email: str = "owner@example.com",
        role: str = "provider",
        first_name: str = "Ada",
        last_name: str = "Lovelace",
        phone_number: Optional[str] = "5551234567",
    ) -> Dict[str, str]:
        response = await client.post(
            f"{API}/auth/register",
            json={
                "first_name": first_name,
                "last_name": last_name,
                "email": email,
                "phone_number": phone_number,
                "password": PASSWORD,
                "role": role,
            },
        )
        assert response.status_code == 201, response.text

        response = await client.post(f"{API}/auth/login", json={"email": email, "password": PASSWORD})
        assert response.status_code == 201, response.text
        token = response.json()["authentication_token"]["token"]
        return {"Authorization": f"Bearer {token}"}

    return _signup


@pytest.fixture
def open_provider(client, signup):
    """Sign up a provider user and create their profile; returns (headers, provider)."""

    async def _open(email: str = "owner@example.com", name: str = "Shear Genius"):
        headers = await signup(email=email)
        response = await client.post(
            f"{API}/providers",
            json={
                "name": name,
                "email": email,
                "phone_number": "5559876543",
                "description": "Cuts and colour",
                "latitude": 51.5,
                "longitude": -0.12,
            },
            headers=headers,
        )
        assert response.status_code == 201, response.text
        return headers, response.json()["provider"]

    return _open


@pytest.fixture
def multipart():
    """
    Build an httpx `files` list so the body is always multipart/form-data,
    even when no file is attached. List values become repeated fields.
    """

    def _build(fields: Dict[str, object], files: Sequence[tuple] = ()) -> List[tuple]:
        parts: List[tuple] = []
        for key, value in fields.items():
            values = value if isinstance(value, list) else [value]
            parts.extend((key, (None, str(item))) for item in values)
        parts.extend(files)
        return parts

    return _build

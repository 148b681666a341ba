"""
Shared fixtures. The environment is pointed at a throwaway SQLite file
before any application module reads the settings.
"""

import itertools
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="ardhi-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/registry.db"
os.environ["LOG_FILE"] = os.path.join(_TMP_DIR, "ardhi.log")
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["PASSWORD_HASH_ITERATIONS"] = "1000"
os.environ["BLOCKCHAIN_BACKEND"] = "simulation"
os.environ["SMTP_HOST"] = ""
os.environ["ENVIRONMENT"] = "test"

import pytest
from httpx import ASGITransport, AsyncClient

import db.models  # noqa: F401  registers the tables
from db.session import Base, engine
from core.ratelimit import rate_limiter
from main import app

GOVT_EMAIL = "govt@ardhi-registries.com"
GOVT_PASSWORD = "registrar-pass"
GOVT_WALLET = "0x" + "f" * 40


def wallet(n: int) -> str:
    return f"0x{n:040x}"


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine


@pytest.fixture
async def client(database):
    rate_limiter.reset()
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(client):
    """Sign up a fresh regular user; returns id, token and auth headers."""
    numbers = itertools.count(1)

    async def _make(name: str = "Alice", **overrides) -> dict:
        n = next(numbers)
        payload = {
            "name": name,
            "email": f"{name.lower()}{n}@example.com",
            "contact": "+254700000000",
            "address": "12 Kenyatta Avenue",
            "city": "Nairobi",
            "postalCode": "00100",
            "walletAddress": wallet(n),
        }
        payload.update(overrides)
        resp = await client.post("/api/signup", json=payload)
        assert resp.status_code == 201, resp.text
        body = resp.json()
        return {
            "id": body["user"]["id"],
            "token": body["token"],
            "headers": auth(body["token"]),
            "email": payload["email"],
            "wallet": body["user"]["walletAddress"],
        }

    return _make


@pytest.fixture
async def government(client):
    resp = await client.post(
        "/api/register_govt",
        json={"walletAddress": GOVT_WALLET, "password": GOVT_PASSWORD},
    )
    assert resp.status_code == 201, resp.text
    resp = await client.post("/api/login", json={"email": GOVT_EMAIL, "password": GOVT_PASSWORD})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    return {"id": body["user"]["id"], "token": body["token"], "headers": auth(body["token"])}


@pytest.fixture
def register_land(client):
    """POST /api/register with sensible defaults; returns the raw response."""
    numbers = itertools.count(1)

    async def _register(owner: dict, **overrides):
        n = next(numbers)
        payload = {
            "landAddress": f"Plot {n}, Ngong Road",
            "price": 100,
            "area": "50",
            "description": "Half acre with road access",
            "landDetails": {"state": "Nairobi", "city": "Karen", "postalCode": "00502"},
        }
        payload.update(overrides)
        return await client.post("/api/register", json=payload, headers=owner["headers"])

    return _register


@pytest.fixture
def listed_land(client, register_land, government):
    """Register a land for `owner` and have the registrar approve it."""

    async def _listed(owner: dict, **overrides) -> int:
        resp = await register_land(owner, **overrides)
        assert resp.status_code == 201, resp.text
        land_id = resp.json()["land"]["landId"]
        resp = await client.post(
            f"/api/approve/{land_id}",
            json={"approvalStatus": "Approved"},
            headers=government["headers"],
        )
        assert resp.status_code == 200, resp.text
        return land_id

    return _listed

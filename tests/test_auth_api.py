"""Tests for the auth HTTP endpoints — full OTP login flow over ASGI."""

from __future__ import annotations

import re

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from otp_gateway.auth.deps import get_otp_service
from otp_gateway.database.engine import get_session
from otp_gateway.delivery.sms import DeliveryError, SmsSender
from otp_gateway.main import app
from otp_gateway.models.user import Base
from otp_gateway.otp.generator import CodeGenerator
from otp_gateway.otp.service import OTPService
from otp_gateway.otp.store import OTP_TTL_SECONDS, OTPStore

PHONE = "+15551234567"

# ── In-memory test database ─────────────────────────────
_test_engine = create_async_engine(
    "sqlite+aiosqlite://", echo=False, poolclass=StaticPool
)
_test_session_factory = async_sessionmaker(_test_engine, expire_on_commit=False)


class RecordingSender(SmsSender):
    """Keeps sent messages in memory; can be told to fail."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []
        self.fail = False

    async def send(self, to_phone: str, body: str) -> None:
        if self.fail:
            raise DeliveryError("provider down")
        self.messages.append((to_phone, body))

    def last_code(self) -> str:
        _, body = self.messages[-1]
        return re.search(r"\b(\d{4})\b", body).group(1)


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def store(clock):
    s = OTPStore(clock=clock, start_evictor=False)
    yield s
    s.close()


@pytest_asyncio.fixture
async def client(store, sender):
    async with _test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async def _session_override():
        async with _test_session_factory() as session:
            yield session

    service = OTPService(
        store=store, generator=CodeGenerator(), sender=sender, ttl_seconds=OTP_TTL_SECONDS
    )
    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_otp_service] = lambda: service

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    async with _test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


def _status(resp: httpx.Response) -> str:
    return resp.json()["detail"]["status"]


# ── Issuance ─────────────────────────────────────────────

@pytest.mark.asyncio
async def test_request_otp_sends_sms_and_sets_phone_cookie(client, sender, store):
    resp = await client.post("/otp", json={"phone": "15551234567"})

    assert resp.status_code == 200
    assert resp.json() == {"message": "OTP sent successfully"}
    assert resp.cookies["phone"] == PHONE
    assert sender.messages[0][0] == PHONE
    assert store.get(PHONE) == sender.last_code()


@pytest.mark.asyncio
async def test_request_otp_delivery_failure(client, sender, store):
    sender.fail = True
    resp = await client.post("/otp", json={"phone": PHONE})

    assert resp.status_code == 502
    assert _status(resp) == "internal_error"
    assert PHONE not in store


# ── Login outcomes ───────────────────────────────────────

@pytest.mark.asyncio
async def test_login_flow_is_single_use(client, sender):
    await client.post("/otp", json={"phone": PHONE})
    code = sender.last_code()

    resp = await client.post("/login", json={"otp": code})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "valid"
    assert body["message"] == "Login successful"
    assert "access_token" in resp.cookies
    assert "refresh_token" in resp.cookies

    resp = await client.post("/login", json={"otp": code})
    assert resp.status_code == 404
    assert _status(resp) == "not_found"


@pytest.mark.asyncio
async def test_login_incorrect_then_correct(client, sender):
    await client.post("/otp", json={"phone": PHONE})
    code = sender.last_code()
    wrong = "1000" if code != "1000" else "1001"

    resp = await client.post("/login", json={"otp": wrong, "phone": PHONE})
    assert resp.status_code == 401
    assert _status(resp) == "incorrect"

    resp = await client.post("/login", json={"otp": code, "phone": PHONE})
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_login_rejects_padded_code(client, sender):
    await client.post("/otp", json={"phone": PHONE})
    code = sender.last_code()

    resp = await client.post("/login", json={"otp": f" {code}\n", "phone": PHONE})
    assert resp.status_code == 401
    assert _status(resp) == "incorrect"

    resp = await client.post("/login", json={"otp": code, "phone": PHONE})
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_login_expired(client, sender, clock):
    await client.post("/otp", json={"phone": PHONE})
    clock.advance(OTP_TTL_SECONDS)

    resp = await client.post("/login", json={"otp": sender.last_code()})
    assert resp.status_code == 410
    assert _status(resp) == "expired"


@pytest.mark.asyncio
async def test_login_never_issued(client):
    resp = await client.post("/login", json={"otp": "1234", "phone": "+19990000000"})
    assert resp.status_code == 404
    assert _status(resp) == "not_found"


@pytest.mark.asyncio
async def test_login_without_phone(client):
    resp = await client.post("/login", json={"otp": "1234"})
    assert resp.status_code == 400
    assert _status(resp) == "missing_phone"


# ── Session tokens ───────────────────────────────────────

async def _logged_in(client, sender) -> int:
    await client.post("/otp", json={"phone": PHONE})
    resp = await client.post("/login", json={"otp": sender.last_code()})
    assert resp.status_code == 200
    return resp.json()["user_id"]


@pytest.mark.asyncio
async def test_verify_requires_cookie(client):
    resp = await client.get("/verify")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_verify_returns_user_id(client, sender):
    user_id = await _logged_in(client, sender)

    resp = await client.get("/verify")
    assert resp.status_code == 200
    assert resp.json() == {"user_id": user_id}


@pytest.mark.asyncio
async def test_refresh_rotates_refresh_token(client, sender):
    await _logged_in(client, sender)
    old_refresh = client.cookies["refresh_token"]

    resp = await client.post("/refresh")
    assert resp.status_code == 200
    new_refresh = resp.cookies["refresh_token"]
    assert new_refresh != old_refresh

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://test", cookies={"refresh_token": old_refresh}
    ) as stale:
        resp = await stale.post("/refresh")
    assert resp.status_code == 401
    assert _status(resp) == "invalid_refresh_token"


@pytest.mark.asyncio
async def test_refresh_without_cookie(client):
    resp = await client.post("/refresh")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_logout_revokes_refresh_token(client, sender):
    await _logged_in(client, sender)
    refresh = client.cookies["refresh_token"]

    resp = await client.post("/logout")
    assert resp.status_code == 200
    assert "access_token" not in client.cookies

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://test", cookies={"refresh_token": refresh}
    ) as stale:
        resp = await stale.post("/refresh")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"

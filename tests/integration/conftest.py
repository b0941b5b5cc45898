"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.

Pre-condition: PostgreSQL reachable at DATABASE_URL with `alembic upgrade head`
applied. When it is not, every integration test is skipped.
"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from config.settings import settings
from src.main import app
from src.tk_common.database import async_session_factory
from src.tk_gateway.auth.jwt_handler import create_access_token


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client; keeps the engine pool alive."""
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1 FROM bid_records LIMIT 1"))
    except Exception as exc:  # noqa: BLE001
        pytest.skip(f"PostgreSQL with migrations not available: {exc}")
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session")
async def make_listing(client: AsyncClient):
    """Insert a listing row directly; the listings service owns this table."""

    async def _make(kind: str = "SELLER", verified: bool = False) -> str:
        listing_id = f"it-{uuid.uuid4().hex[:12]}"
        async with async_session_factory() as session:
            await session.execute(
                text("INSERT INTO listings (id, kind, verified) VALUES (:id, :kind, :verified)"),
                {"id": listing_id, "kind": kind, "verified": verified},
            )
            await session.commit()
        return listing_id

    return _make


@pytest_asyncio.fixture(loop_scope="session")
async def funded_agent(client: AsyncClient):
    """Credit a fresh agent through the payment endpoint and return its auth headers."""

    async def _fund(amount: int) -> tuple[str, dict[str, str]]:
        agent_id = f"agent-{uuid.uuid4().hex[:10]}"
        if amount > 0:
            resp = await client.post(
                "/api/v1/tokens/credit",
                json={"agent_id": agent_id, "amount": amount, "purchase_ref": f"pay-{uuid.uuid4().hex}"},
                headers={"Authorization": f"Bearer {create_access_token(settings.PAYMENT_SERVICE_ID)}"},
            )
            assert resp.status_code == 200, resp.text
        return agent_id, {"Authorization": f"Bearer {create_access_token(agent_id)}"}

    return _fund

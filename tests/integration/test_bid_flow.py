"""Integration tests for the bid admission flow (requires running PG + Redis).

Pre-condition: PostgreSQL running and `alembic upgrade head` applied.
"""

import asyncio
import uuid

import pytest
from httpx import AsyncClient

from config.settings import settings
from src.tk_gateway.auth.jwt_handler import create_access_token

pytestmark = pytest.mark.asyncio(loop_scope="session")


def _payment_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(settings.PAYMENT_SERVICE_ID)}"}


class TestCredit:
    async def test_same_purchase_ref_credits_once(self, client: AsyncClient, funded_agent) -> None:
        agent_id, headers = await funded_agent(0)
        payload = {"agent_id": agent_id, "amount": 15, "purchase_ref": f"pay-{uuid.uuid4().hex}"}

        responses = await asyncio.gather(
            *(client.post("/api/v1/tokens/credit", json=payload, headers=_payment_headers())
              for _ in range(4))
        )

        assert all(r.status_code == 200 for r in responses)
        assert sum(r.json()["data"]["credited"] for r in responses) == 15
        balance = await client.get("/api/v1/tokens/balance", headers=headers)
        assert balance.json()["data"]["balance"] == 15


class TestPlaceBid:
    async def test_unverified_seller_bid(self, client: AsyncClient, make_listing, funded_agent) -> None:
        listing_id = await make_listing("SELLER", verified=False)
        _, headers = await funded_agent(10)

        resp = await client.post(f"/api/v1/listings/{listing_id}/bids", json={}, headers=headers)

        assert resp.status_code == 200
        assert resp.json()["data"]["tokens_spent"] == 2
        balance = await client.get("/api/v1/tokens/balance", headers=headers)
        assert balance.json()["data"]["balance"] == 8
        assert balance.json()["data"]["tokens_used"] == 2

    async def test_insufficient_balance_no_mutation(
        self, client: AsyncClient, make_listing, funded_agent
    ) -> None:
        listing_id = await make_listing("SELLER", verified=False)
        _, headers = await funded_agent(3)

        resp = await client.post(
            f"/api/v1/listings/{listing_id}/bids", json={"boost": 5}, headers=headers
        )

        assert resp.status_code == 422
        balance = await client.get("/api/v1/tokens/balance", headers=headers)
        assert balance.json()["data"]["balance"] == 3
        status = await client.get(f"/api/v1/listings/{listing_id}/bid-status", headers=headers)
        assert status.json()["data"]["already_bid"] is False

    async def test_concurrent_bids_admit_exactly_one(
        self, client: AsyncClient, make_listing, funded_agent
    ) -> None:
        listing_id = await make_listing("BUYER", verified=True)
        _, headers = await funded_agent(100)

        responses = await asyncio.gather(
            *(client.post(f"/api/v1/listings/{listing_id}/bids", json={"boost": 1}, headers=headers)
              for _ in range(6))
        )

        codes = sorted(r.status_code for r in responses)
        assert codes == [200, 409, 409, 409, 409, 409]
        winner = next(r for r in responses if r.status_code == 200).json()["data"]
        balance = await client.get("/api/v1/tokens/balance", headers=headers)
        assert balance.json()["data"]["balance"] == 100 - winner["tokens_spent"]

        ledger = await client.get("/api/v1/tokens/ledger", params={"limit": 100}, headers=headers)
        net = sum(item["amount"] for item in ledger.json()["data"]["items"])
        assert net == 100 - winner["tokens_spent"]

    async def test_ranking_and_priority(self, client: AsyncClient, make_listing, funded_agent) -> None:
        listing_id = await make_listing("BUYER", verified=False)
        spends = []
        for boost in (4, 4, 2):
            _, headers = await funded_agent(20)
            resp = await client.post(
                f"/api/v1/listings/{listing_id}/bids", json={"boost": boost}, headers=headers
            )
            assert resp.status_code == 200
            spends.append(resp.json()["data"]["tokens_spent"])

        ranked = await client.get(f"/api/v1/listings/{listing_id}/proposals", headers=headers)
        data = ranked.json()["data"]
        assert data["highest_committed"] == max(spends)
        assert [item["tokens_spent"] for item in data["items"]] == sorted(spends, reverse=True)

"""HTTP surface: routing, actor identity and error mapping."""

from __future__ import annotations

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from account_escrow.infrastructure.rate_limiter import SlidingWindowRateLimiter
from account_escrow.main import create_app
from account_escrow.services.escrow_service import EscrowService
from support import ADMIN, BUYER, CARD_DETAILS, DESCRIPTION, OUTSIDER, SELLER, ManualClock

pytestmark = pytest.mark.integration

NEW_SALE = {"account_type": "gmail", "amount": 500_000, "description": DESCRIPTION}


def _as(actor_id: str) -> dict[str, str]:
    return {"X-Actor-Id": actor_id}


@pytest.fixture
def limiter() -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(max_requests=100, window_seconds=60)


@pytest.fixture
def app(service: EscrowService, limiter: SlidingWindowRateLimiter) -> FastAPI:
    application = create_app()
    application.state.escrow_service = service
    application.state.rate_limiter = limiter
    return application


@pytest_asyncio.fixture
async def client(app: FastAPI):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


async def _act(client: httpx.AsyncClient, tx_id: str, action: str, actor: str, **payload):
    return await client.post(
        f"/api/v1/transactions/{tx_id}/actions/{action}",
        json={"payload": payload},
        headers=_as(actor),
    )


async def _open_sale(client: httpx.AsyncClient) -> str:
    response = await client.post("/api/v1/transactions", json=NEW_SALE, headers=_as(SELLER))
    assert response.status_code == 201
    return response.json()["id"]


class TestTransactionRoutes:
    @pytest.mark.asyncio
    async def test_create(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/api/v1/transactions", json=NEW_SALE, headers=_as(SELLER))

        assert response.status_code == 201
        body = response.json()
        assert body["state"] == "initiated"
        assert body["seller_id"] == SELLER
        assert body["history"] == []
        assert set(body["available_actions"]) == {"start_eligibility_check", "cancel_transaction"}
        assert "X-Request-ID" in response.headers

    @pytest.mark.asyncio
    async def test_missing_actor_header(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/api/v1/transactions", json=NEW_SALE)

        assert response.status_code == 403
        assert response.json()["error"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_domain_validation_errors(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/v1/transactions",
            json={**NEW_SALE, "amount": 10_000, "account_type": "steam"},
            headers=_as(SELLER),
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert len(body["details"]) == 2

    @pytest.mark.asyncio
    async def test_schema_validation_errors(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/api/v1/transactions", json={**NEW_SALE, "amount": 0}, headers=_as(SELLER)
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_walk_to_listing(self, client: httpx.AsyncClient) -> None:
        tx_id = await _open_sale(client)

        assert (await _act(client, tx_id, "start_eligibility_check", SELLER)).status_code == 200
        assert (await _act(client, tx_id, "confirm_eligibility", SELLER)).status_code == 200
        response = await _act(
            client, tx_id, "submit_payment_details", SELLER, card_details=CARD_DETAILS
        )
        assert response.json()["data"]["payment"]["status"] == "pending_admin_approval"

        denied = await _act(client, tx_id, "approve_payment", SELLER)
        assert denied.status_code == 403

        approved = await _act(client, tx_id, "approve_payment", ADMIN)
        assert approved.json()["state"] == "payment_verified"

        listings = await client.get("/api/v1/listings", headers=_as(OUTSIDER))
        assert [t["id"] for t in listings.json()] == [tx_id]

        claimed = await _act(client, tx_id, "claim_listing", BUYER)
        assert claimed.json()["buyer_id"] == BUYER
        assert "claim_listing" not in claimed.json()["available_actions"]

        history = await client.get(f"/api/v1/transactions/{tx_id}/history", headers=_as(BUYER))
        assert [h["to_state"] for h in history.json()] == [
            "eligibility_check",
            "payment_pending",
            "payment_verified",
        ]

    @pytest.mark.asyncio
    async def test_action_without_body(self, client: httpx.AsyncClient) -> None:
        tx_id = await _open_sale(client)

        response = await client.post(
            f"/api/v1/transactions/{tx_id}/actions/start_eligibility_check",
            headers=_as(SELLER),
        )

        assert response.status_code == 200
        assert response.json()["state"] == "eligibility_check"

    @pytest.mark.asyncio
    async def test_my_transactions(self, client: httpx.AsyncClient) -> None:
        tx_id = await _open_sale(client)

        mine = await client.get("/api/v1/transactions", headers=_as(SELLER))
        theirs = await client.get("/api/v1/transactions", headers=_as(OUTSIDER))

        assert [t["id"] for t in mine.json()] == [tx_id]
        assert theirs.json() == []


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_not_found(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/v1/transactions/missing", headers=_as(SELLER))

        assert response.status_code == 404
        assert response.json()["error"] == "TRANSACTION_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_outsider_cannot_read(self, client: httpx.AsyncClient) -> None:
        tx_id = await _open_sale(client)
        response = await client.get(f"/api/v1/transactions/{tx_id}", headers=_as(OUTSIDER))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_invalid_state(self, client: httpx.AsyncClient) -> None:
        tx_id = await _open_sale(client)

        response = await _act(client, tx_id, "confirm_eligibility", SELLER)

        assert response.status_code == 409
        assert response.json()["details"] == {
            "state": "initiated",
            "attempted": "confirm_eligibility",
        }

    @pytest.mark.asyncio
    async def test_unknown_action(self, client: httpx.AsyncClient) -> None:
        tx_id = await _open_sale(client)
        response = await _act(client, tx_id, "teleport", SELLER)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_timeout(self, client: httpx.AsyncClient, clock: ManualClock) -> None:
        tx_id = await _open_sale(client)
        clock.advance(minutes=45)

        response = await _act(client, tx_id, "start_eligibility_check", SELLER)

        assert response.status_code == 410
        assert response.json()["error"] == "TIMEOUT_EXPIRED"
        stored = await client.get(f"/api/v1/transactions/{tx_id}", headers=_as(SELLER))
        assert stored.json()["state"] == "failed"

    @pytest.mark.asyncio
    async def test_rate_limit(
        self, client: httpx.AsyncClient, limiter: SlidingWindowRateLimiter
    ) -> None:
        limiter.max_requests = 1
        await _open_sale(client)

        response = await client.post("/api/v1/transactions", json=NEW_SALE, headers=_as(SELLER))

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) >= 1
        other = await client.post("/api/v1/transactions", json=NEW_SALE, headers=_as(BUYER))
        assert other.status_code == 201


class TestUserAndAdminRoutes:
    @pytest.mark.asyncio
    async def test_profile_and_registration(self, client: httpx.AsyncClient) -> None:
        me = await client.get("/api/v1/users/me", headers=_as("newcomer-1"))
        assert me.json()["is_registered"] is False
        refused = await client.post(
            "/api/v1/transactions", json=NEW_SALE, headers=_as("newcomer-1")
        )
        assert refused.status_code == 403

        registered = await client.post(
            "/api/v1/users/me/register",
            json={"name": "Sara", "username": "sara_k"},
            headers=_as("newcomer-1"),
        )
        assert registered.status_code == 200
        assert registered.json()["is_registered"] is True
        assert registered.json()["username"] == "sara_k"
        opened = await client.post(
            "/api/v1/transactions", json=NEW_SALE, headers=_as("newcomer-1")
        )
        assert opened.status_code == 201

    @pytest.mark.asyncio
    async def test_admin_queue_and_stats(self, client: httpx.AsyncClient) -> None:
        tx_id = await _open_sale(client)
        await _act(client, tx_id, "start_eligibility_check", SELLER)
        await _act(client, tx_id, "confirm_eligibility", SELLER)
        await _act(client, tx_id, "submit_payment_details", SELLER, card_details=CARD_DETAILS)

        pending = await client.get("/api/v1/admin/pending", headers=_as(ADMIN))
        assert [p["reason"] for p in pending.json()] == ["payment_approval"]
        assert pending.json()[0]["transaction"]["id"] == tx_id

        stats = await client.get("/api/v1/admin/stats", headers=_as(ADMIN))
        assert stats.json()["transactions"]["active"] == 1

        forbidden = await client.get("/api/v1/admin/stats", headers=_as(SELLER))
        assert forbidden.status_code == 403

    @pytest.mark.asyncio
    async def test_block_and_unblock(self, client: httpx.AsyncClient) -> None:
        blocked = await client.post(
            f"/api/v1/admin/users/{SELLER}/block",
            json={"reason": "fraud report"},
            headers=_as(ADMIN),
        )
        assert blocked.json()["is_blocked"] is True

        refused = await client.post("/api/v1/transactions", json=NEW_SALE, headers=_as(SELLER))
        assert refused.status_code == 403

        unblocked = await client.post(f"/api/v1/admin/users/{SELLER}/unblock", headers=_as(ADMIN))
        assert unblocked.json()["is_blocked"] is False
        reopened = await client.post("/api/v1/transactions", json=NEW_SALE, headers=_as(SELLER))
        assert reopened.status_code == 201

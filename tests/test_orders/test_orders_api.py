"""
Integration tests for the order and quote API endpoints.

Requests go through the full FastAPI application with the order service
bound to the per-test SQLite database, so error mapping, authentication and
serialization are exercised end to end.
"""

from typing import AsyncGenerator
from uuid import UUID, uuid4

import pytest
from fastapi import status
from httpx import ASGITransport, AsyncClient

from bakery_orders.api.deps import get_order_service
from bakery_orders.main import app
from bakery_orders.services.orders.locking import AggregateLockProvider
from bakery_orders.services.orders.service import OrderService


# ============================================================================
# Test Data Factories
# ============================================================================


class OrderTestDataFactory:
    """Factory for generating request payloads."""

    @staticmethod
    def create_line_item(
        name: str = "Chocolate cake",
        quantity: int = 2,
        unit_price: str = "15.00",
    ) -> dict:
        return {"name": name, "quantity": quantity, "unit_price": unit_price}

    @staticmethod
    def create_order_request(contact_id: UUID, **overrides) -> dict:
        payload = {
            "contact_id": str(contact_id),
            "items": [OrderTestDataFactory.create_line_item()],
            "event_type": "Birthday",
            "discount": "10",
            "discount_type": "percent",
            "setup_fee": "5",
            "tax_rate": "10",
        }
        payload.update(overrides)
        return payload


# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def auth_headers(actor: UUID) -> dict[str, str]:
    return {"X-Actor-Id": str(actor)}


@pytest.fixture
def other_headers() -> dict[str, str]:
    """Headers of a second business account."""
    return {"X-Actor-Id": str(uuid4())}


@pytest.fixture
async def async_client(
    session_factory, notification_sender
) -> AsyncGenerator[AsyncClient, None]:
    """Client for the app with the order service on the test database."""
    lock_provider = AggregateLockProvider()

    async def override_order_service():
        async with session_factory() as session:
            yield OrderService(
                session,
                notification_sender=notification_sender,
                lock_provider=lock_provider,
            )

    app.dependency_overrides[get_order_service] = override_order_service
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
async def created_order(async_client, auth_headers, contact) -> dict:
    response = await async_client.post(
        "/api/v1/orders",
        json=OrderTestDataFactory.create_order_request(contact.id),
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


async def apply_action(client, order_id, action, headers):
    return await client.post(
        f"/api/v1/orders/{order_id}/status", json={"action": action}, headers=headers
    )


# ============================================================================
# Order Endpoint Tests
# ============================================================================


class TestOrderEndpoints:
    """Test the order lifecycle over HTTP."""

    @pytest.mark.asyncio
    async def test_create_order(self, created_order, actor):
        assert created_order["kind"] == "order"
        assert created_order["status"] == "Draft"
        assert created_order["user_id"] == str(actor)
        assert created_order["currency"] == "USD"
        assert created_order["totals"]["total"] == "34.70"
        assert created_order["totals"]["outstanding"] == "34.70"
        assert created_order["allowed_actions"] == ["cancel", "confirm"]
        assert created_order["items"][0]["line_total"] == "30.00"

    @pytest.mark.asyncio
    async def test_missing_actor_is_unauthorized(self, async_client, contact):
        response = await async_client.post(
            "/api/v1/orders",
            json=OrderTestDataFactory.create_order_request(contact.id),
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_invalid_actor_is_unauthorized(self, async_client):
        response = await async_client.get(
            "/api/v1/orders", headers={"X-Actor-Id": "not-a-uuid"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_invalid_quantity_is_rejected(self, async_client, auth_headers, contact):
        payload = OrderTestDataFactory.create_order_request(
            contact.id,
            items=[OrderTestDataFactory.create_line_item(quantity=0)],
        )

        response = await async_client.post(
            "/api/v1/orders", json=payload, headers=auth_headers
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"] == "invalid_line_item"

    @pytest.mark.asyncio
    async def test_unknown_contact_is_not_found(self, async_client, auth_headers):
        response = await async_client.post(
            "/api/v1/orders",
            json=OrderTestDataFactory.create_order_request(uuid4()),
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "contact_not_found"

    @pytest.mark.asyncio
    async def test_get_unknown_order_is_not_found(self, async_client, auth_headers):
        response = await async_client.get(f"/api/v1/orders/{uuid4()}", headers=auth_headers)

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "order_not_found"

    @pytest.mark.asyncio
    async def test_pay_then_mark_paid(self, async_client, auth_headers, created_order):
        order_id = created_order["id"]
        await apply_action(async_client, order_id, "confirm", auth_headers)

        partial = await async_client.post(
            f"/api/v1/orders/{order_id}/payments",
            json={"amount": "20.00", "method": "cash"},
            headers=auth_headers,
        )
        refused = await apply_action(async_client, order_id, "mark_paid", auth_headers)

        assert partial.status_code == status.HTTP_201_CREATED
        assert partial.json()["outstanding"] == "14.70"
        assert refused.status_code == status.HTTP_409_CONFLICT
        assert refused.json()["error"] == "payment_incomplete"

        await async_client.post(
            f"/api/v1/orders/{order_id}/payments",
            json={"amount": "14.70", "method": "card", "provider_reference": "ch_1"},
            headers=auth_headers,
        )
        paid = await apply_action(async_client, order_id, "mark_paid", auth_headers)

        assert paid.status_code == status.HTTP_200_OK
        assert paid.json()["status"] == "Paid"
        assert [p["provider_reference"] for p in paid.json()["payments"]][1] == "ch_1"

    @pytest.mark.asyncio
    async def test_illegal_transition_is_conflict(
        self, async_client, auth_headers, created_order
    ):
        response = await apply_action(
            async_client, created_order["id"], "deliver", auth_headers
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        body = response.json()
        assert body["error"] == "illegal_transition"
        assert body["context"]["current_status"] == "Draft"

    @pytest.mark.asyncio
    async def test_unknown_action_is_rejected(self, async_client, auth_headers, created_order):
        response = await apply_action(
            async_client, created_order["id"], "teleport", auth_headers
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_non_positive_payment_is_rejected(
        self, async_client, auth_headers, created_order
    ):
        response = await async_client.post(
            f"/api/v1/orders/{created_order['id']}/payments",
            json={"amount": "0", "method": "cash"},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"] == "invalid_payment"

    @pytest.mark.asyncio
    async def test_revise_notes_and_logs(self, async_client, auth_headers, created_order):
        order_id = created_order["id"]

        revised = await async_client.put(
            f"/api/v1/orders/{order_id}/items",
            json={"setup_fee": "0"},
            headers=auth_headers,
        )
        note = await async_client.post(
            f"/api/v1/orders/{order_id}/notes",
            json={"note": "Deliver to back door"},
            headers=auth_headers,
        )
        logs = await async_client.get(f"/api/v1/orders/{order_id}/logs", headers=auth_headers)

        assert revised.status_code == status.HTTP_200_OK
        assert revised.json()["totals"]["total"] == "29.70"
        assert note.status_code == status.HTTP_201_CREATED
        assert [entry["action"] for entry in logs.json()] == [
            "Created",
            "ItemsRevised",
            "NoteAdded",
        ]

    @pytest.mark.asyncio
    async def test_empty_revision_is_rejected(self, async_client, auth_headers, created_order):
        response = await async_client.put(
            f"/api/v1/orders/{created_order['id']}/items",
            json={},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio
    async def test_list_orders_by_status(self, async_client, auth_headers, created_order):
        drafts = await async_client.get(
            "/api/v1/orders", params={"status": "Draft"}, headers=auth_headers
        )
        paid = await async_client.get(
            "/api/v1/orders", params={"status": "Paid"}, headers=auth_headers
        )
        unknown = await async_client.get(
            "/api/v1/orders", params={"status": "Sent"}, headers=auth_headers
        )

        assert drafts.json()["total"] == 1
        assert drafts.json()["items"][0]["id"] == created_order["id"]
        assert paid.json()["total"] == 0
        assert unknown.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


# ============================================================================
# Quote Endpoint Tests
# ============================================================================


class TestQuoteEndpoints:
    """Test quotes over HTTP."""

    @pytest.mark.asyncio
    async def test_quote_to_order(self, async_client, auth_headers, contact):
        created = await async_client.post(
            "/api/v1/quotes",
            json=OrderTestDataFactory.create_order_request(contact.id),
            headers=auth_headers,
        )
        quote_id = created.json()["id"]

        early = await async_client.post(
            f"/api/v1/quotes/{quote_id}/convert", headers=auth_headers
        )
        await apply_action(async_client, quote_id, "send", auth_headers)
        await apply_action(async_client, quote_id, "accept", auth_headers)
        converted = await async_client.post(
            f"/api/v1/quotes/{quote_id}/convert", headers=auth_headers
        )
        again = await async_client.post(
            f"/api/v1/quotes/{quote_id}/convert", headers=auth_headers
        )

        assert created.status_code == status.HTTP_201_CREATED
        assert created.json()["kind"] == "quote"
        assert created.json()["expiry_date"] is not None
        assert early.status_code == status.HTTP_409_CONFLICT
        assert converted.status_code == status.HTTP_201_CREATED
        assert converted.json()["source_quote_id"] == quote_id
        assert converted.json()["status"] == "Draft"
        assert converted.json()["totals"] == created.json()["totals"]
        assert again.status_code == status.HTTP_409_CONFLICT
        assert again.json()["error"] == "illegal_conversion"

    @pytest.mark.asyncio
    async def test_payment_on_quote_is_rejected(self, async_client, auth_headers, contact):
        created = await async_client.post(
            "/api/v1/quotes",
            json=OrderTestDataFactory.create_order_request(contact.id),
            headers=auth_headers,
        )

        response = await async_client.post(
            f"/api/v1/orders/{created.json()['id']}/payments",
            json={"amount": "5", "method": "cash"},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"] == "invalid_payment"

    @pytest.mark.asyncio
    async def test_expire_overdue_quotes(self, async_client, auth_headers, contact):
        created = await async_client.post(
            "/api/v1/quotes",
            json=OrderTestDataFactory.create_order_request(
                contact.id, expiry_date="2020-01-01"
            ),
            headers=auth_headers,
        )
        quote_id = created.json()["id"]
        await apply_action(async_client, quote_id, "send", auth_headers)

        response = await async_client.post(
            "/api/v1/quotes/expire", params={"today": "2020-01-05"}, headers=auth_headers
        )
        listed = await async_client.get(
            "/api/v1/quotes", params={"status": "Expired"}, headers=auth_headers
        )

        assert response.json()["count"] == 1
        assert response.json()["expired"][0]["status"] == "Expired"
        assert listed.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_future_reference_date_is_rejected(self, async_client, auth_headers):
        response = await async_client.post(
            "/api/v1/quotes/expire", params={"today": "2999-01-01"}, headers=auth_headers
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"] == "validation_error"


# ============================================================================
# Account Scoping Tests
# ============================================================================


class TestAccountScoping:
    """Test that accounts only reach their own orders and contacts."""

    @pytest.mark.asyncio
    async def test_foreign_order_is_not_found(
        self, async_client, other_headers, created_order
    ):
        response = await async_client.get(
            f"/api/v1/orders/{created_order['id']}", headers=other_headers
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "order_not_found"

    @pytest.mark.asyncio
    async def test_foreign_cancel_leaves_order_untouched(
        self, async_client, auth_headers, other_headers, created_order
    ):
        order_id = created_order["id"]

        response = await apply_action(async_client, order_id, "cancel", other_headers)
        owned = await async_client.get(f"/api/v1/orders/{order_id}", headers=auth_headers)

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert owned.json()["status"] == "Draft"

    @pytest.mark.asyncio
    async def test_foreign_contact_is_not_found(
        self, async_client, other_headers, contact
    ):
        response = await async_client.post(
            "/api/v1/orders",
            json=OrderTestDataFactory.create_order_request(contact.id),
            headers=other_headers,
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "contact_not_found"


# ============================================================================
# Stored Precision Tests
# ============================================================================


class TestStoredPrecision:
    """Test that totals match before and after a reload."""

    @pytest.mark.asyncio
    async def test_fine_tax_rate_total_is_stable(self, async_client, auth_headers, contact):
        payload = OrderTestDataFactory.create_order_request(
            contact.id,
            items=[OrderTestDataFactory.create_line_item(quantity=1, unit_price="1000")],
            discount="0",
            setup_fee="0",
            tax_rate="8.875",
        )

        created = await async_client.post(
            "/api/v1/orders", json=payload, headers=auth_headers
        )
        fetched = await async_client.get(
            f"/api/v1/orders/{created.json()['id']}", headers=auth_headers
        )

        assert created.json()["totals"]["total"] == "1088.75"
        assert fetched.json()["totals"]["total"] == "1088.75"

    @pytest.mark.asyncio
    async def test_sub_cent_unit_price_is_rejected(
        self, async_client, auth_headers, contact
    ):
        payload = OrderTestDataFactory.create_order_request(
            contact.id,
            items=[OrderTestDataFactory.create_line_item(unit_price="1.255")],
        )

        response = await async_client.post(
            "/api/v1/orders", json=payload, headers=auth_headers
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"] == "invalid_line_item"

    @pytest.mark.asyncio
    async def test_job_sheet_fields_round_trip(self, async_client, auth_headers, contact):
        item = OrderTestDataFactory.create_line_item()
        item.update({"type": "Cake", "notes": "Two tiers"})
        payload = OrderTestDataFactory.create_order_request(
            contact.id, items=[item], job_sheet_notes="Collect at 9am"
        )

        created = await async_client.post(
            "/api/v1/orders", json=payload, headers=auth_headers
        )
        fetched = await async_client.get(
            f"/api/v1/orders/{created.json()['id']}", headers=auth_headers
        )

        body = fetched.json()
        assert body["job_sheet_notes"] == "Collect at 9am"
        assert body["items"][0]["type"] == "Cake"
        assert body["items"][0]["notes"] == "Two tiers"


# ============================================================================
# Health Endpoint Tests
# ============================================================================


class TestHealthEndpoints:
    """Test health and readiness endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, async_client):
        response = await async_client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "healthy"
        assert "X-Request-ID" in response.headers

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, async_client):
        response = await async_client.get("/health", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"

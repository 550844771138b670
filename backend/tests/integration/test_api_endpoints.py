"""
Integration tests for the HTTP API.

WHAT: Endpoint contract, error mapping and the full offer-to-payment flow
WHY: Ensure API contract compliance and error handling
HOW: FastAPI TestClient with the payment reconciler bound to a mock provider
"""

import pytest
from fastapi.testclient import TestClient

from haggle.api.deps import get_payment_reconciler
from haggle.main import app
from haggle.services.payment_reconciler import PaymentReconciler

from tests.fixtures.mock_payments import build_event_payload, signed

SELLER = {"X-User-Id": "seller-1"}
BUYER = {"X-User-Id": "buyer-1"}
OTHER_BUYER = {"X-User-Id": "buyer-2"}


@pytest.fixture
def client(mock_provider):
    """Create FastAPI test client."""
    app.dependency_overrides[get_payment_reconciler] = lambda: PaymentReconciler(mock_provider)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def listing_id(client):
    response = client.post("/api/v1/listings", headers=SELLER, json={
        "title": "Vintage Camera",
        "description": "Works great",
        "category": "electronics",
        "condition": "good",
        "price": 100,
    })
    assert response.status_code == 201
    return response.json()["id"]


def _make_offer(client, listing_id, amount=85, headers=BUYER):
    return client.post("/api/v1/offers", headers=headers, json={"listing_id": listing_id, "amount": amount})


def _respond(client, offer_id, action, headers, amount=None):
    body = {"action": action}
    if amount is not None:
        body["amount"] = amount
    return client.patch(f"/api/v1/offers/{offer_id}", headers=headers, json=body)


@pytest.mark.integration
class TestStatusEndpoints:

    def test_health(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"]["available"] is True
        assert data["payment_provider"] == "stripe"

    def test_root(self, client):
        assert client.get("/").json()["status"] == "running"


@pytest.mark.integration
class TestIdentityAndErrors:

    def test_missing_user_header_is_unauthorized(self, client):
        response = client.get("/api/v1/offers")

        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHORIZED"

    def test_request_validation_error(self, client):
        response = client.post("/api/v1/listings", headers=SELLER, json={"title": "", "price": -5})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert body["details"]

    def test_unknown_offer_is_404(self, client):
        response = client.get("/api/v1/offers/missing", headers=BUYER)

        assert response.status_code == 404
        assert response.json()["error"] == "OFFER_NOT_FOUND"


@pytest.mark.integration
class TestListingEndpoints:

    def test_create_and_fetch(self, client, listing_id):
        response = client.get(f"/api/v1/listings/{listing_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Vintage Camera"
        assert data["price"] == 100.0
        assert data["status"] == "active"
        assert data["seller_id"] == "seller-1"

    def test_search(self, client, listing_id):
        response = client.get("/api/v1/listings", params={"query": "camera"})

        assert [l["id"] for l in response.json()] == [listing_id]
        assert client.get("/api/v1/listings", params={"category": "home"}).json() == []

    def test_patch_by_non_seller_forbidden(self, client, listing_id):
        response = client.patch(f"/api/v1/listings/{listing_id}", headers=BUYER, json={"price": 50})

        assert response.status_code == 403

    def test_patch_price(self, client, listing_id):
        response = client.patch(f"/api/v1/listings/{listing_id}", headers=SELLER, json={"price": 90})

        assert response.status_code == 200
        assert response.json()["price"] == 90.0


@pytest.mark.integration
class TestOfferEndpoints:

    def test_create_offer(self, client, listing_id):
        response = _make_offer(client, listing_id)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["last_action_by"] == "buyer"
        assert data["amount"] == 85.0
        assert data["history"][0]["action"] == "offer"

    def test_out_of_band_offer(self, client, listing_id):
        response = _make_offer(client, listing_id, amount=79.99)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "INVALID_AMOUNT"
        assert body["message"] == "Offers must be between 80.00 and 100.00"

    def test_duplicate_live_offer_conflict(self, client, listing_id):
        _make_offer(client, listing_id)

        response = _make_offer(client, listing_id, amount=90)

        assert response.status_code == 409
        assert response.json()["error"] == "LIVE_OFFER_EXISTS"

    def test_turn_violation(self, client, listing_id):
        offer_id = _make_offer(client, listing_id).json()["id"]

        response = _respond(client, offer_id, "accept", BUYER)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "INVALID_TRANSITION"
        assert body["details"] == {"status": "pending", "last_action_by": "buyer"}

    def test_counter_flow(self, client, listing_id):
        offer_id = _make_offer(client, listing_id).json()["id"]

        countered = _respond(client, offer_id, "counter", SELLER, amount=95).json()
        assert (countered["status"], countered["amount"]) == ("countered", 95.0)

        accepted = _respond(client, offer_id, "accept", BUYER).json()
        assert accepted["status"] == "accepted"
        assert accepted["amount"] == 95.0
        assert [h["action"] for h in accepted["history"]] == ["offer", "counter", "accept"]

    def test_unknown_action_rejected(self, client, listing_id):
        offer_id = _make_offer(client, listing_id).json()["id"]

        response = _respond(client, offer_id, "offer", SELLER)

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_outsider_cannot_view(self, client, listing_id):
        offer_id = _make_offer(client, listing_id).json()["id"]

        assert client.get(f"/api/v1/offers/{offer_id}", headers=OTHER_BUYER).status_code == 403

    def test_list_by_role(self, client, listing_id):
        _make_offer(client, listing_id)

        assert len(client.get("/api/v1/offers", headers=BUYER).json()) == 1
        assert len(client.get("/api/v1/offers", headers=SELLER, params={"role": "seller"}).json()) == 1
        assert client.get("/api/v1/offers", headers=SELLER).json() == []


@pytest.mark.integration
class TestPaymentEndpoints:

    @pytest.fixture
    def accepted_offer_id(self, client, listing_id):
        offer_id = _make_offer(client, listing_id).json()["id"]
        assert _respond(client, offer_id, "accept", SELLER).status_code == 200
        return offer_id

    def test_offer_to_sale_flow(self, client, listing_id, accepted_offer_id):
        client.post("/api/v1/wishlist", headers=OTHER_BUYER, json={"listing_id": listing_id})

        checkout = client.post("/api/v1/payments/checkout", headers=BUYER, json={"offer_id": accepted_offer_id})
        assert checkout.status_code == 200
        session_id = checkout.json()["session_id"]
        assert checkout.json()["url"].endswith(session_id)

        payload = build_event_payload(session_id)
        for _ in range(2):
            ack = client.post(
                "/api/v1/payments/webhook",
                content=payload,
                headers={"Stripe-Signature": signed(payload), "Content-Type": "application/json"},
            )
            assert ack.status_code == 200
            assert ack.json() == {"received": True}

        offer = client.get(f"/api/v1/offers/{accepted_offer_id}", headers=BUYER).json()
        assert offer["payment_status"] == "paid"
        assert client.get(f"/api/v1/listings/{listing_id}").json()["status"] == "sold"

        sold = [
            n for n in client.get("/api/v1/notifications", headers=OTHER_BUYER).json()
            if n["type"] == "listing_sold"
        ]
        assert len(sold) == 1
        assert client.get("/api/v1/wishlist", headers=OTHER_BUYER).json() == []

        again = client.post("/api/v1/payments/checkout", headers=BUYER, json={"offer_id": accepted_offer_id})
        assert again.status_code == 400
        assert again.json()["error"] == "ALREADY_PAID"

    def test_webhook_bad_signature(self, client, accepted_offer_id):
        checkout = client.post("/api/v1/payments/checkout", headers=BUYER, json={"offer_id": accepted_offer_id})
        payload = build_event_payload(checkout.json()["session_id"])

        response = client.post(
            "/api/v1/payments/webhook",
            content=payload,
            headers={"Stripe-Signature": signed(payload, secret="whsec_wrong")},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_SIGNATURE"
        assert response.json()["message"] == "Webhook rejected"
        offer = client.get(f"/api/v1/offers/{accepted_offer_id}", headers=BUYER).json()
        assert offer["payment_status"] == "processing"

    def test_webhook_missing_signature(self, client):
        response = client.post("/api/v1/payments/webhook", content=b"{}")

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_SIGNATURE"

    def test_checkout_by_seller_forbidden(self, client, accepted_offer_id):
        response = client.post("/api/v1/payments/checkout", headers=SELLER, json={"offer_id": accepted_offer_id})

        assert response.status_code == 403

    def test_checkout_provider_failure(self, client, mock_provider, accepted_offer_id):
        mock_provider.should_fail = True

        response = client.post("/api/v1/payments/checkout", headers=BUYER, json={"offer_id": accepted_offer_id})

        assert response.status_code == 500
        assert response.json()["error"] == "INTERNAL_ERROR"
        assert response.json()["message"] == "Payment provider request failed"

    def test_verify(self, client, mock_provider, listing_id, accepted_offer_id):
        session_id = client.post(
            "/api/v1/payments/checkout", headers=BUYER, json={"offer_id": accepted_offer_id}
        ).json()["session_id"]

        pending = client.get("/api/v1/payments/verify", headers=BUYER, params={"session_id": session_id})
        assert pending.json()["paid"] is False

        mock_provider.mark_paid(session_id)
        paid = client.get("/api/v1/payments/verify", headers=BUYER, params={"session_id": session_id})

        assert paid.status_code == 200
        assert paid.json() == {
            "paid": True,
            "session_id": session_id,
            "offer_id": accepted_offer_id,
            "payment_status": "paid",
        }
        assert client.get(f"/api/v1/listings/{listing_id}").json()["status"] == "sold"

    def test_verify_unknown_session(self, client):
        response = client.get("/api/v1/payments/verify", headers=BUYER, params={"session_id": "cs_nope"})

        assert response.status_code == 404


@pytest.mark.integration
class TestInboxEndpoints:

    def test_message_thread_and_notifications(self, client):
        sent = client.post("/api/v1/messages", headers=BUYER, json={
            "receiver_id": "seller-1",
            "content": "Would you take 80?",
        })
        assert sent.status_code == 201

        unread = client.get("/api/v1/notifications", headers=SELLER, params={"unread_only": True}).json()
        assert [n["type"] for n in unread] == ["message"]

        conversations = client.get("/api/v1/messages", headers=SELLER).json()
        assert conversations[0]["other_user_id"] == "buyer-1"
        assert conversations[0]["unread_count"] == 1

        thread = client.get("/api/v1/messages/buyer-1", headers=SELLER).json()
        assert [m["content"] for m in thread] == ["Would you take 80?"]
        assert client.get("/api/v1/notifications", headers=SELLER, params={"unread_only": True}).json() == []

    def test_mark_notifications(self, client):
        client.post("/api/v1/messages", headers=BUYER, json={"receiver_id": "seller-1", "content": "hi"})

        response = client.patch("/api/v1/notifications", headers=SELLER, json={"read": True})

        assert response.json() == {"updated": 1}


@pytest.mark.integration
class TestWishlistEndpoints:

    def test_add_list_remove(self, client, listing_id):
        added = client.post("/api/v1/wishlist", headers=BUYER, json={"listing_id": listing_id})
        assert added.status_code == 201
        assert added.json()["listing"]["id"] == listing_id

        assert [i["listing_id"] for i in client.get("/api/v1/wishlist", headers=BUYER).json()] == [listing_id]

        assert client.delete(f"/api/v1/wishlist/{listing_id}", headers=BUYER).status_code == 204
        assert client.delete(f"/api/v1/wishlist/{listing_id}", headers=BUYER).status_code == 404

    def test_unknown_listing(self, client):
        response = client.post("/api/v1/wishlist", headers=BUYER, json={"listing_id": "missing"})

        assert response.status_code == 404

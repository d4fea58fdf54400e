"""Tests for the public HTTP endpoints."""

from fastapi.testclient import TestClient

from retail_coordinator.api.app import create_app
from retail_coordinator.containers import AppContainer
from tests.conftest import ScriptedPaymentGateway


def _client(container: AppContainer) -> TestClient:
    return TestClient(create_app(container))


def _session_with_cart(client: TestClient, user_id: str = "user_001") -> str:
    response = client.post("/sessions", json={"channel": "web", "user_id": user_id})
    session_id = response.json()["session_id"]
    client.post("/cart/add", json={"session_id": session_id, "sku": "SHOES-002"})
    return session_id


def test_health_endpoint(container: AppContainer) -> None:
    response = _client(container).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_create_and_fetch_session(container: AppContainer) -> None:
    client = _client(container)

    created = client.post(
        "/sessions", json={"channel": "kiosk", "user_id": "user_002", "store_id": "store_001"}
    )
    session_id = created.json()["session_id"]
    fetched = client.get(f"/sessions/{session_id}")

    assert created.status_code == 201
    assert fetched.status_code == 200
    assert fetched.json()["channel"] == "kiosk"
    assert fetched.json()["store_id"] == "store_001"
    assert container.omnichannel_coordinator.predict_next_channel("user_002") == "kiosk"


def test_unknown_session_returns_404(container: AppContainer) -> None:
    response = _client(container).get("/sessions/missing")

    assert response.status_code == 404
    assert response.json() == {"error": "Session missing not found"}


def test_invalid_channel_is_rejected(container: AppContainer) -> None:
    response = _client(container).post("/sessions", json={"channel": "fax"})

    assert response.status_code == 422


def test_add_to_cart_keeps_first_price_snapshot(container: AppContainer) -> None:
    client = _client(container)
    session_id = client.post("/sessions", json={"channel": "web"}).json()["session_id"]

    client.post("/cart/add", json={"session_id": session_id, "sku": "TSHIRT-001", "qty": 2})
    response = client.post(
        "/cart/add", json={"session_id": session_id, "sku": "TSHIRT-001", "price": 450}
    )

    assert response.status_code == 200
    assert response.json()["cart"] == [
        {"sku": "TSHIRT-001", "qty": 3, "unit_price": 499.0, "loyalty_applied": False}
    ]


def test_add_unknown_product_returns_404(container: AppContainer) -> None:
    client = _client(container)
    session_id = client.post("/sessions", json={"channel": "web"}).json()["session_id"]

    response = client.post("/cart/add", json={"session_id": session_id, "sku": "NOPE"})

    assert response.status_code == 404


def test_inventory_check_lists_options_in_priority_order(container: AppContainer) -> None:
    response = _client(container).post(
        "/inventory/check",
        json={"sku": "SHOES-001", "qty": 2, "lat": 12.9716, "lng": 77.5946},
    )

    assert response.status_code == 200
    options = response.json()["options"]
    assert [option["type"] for option in options] == ["reserve_in_store"]
    assert options[0]["store_id"] == "store_001"
    assert options[0]["distance_km"] == 0.0
    assert "notify" not in options[0]


def test_reserve_and_release(container: AppContainer) -> None:
    with _client(container) as client:
        reserved = client.post(
            "/inventory/reserve",
            json={
                "sku": "WATCH-001",
                "store_id": "store_001",
                "user_id": "user_001",
                "session_id": "session-1",
            },
        )
        conflict = client.post(
            "/inventory/reserve",
            json={
                "sku": "WATCH-001",
                "store_id": "store_001",
                "user_id": "user_002",
                "session_id": "session-2",
            },
        )
        reservation_id = reserved.json()["reservation_id"]
        released = client.post(
            "/inventory/release", json={"reservation_id": reservation_id}
        )
        released_again = client.post(
            "/inventory/release", json={"reservation_id": reservation_id}
        )

    assert reserved.status_code == 201
    assert reserved.json()["status"] == "active"
    assert conflict.status_code == 409
    assert released.json() == {"reservation_id": reservation_id, "released": True}
    assert released_again.json()["released"] is False


def test_reservation_workflow_reports_status(container: AppContainer) -> None:
    with _client(container) as client:
        started = client.post(
            "/workflows/reservation",
            json={
                "sku": "JEANS-001",
                "store_id": "store_002",
                "user_id": "user_001",
                "session_id": "session-1",
                "qty": 2,
            },
        )
        workflow_id = started.json()["workflow_id"]
        status = client.get("/workflow/status", params={"workflow_id": workflow_id})
        listing = client.get("/workflow/status")

    assert started.status_code == 201
    assert status.json()["status"] == "running"
    assert status.json()["type"] == "reservation_hold"
    assert listing.json()["count"] == 1


def test_unknown_workflow_returns_404(container: AppContainer) -> None:
    response = _client(container).get("/workflow/status", params={"workflow_id": "nope"})

    assert response.status_code == 404


def test_payment_workflow_failure_returns_400(
    container: AppContainer, payment_gateway: ScriptedPaymentGateway
) -> None:
    payment_gateway.script.extend([False, False])
    order = {"user_id": "user_001", "session_id": "session-1", "final_price": 999}

    response = _client(container).post("/workflows/payment", json={"order": order})

    assert response.status_code == 400
    body = response.json()
    assert body["status"] == "failed"
    assert body["attempts"] == 2
    assert body["error"] == "Payment declined"


def test_payment_workflow_success(container: AppContainer) -> None:
    order = {"user_id": "user_001", "session_id": "session-1", "final_price": 999}

    response = _client(container).post(
        "/workflows/payment", json={"order": order, "max_retries": 0}
    )

    assert response.status_code == 200
    assert response.json()["status"] == "succeeded"
    assert response.json()["transaction_id"].startswith("txn_")


def test_execute_saga_endpoint(container: AppContainer) -> None:
    order = {
        "user_id": "user_001",
        "session_id": "session-1",
        "items": [{"sku": "TSHIRT-001", "qty": 1, "price": 499}],
        "final_price": 499,
    }

    response = _client(container).post("/sagas/execute", json={"order": order})

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert response.json()["total_steps"] == 4


def test_checkout_endpoint(container: AppContainer) -> None:
    client = _client(container)
    session_id = _session_with_cart(client)

    response = client.post("/orders/checkout", json={"session_id": session_id})

    assert response.status_code == 201
    body = response.json()
    assert body["saga_status"] == "completed"
    assert body["payment_status"] == "captured"
    assert body["subtotal"] == 3999.0
    assert client.get(f"/sessions/{session_id}").json()["context"]["cart_items"] == []


def test_checkout_failure_returns_400(
    container: AppContainer, payment_gateway: ScriptedPaymentGateway
) -> None:
    client = _client(container)
    session_id = _session_with_cart(client)
    payment_gateway.script.extend([False, False])

    response = client.post("/orders/checkout", json={"session_id": session_id})

    assert response.status_code == 400
    assert response.json()["error"] == "Payment or fulfillment failed"


def test_checkout_empty_cart_returns_409(container: AppContainer) -> None:
    client = _client(container)
    session_id = client.post("/sessions", json={"channel": "pos"}).json()["session_id"]

    response = client.post("/orders/checkout", json={"session_id": session_id})

    assert response.status_code == 409


def test_loyalty_endpoint(container: AppContainer) -> None:
    response = _client(container).post(
        "/loyalty/calculate",
        json={
            "items": [{"sku": "SHOES-001", "qty": 2, "price": 1999}],
            "user_id": "user_001",
        },
    )

    assert response.status_code == 200
    # floor(3998 * 2 * 0.01) = 79 points, redeemed at 0.5 each.
    assert response.json() == {
        "subtotal": 3998.0,
        "loyalty_discount": 39.5,
        "promo_discount": 0.0,
        "final_price": 3958.5,
        "points_earned": 79,
    }


def test_handoff_endpoints(container: AppContainer) -> None:
    with _client(container) as client:
        session_id = _session_with_cart(client)
        initiated = client.post(
            "/omnichannel/handoff/initiate",
            json={"from_session_id": session_id, "to_channel": "mobile"},
        ).json()
        mismatch = client.post(
            "/omnichannel/handoff/confirm",
            json={"handoff_id": initiated["handoff_id"], "to_session_id": session_id},
        )
        confirmed = client.post(
            "/omnichannel/handoff/confirm",
            json={
                "handoff_id": initiated["handoff_id"],
                "to_session_id": initiated["to_session_id"],
            },
        )

    assert initiated["expires_in_seconds"] == 600
    assert initiated["deep_link"].startswith("retail://session/")
    assert mismatch.status_code == 409
    assert confirmed.status_code == 200
    assert confirmed.json()["session_id"] == initiated["to_session_id"]
    assert [item["sku"] for item in confirmed.json()["cart"]] == ["SHOES-002"]


def test_sync_endpoint(container: AppContainer) -> None:
    client = _client(container)
    _session_with_cart(client, user_id="user_003")
    client.post("/sessions", json={"channel": "voice", "user_id": "user_003"})

    response = client.post("/omnichannel/sync", json={"user_id": "user_003"})

    assert response.status_code == 200
    body = response.json()
    assert body["synced_sessions"] == 2
    assert {entry["cart_items"] for entry in body["sessions"]} == {1}


def test_event_stream_filters_by_domain(container: AppContainer) -> None:
    client = _client(container)
    client.post("/sessions", json={"channel": "web"})
    client.post("/inventory/check", json={"sku": "TSHIRT-001"})

    everything = client.get("/events/stream").json()
    inventory = client.get("/events/stream", params={"topic": "inventory"}).json()

    assert everything["count"] == 2
    assert inventory["events"][0]["topic"] == "inventory.checked"
    assert inventory["events"][0]["domain"] == "inventory"


def test_order_fulfillment_status_update(container: AppContainer) -> None:
    client = _client(container)
    session_id = _session_with_cart(client)
    order_id = client.post("/orders/checkout", json={"session_id": session_id}).json()[
        "order_id"
    ]

    updated = client.post(f"/orders/{order_id}/fulfillment", json={"status": "delivered"})
    fetched = client.get(f"/orders/{order_id}")
    missing = client.post("/orders/nope/fulfillment", json={"status": "delivered"})

    assert updated.status_code == 200
    assert updated.json() == {"order_id": order_id, "fulfillment_status": "delivered"}
    assert fetched.json()["fulfillment_status"] == "delivered"
    assert missing.status_code == 404
    event = container.event_bus.get_log("fulfillment.status_updated")[0]
    assert event.data == {"order_id": order_id, "status": "delivered"}

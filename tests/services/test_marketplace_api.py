# tests/services/test_marketplace_api.py
"""
HTTP тесты Marketplace API поверх in-memory сервисов.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Iterator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from src.services.marketplace_api import dependencies
from src.services.marketplace_api.app import app
from src.services.marketplace_api.identity import issue_token
from tests.fakes import CARRIER_ID, SENDER_ID, STRANGER_ID

TOKEN_SECRET = "test_token_secret"
PROCESSOR_SECRET = "test_processor_secret"


def _auth(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(user_id, TOKEN_SECRET)}"}


@pytest.fixture
def client(marketplace: SimpleNamespace) -> Iterator[TestClient]:
    """TestClient без lifespan: сервисы подменены через dependency_overrides."""
    db = AsyncMock()
    db.health_check = AsyncMock(return_value=True)
    event_bus = AsyncMock()
    event_bus.health_check = AsyncMock(return_value=False)

    app.dependency_overrides[dependencies.get_match_service] = lambda: marketplace.matches
    app.dependency_overrides[dependencies.get_payment_service] = lambda: marketplace.payments
    app.dependency_overrides[dependencies.get_notification_service] = lambda: marketplace.notifications
    app.dependency_overrides[dependencies.get_db] = lambda: db
    app.dependency_overrides[dependencies.get_event_bus] = lambda: event_bus

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()


def _propose(client: TestClient, user_id: str = CARRIER_ID, **body) -> dict:
    response = client.post(
        "/matches",
        json={"packageId": "P1", "rideId": "R1", "price": 25.0, **body},
        headers=_auth(user_id),
    )
    assert response.status_code == 201, response.text
    return response.json()


def _confirm(client: TestClient, match_id: str) -> None:
    for user_id, target in ((SENDER_ID, "ACCEPTED_BY_SENDER"), (CARRIER_ID, "CONFIRMED")):
        response = client.put("/matches", json={"id": match_id, "status": target}, headers=_auth(user_id))
        assert response.status_code == 200, response.text


class TestAuth:

    def test_missing_token(self, client: TestClient) -> None:
        response = client.get("/matches")

        assert response.status_code == 401
        assert response.json()["error_code"] == "unauthorized"

    def test_bad_signature(self, client: TestClient) -> None:
        token = issue_token(SENDER_ID, "wrong_secret")

        response = client.get("/matches", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_health_is_public(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["dependencies"] == {"postgres": "healthy", "rabbitmq": "unhealthy"}


class TestMatchesApi:

    def test_propose_returns_camel_case(self, client: TestClient) -> None:
        body = _propose(client)

        assert body["status"] == "PROPOSED"
        assert body["packageId"] == "P1"
        assert body["rideId"] == "R1"
        assert body["proposedByUserId"] == CARRIER_ID
        assert body["packageOwnerId"] == SENDER_ID
        assert "package_id" not in body

    def test_duplicate_propose_conflict(self, client: TestClient) -> None:
        _propose(client)

        response = client.post(
            "/matches", json={"packageId": "P1", "rideId": "R1"}, headers=_auth(SENDER_ID),
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "conflict"

    def test_propose_missing_fields(self, client: TestClient) -> None:
        response = client.post("/matches", json={"packageId": "P1"}, headers=_auth(CARRIER_ID))

        assert response.status_code == 400
        assert response.json()["error_code"] == "validation_error"

    def test_propose_unknown_package(self, client: TestClient) -> None:
        response = client.post(
            "/matches", json={"packageId": "nope", "rideId": "R1"}, headers=_auth(CARRIER_ID),
        )

        assert response.status_code == 404

    def test_list_with_status_filter(self, client: TestClient) -> None:
        match = _propose(client)

        proposed = client.get("/matches?status=PROPOSED", headers=_auth(SENDER_ID))
        confirmed = client.get("/matches?status=CONFIRMED,CANCELLED", headers=_auth(SENDER_ID))
        everything = client.get("/matches?status=all", headers=_auth(SENDER_ID))

        assert [m["id"] for m in proposed.json()] == [match["id"]]
        assert confirmed.json() == []
        assert len(everything.json()) == 1

    def test_list_unknown_status(self, client: TestClient) -> None:
        response = client.get("/matches?status=BOGUS", headers=_auth(SENDER_ID))

        assert response.status_code == 400

    def test_invalid_transition(self, client: TestClient) -> None:
        match = _propose(client)

        response = client.put(
            "/matches", json={"id": match["id"], "status": "CONFIRMED"}, headers=_auth(SENDER_ID),
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "invalid_transition"

    def test_unknown_status_value_in_body(self, client: TestClient) -> None:
        match = _propose(client)

        response = client.put(
            "/matches", json={"id": match["id"], "status": "SHIPPED"}, headers=_auth(SENDER_ID),
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "validation_error"

    def test_stranger_cannot_update(self, client: TestClient) -> None:
        match = _propose(client)

        response = client.put(
            "/matches", json={"id": match["id"], "status": "REJECTED"}, headers=_auth(STRANGER_ID),
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "forbidden"

    def test_delete_match(self, client: TestClient) -> None:
        match = _propose(client)

        response = client.delete(f"/matches?id={match['id']}", headers=_auth(CARRIER_ID))
        again = client.delete(f"/matches?id={match['id']}", headers=_auth(CARRIER_ID))

        assert response.status_code == 200
        assert response.json()["id"] == match["id"]
        assert again.status_code == 404

    def test_delete_confirmed_is_invalid_state(self, client: TestClient) -> None:
        match = _propose(client)
        _confirm(client, match["id"])

        response = client.delete(f"/matches?id={match['id']}", headers=_auth(CARRIER_ID))

        assert response.status_code == 400
        assert response.json()["error_code"] == "invalid_state"

    def test_stranger_cannot_propose(self, client: TestClient, marketplace: SimpleNamespace) -> None:
        for body in ({}, {"proposedByUserId": SENDER_ID}):
            response = client.post(
                "/matches", json={"packageId": "P1", "rideId": "R1", **body}, headers=_auth(STRANGER_ID),
            )

            assert response.status_code == 403
            assert response.json()["error_code"] == "forbidden"

        assert marketplace.store.matches == {}

    @pytest.mark.parametrize("price", ["NaN", "Infinity", "-1", "1e300"])
    def test_propose_rejects_invalid_price(self, client: TestClient, marketplace: SimpleNamespace, price: str) -> None:
        response = client.post(
            "/matches",
            content=f'{{"packageId": "P1", "rideId": "R1", "price": {price}}}',
            headers={**_auth(CARRIER_ID), "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "validation_error"
        assert marketplace.store.matches == {}


class TestPaymentsApi:

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "0", "1e300"])
    def test_create_rejects_invalid_amount(self, client: TestClient, marketplace: SimpleNamespace, amount: str) -> None:
        match = _propose(client)
        _confirm(client, match["id"])

        response = client.post(
            "/payments",
            content=f'{{"matchId": "{match["id"]}", "amount": {amount}}}',
            headers={**_auth(SENDER_ID), "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "validation_error"
        assert marketplace.store.payments == {}

    def test_full_flow_notifies_carrier(self, client: TestClient, marketplace: SimpleNamespace) -> None:
        match = _propose(client)
        _confirm(client, match["id"])

        created = client.post(
            "/payments", json={"matchId": match["id"], "amount": 25.0}, headers=_auth(SENDER_ID),
        )

        assert created.status_code == 201
        body = created.json()
        assert body["status"] == "PENDING"
        assert body["currency"] == "EUR"
        assert body["paymentMethod"] == "card"

        inbox = client.get("/notifications?type=PAYMENT_INITIATED", headers=_auth(CARRIER_ID)).json()
        assert len(inbox["notifications"]) == 1
        assert inbox["notifications"][0]["relatedEntityId"] == body["id"]

    def test_payment_for_unconfirmed_match(self, client: TestClient) -> None:
        match = _propose(client)

        response = client.post(
            "/payments", json={"matchId": match["id"], "amount": 25.0}, headers=_auth(SENDER_ID),
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "invalid_state"

    def test_update_payment_status(self, client: TestClient) -> None:
        match = _propose(client)
        _confirm(client, match["id"])
        payment = client.post(
            "/payments", json={"matchId": match["id"], "amount": 25.0}, headers=_auth(SENDER_ID),
        ).json()

        response = client.put(
            "/payments",
            json={"id": payment["id"], "status": "COMPLETED", "transactionId": "tx-1"},
            headers=_auth(SENDER_ID),
        )
        listed = client.get(f"/payments?status=COMPLETED&matchId={match['id']}", headers=_auth(CARRIER_ID))

        assert response.status_code == 200
        assert response.json()["transactionId"] == "tx-1"
        assert [p["id"] for p in listed.json()] == [payment["id"]]

    def test_processor_callback_requires_secret(self, client: TestClient) -> None:
        response = client.post("/payments/any/processor-callback", json={"status": "COMPLETED"})

        assert response.status_code == 401

    def test_processor_callback_is_idempotent(self, client: TestClient) -> None:
        match = _propose(client)
        _confirm(client, match["id"])
        payment = client.post(
            "/payments", json={"matchId": match["id"], "amount": 25.0}, headers=_auth(SENDER_ID),
        ).json()
        headers = {"X-Processor-Secret": PROCESSOR_SECRET}
        body = {"status": "COMPLETED", "paymentIntentId": "pi-1"}

        first = client.post(f"/payments/{payment['id']}/processor-callback", json=body, headers=headers)
        second = client.post(f"/payments/{payment['id']}/processor-callback", json=body, headers=headers)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["status"] == "COMPLETED"
        assert second.json()["paymentIntentId"] == "pi-1"


class TestNotificationsApi:

    def test_read_and_delete(self, client: TestClient) -> None:
        _propose(client)
        inbox = client.get("/notifications", headers=_auth(SENDER_ID)).json()
        assert inbox["unreadCount"] == 1
        notification_id = inbox["notifications"][0]["id"]

        read = client.put("/notifications", json={"id": notification_id}, headers=_auth(SENDER_ID))
        foreign = client.delete(f"/notifications?id={notification_id}", headers=_auth(CARRIER_ID))
        deleted = client.delete(f"/notifications?id={notification_id}", headers=_auth(SENDER_ID))

        assert read.status_code == 200
        assert read.json()["read"] is True
        assert foreign.status_code == 403
        assert deleted.status_code == 200
        assert client.get("/notifications", headers=_auth(SENDER_ID)).json()["notifications"] == []

    def test_unread_only(self, client: TestClient) -> None:
        _propose(client)

        response = client.get("/notifications?unreadOnly=true", headers=_auth(SENDER_ID))

        assert response.status_code == 200
        assert len(response.json()["notifications"]) == 1


class TestUnexpectedErrors:

    def test_storage_failure_is_internal_error(self, client: TestClient, marketplace: SimpleNamespace) -> None:
        marketplace.matches._matches.list_for_user = AsyncMock(side_effect=RuntimeError("db down"))

        response = client.get("/matches", headers=_auth(SENDER_ID))

        assert response.status_code == 500
        assert response.json() == {
            "error_code": "internal_error",
            "message": "Внутренняя ошибка сервера",
            "details": None,
        }

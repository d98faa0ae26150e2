"""Tests for health, request correlation, shops and pricing endpoints."""

from fastapi.testclient import TestClient

from app.domain.entities import UserRole
from app.infrastructure.auth import Identity

STUDENT = Identity("student-1")
NEW_OWNER = Identity("owner-2", UserRole.SHOP_OWNER)


class TestHealth:
    """Tests for health and readiness checks."""

    def test_health_is_public(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["service"] == "quickprint-api"

    def test_ready_without_broker_is_degraded(self, client: TestClient) -> None:
        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "degraded", "database": True, "queue": "disabled"}


class TestRequestId:
    """Tests for request correlation."""

    def test_generates_request_id(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.headers["X-Request-ID"]

    def test_echoes_request_id_into_errors(self, client: TestClient) -> None:
        response = client.get("/orders", headers={"X-Request-ID": "req-123"})

        assert response.status_code == 401
        assert response.headers["X-Request-ID"] == "req-123"
        assert response.json()["request_id"] == "req-123"


class TestShops:
    """Tests for shop registration."""

    def test_owner_registers_shop(self, client: TestClient, auth_headers) -> None:
        response = client.post(
            "/shops",
            json={
                "businessName": "Library Xerox",
                "address": "Central Library",
                "lat": 12.97,
                "lng": 77.59,
                "pricing": {"bwSingle": 1.5},
            },
            headers=auth_headers(NEW_OWNER),
        )

        assert response.status_code == 201
        shop = response.json()
        assert shop["ownerId"] == "owner-2"
        assert shop["isActive"] is True
        assert shop["pricing"]["bwSingle"] == 1.5
        assert shop["pricing"]["colorSingle"] == 5

    def test_student_cannot_register(self, client: TestClient, auth_headers) -> None:
        response = client.post(
            "/shops",
            json={"businessName": "Dorm Prints", "lat": 12.97, "lng": 77.59},
            headers=auth_headers(STUDENT),
        )

        assert response.status_code == 403

    def test_second_shop_for_owner_is_rejected(self, client: TestClient, auth_headers) -> None:
        owner = Identity("owner-1", UserRole.SHOP_OWNER)

        response = client.post(
            "/shops",
            json={"businessName": "Campus Prints 2", "lat": 12.97, "lng": 77.59},
            headers=auth_headers(owner),
        )

        assert response.status_code == 422


class TestPricing:
    """Tests for quotes and surge state."""

    def test_quote_breakdown(self, client: TestClient, auth_headers) -> None:
        response = client.post(
            "/pricing/quote",
            json={
                "shopId": "shop-1",
                "userLat": 12.9716,
                "userLng": 77.5946,
                "printConfig": {"pages": 10, "copies": 2},
            },
            headers=auth_headers(STUDENT),
        )

        assert response.status_code == 200
        quote = response.json()
        assert quote["baseCost"] == 40.0
        assert quote["surgeMultiplier"] == 1.0
        assert quote["total"] == 44.72
        assert quote["currency"] == "INR"

    def test_quote_for_unknown_shop(self, client: TestClient, auth_headers) -> None:
        response = client.post(
            "/pricing/quote",
            json={
                "shopId": "missing",
                "userLat": 12.9716,
                "userLng": 77.5946,
                "printConfig": {"pages": 1},
            },
            headers=auth_headers(STUDENT),
        )

        assert response.status_code == 404

    def test_surge_state(self, client: TestClient, auth_headers) -> None:
        response = client.get("/pricing/shops/shop-1/surge", headers=auth_headers(STUDENT))

        assert response.status_code == 200
        assert response.json() == {
            "surgeActive": False,
            "multiplier": 1.0,
            "reason": None,
            "level": "low",
        }

import pytest
from fastapi.testclient import TestClient

from parcel_pricing.api.pricing import get_orchestrator
from parcel_pricing.main import app

SHIPMENT = {
    "weight_kg": "2.5",
    "length_cm": 30,
    "width_cm": 20,
    "height_cm": 15,
    "zone_code": "local",
    "carrier_code": "INPOST",
}


@pytest.fixture
def client(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_calculate(client):
    r = client.post("/api/pricing/calculate", json={**SHIPMENT, "additional_services": ["sms"]})
    assert r.status_code == 200
    body = r.json()
    assert body["version"] == "v1"
    assert body["status"] == "ok"
    assert body["rulebook_version"] == "test-1"
    assert body["payload"]["total"] == "12.92"
    assert body["payload"]["tax_amount"] == "2.42"


def test_calculate_unknown_field_is_rejected(client):
    r = client.post("/api/pricing/calculate", json={**SHIPMENT, "colour": "red"})
    assert r.status_code == 422


def test_calculate_domain_validation_error(client):
    r = client.post("/api/pricing/calculate", json={**SHIPMENT, "carrier_code": "FEDEX"})
    assert r.status_code == 422
    detail = r.json()["detail"]
    assert detail["code"] == "VALIDATION_ERROR"
    assert detail["violations"][0]["code"] == "UNKNOWN_CARRIER"


def test_calculate_capacity_error(client):
    r = client.post("/api/pricing/calculate", json={**SHIPMENT, "weight_kg": "28"})
    assert r.status_code == 409
    assert r.json()["detail"]["context"]["carrier"] == "INPOST"


def test_compare(client):
    shipment = {k: v for k, v in SHIPMENT.items() if k != "carrier_code"}
    r = client.post("/api/pricing/compare", json={"shipment": {**shipment, "weight_kg": "28"}})
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "warning"
    assert body["payload"]["cheapest"] == "DPD"
    assert body["payload"]["savings_potential"] == {"amount": "55.35", "percentage": "80.36"}


def test_bulk(client):
    items = [SHIPMENT, {**SHIPMENT, "weight_kg": "28"}, {**SHIPMENT, "carrier_code": "DPD"}]
    r = client.post("/api/pricing/bulk", json={"items": items})
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "warning"
    assert body["payload"]["summary"]["success_rate"] == "66.67"


def test_bulk_empty_is_rejected(client):
    assert client.post("/api/pricing/bulk", json={"items": []}).status_code == 422


def test_resolve_zone(client):
    r = client.get("/api/pricing/zones/resolve", params={"postal_code": "00-950", "carrier_code": "INPOST"})
    assert r.json()["zone_code"] == "local"
    assert r.json()["priority"] == 1
    assert r.json()["delivery_estimate"] == {"min": 1, "max": 2, "unit": "days"}

    r = client.get("/api/pricing/zones/resolve", params={"country_code": "DE"})
    assert r.json()["zone_code"] == "eu_west"

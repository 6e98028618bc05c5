from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from conftest import ORG_ID, FOOD_ID, InMemoryRuleStore, FakeDb, FakeResult, FakeRow, rule_row
from ledgertax.api.v1.endpoints.tax_rules import get_engine
from ledgertax.core.database import get_database
from ledgertax.core.exceptions import RuleStoreError
from ledgertax.main import app
from ledgertax.services.auth_service import create_access_token
from ledgertax.services.tax_rules_engine import TaxRulesEngine

RULES_URL = "/api/v1/tax-rules"


def auth_headers(role: str, org_id: str = ORG_ID) -> dict:
    token = create_access_token({"sub": "user-1", "org_id": org_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def api_store(rules):
    store = InMemoryRuleStore(
        rules=[rules.category_rule([(FOOD_ID, "Food", 15)])],
        regions={ORG_ID: "uae"},
    )
    app.dependency_overrides[get_engine] = lambda: TaxRulesEngine(store)
    return store


def use_db(db: FakeDb):
    async def override():
        yield db
    app.dependency_overrides[get_database] = override


def test_calculate_for_callers_organization(client, api_store):
    response = client.post(
        f"{RULES_URL}/calculate",
        json={"amount": 100, "category_id": FOOD_ID, "date": "2025-06-01"},
        headers=auth_headers("accountant"),
    )

    assert response.status_code == 200
    body = response.json()
    assert Decimal(str(body["vat_amount"])) == Decimal("13.04")
    assert Decimal(str(body["base_amount"])) == Decimal("86.96")
    assert Decimal(str(body["effective_tax_rate"])) == Decimal("15")
    assert body["applied_rules"] == ["category-specific tax rate"]
    assert body["is_reverse_charge"] is False
    assert api_store.lookups[0][0] == ORG_ID


def test_calculate_rejects_negative_amount(client, api_store):
    response = client.post(
        f"{RULES_URL}/calculate", json={"amount": -5}, headers=auth_headers("admin")
    )
    assert response.status_code == 422


def test_calculate_requires_read_role(client, api_store):
    response = client.post(
        f"{RULES_URL}/calculate", json={"amount": 100}, headers=auth_headers("employee")
    )
    assert response.status_code == 403


def test_calculate_requires_token(client, api_store):
    response = client.post(f"{RULES_URL}/calculate", json={"amount": 100})
    assert response.status_code in (401, 403)

    response = client.post(
        f"{RULES_URL}/calculate", json={"amount": 100},
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401


def test_rule_store_failure_is_retryable(client, api_store):
    api_store.error = RuleStoreError("connection refused", ORG_ID)

    response = client.post(
        f"{RULES_URL}/calculate", json={"amount": 100}, headers=auth_headers("accountant")
    )

    assert response.status_code == 503
    assert "Retry-After" in response.headers


def test_list_rules(client):
    use_db(FakeDb(FakeResult([rule_row()]), FakeResult(), FakeResult(), FakeResult()))

    response = client.get(RULES_URL, headers=auth_headers("accountant"))

    assert response.status_code == 200
    body = response.json()
    assert body[0]["rule_name"] == "Progressive"
    assert body[0]["rule_config"]["rule_type"] == "bracket"


def test_create_rule_requires_admin(client):
    use_db(FakeDb())
    response = client.post(
        RULES_URL, json={"rule_type": "bracket", "rule_name": "Progressive"},
        headers=auth_headers("accountant"),
    )
    assert response.status_code == 403


def test_create_rule(client):
    use_db(FakeDb(FakeResult([FakeRow(id=ORG_ID)]), FakeResult([rule_row()])))

    response = client.post(
        RULES_URL,
        json={"rule_type": "bracket", "rule_name": "Progressive", "priority": 10,
              "rule_config": {"progressive": True}},
        headers=auth_headers("admin"),
    )

    assert response.status_code == 201
    assert response.json()["priority"] == 10


def test_create_rule_with_invalid_config(client):
    use_db(FakeDb())
    response = client.post(
        RULES_URL,
        json={"rule_type": "time_based", "rule_name": "Nights", "rule_config": {"weekdays": [8]}},
        headers=auth_headers("admin"),
    )
    assert response.status_code == 422


def test_update_missing_rule_is_not_found(client):
    use_db(FakeDb(FakeResult()))

    response = client.patch(f"{RULES_URL}/missing", json={"priority": 3}, headers=auth_headers("admin"))

    assert response.status_code == 404
    assert response.json()["detail"] == "Tax rule not found"


def test_update_with_inconsistent_dates(client):
    use_db(FakeDb(FakeResult([rule_row(effective_date=date(2025, 6, 1))])))

    response = client.patch(
        f"{RULES_URL}/r1",
        json={"expiry_date": "2025-01-01"},
        headers=auth_headers("admin"),
    )
    assert response.status_code == 422


def test_update_with_null_priority_is_rejected(client):
    use_db(FakeDb(FakeResult([rule_row()])))

    response = client.patch(f"{RULES_URL}/r1", json={"priority": None}, headers=auth_headers("admin"))

    assert response.status_code == 422


def test_delete_rule(client):
    use_db(FakeDb(FakeResult([FakeRow(id="r1")])))

    response = client.delete(f"{RULES_URL}/r1", headers=auth_headers("admin"))

    assert response.status_code == 200
    assert response.json() == {"success": True}


def test_attach_category_rule_to_unknown_category(client):
    use_db(FakeDb(FakeResult([rule_row(rule_type="category", rule_config="{}")]), FakeResult()))

    response = client.post(
        f"{RULES_URL}/r1/category-rules",
        json={"category_id": FOOD_ID, "rate": 5},
        headers=auth_headers("admin"),
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "Category not found"


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_detailed_health(client):
    use_db(FakeDb())
    response = client.get("/api/v1/health/detailed")
    assert response.json()["dependencies"]["database"]["status"] == "ok"


def test_metrics(client, api_store):
    client.post(f"{RULES_URL}/calculate", json={"amount": 100}, headers=auth_headers("admin"))

    response = client.get("/api/v1/metrics")

    assert response.status_code == 200
    assert response.json()["metrics"]["counters"]["tax_calculations"] == 1

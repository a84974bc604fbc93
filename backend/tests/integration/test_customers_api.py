"""Integration tests for the customer API endpoints

Tests cover:
- Create / read / update / delete with the response envelope
- Tenant isolation (404 for customers of another tenant)
- Status changes, blacklist and children endpoints
- Duplicate report and idempotent merge
- Error mapping of domain and request validation errors
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from models.customer_audit_log import CustomerAuditLog


pytestmark = pytest.mark.integration

BASE = "/api/v1/customers"


def person_payload(**overrides) -> dict:
    payload = {
        "type": "natural",
        "document_type": "CC",
        "document_number": "12345678",
        "first_name": "Juan",
        "last_name": "Perez",
        "email": "juan.perez@example.com",
        "phone": "3001234567",
    }
    payload.update(overrides)
    return payload


def company_payload(**overrides) -> dict:
    payload = {
        "type": "juridical",
        "document_type": "NIT",
        "document_number": "900123456-8",
        "business_name": "Acme Distribuciones SAS",
        "email": "ventas@acme.example.com",
    }
    payload.update(overrides)
    return payload


def create(client: TestClient, headers: dict, payload: dict) -> dict:
    response = client.post(BASE, json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCustomerCrud:

    def test_create_customer(self, client, tenant_headers):
        response = client.post(BASE, json=company_payload(), headers=tenant_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Customer created"
        data = body["data"]
        assert data["tenant_id"] == "tenant-a"
        assert data["document_formatted"] == "900.123.456-8"
        assert data["full_name"] == "Acme Distribuciones SAS"
        assert data["status"] == "prospect"
        assert data["contacts"] == []
        assert "X-Request-ID" in response.headers

    def test_create_writes_audit_entry(self, client, db_session, tenant_headers):
        created = create(client, tenant_headers, person_payload())

        entry = db_session.execute(
            select(CustomerAuditLog).where(CustomerAuditLog.customer_id == created["id"])
        ).scalar_one()
        assert entry.action == "created"
        assert entry.actor_id == "user-1"

    def test_audit_entry_carries_request_id(self, client, db_session, tenant_headers):
        created = create(client, {**tenant_headers, "X-Request-ID": "req-123"}, person_payload())

        entry = db_session.execute(
            select(CustomerAuditLog).where(CustomerAuditLog.customer_id == created["id"])
        ).scalar_one()
        assert entry.metadata_json == {"request_id": "req-123"}

    def test_duplicate_document_is_rejected(self, client, tenant_headers):
        create(client, tenant_headers, person_payload())

        response = client.post(BASE, json=person_payload(document_number="12.345.678"), headers=tenant_headers)

        assert response.status_code == 422
        assert response.json()["success"] is False
        assert "already exists" in response.json()["message"]

    def test_invalid_nit_check_digit(self, client, tenant_headers):
        response = client.post(
            BASE, json=company_payload(document_number="9001234567"), headers=tenant_headers
        )

        assert response.status_code == 422
        assert response.json()["errors"] == {"document_number": ["NIT check digit is incorrect"]}

    def test_request_validation_errors(self, client, tenant_headers):
        response = client.post(BASE, json=person_payload(email="not-an-email"), headers=tenant_headers)

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Request validation failed"
        assert body["errors"]

    def test_get_customer_with_metrics(self, client, tenant_headers):
        created = create(client, tenant_headers, person_payload())

        response = client.get(f"{BASE}/{created['id']}", headers=tenant_headers)

        assert response.status_code == 200
        metrics = response.json()["data"]["metrics"]
        assert metrics["contacts_count"] == 0
        assert metrics["is_complete"] is False

    def test_customer_of_other_tenant_is_not_found(self, client, tenant_headers, other_tenant_headers):
        created = create(client, tenant_headers, person_payload())

        response = client.get(f"{BASE}/{created['id']}", headers=other_tenant_headers)

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": f"Customer #{created['id']} not found"}

    def test_update_customer(self, client, tenant_headers):
        created = create(client, tenant_headers, person_payload())

        response = client.put(
            f"{BASE}/{created['id']}", json={"segment": "wholesale"}, headers=tenant_headers
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["segment"] == "wholesale"
        assert data["email"] == "juan.perez@example.com"

    def test_delete_customer(self, client, tenant_headers):
        created = create(client, tenant_headers, person_payload())

        response = client.delete(
            f"{BASE}/{created['id']}", params={"reason": "test data"}, headers=tenant_headers
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Customer deleted"
        assert client.get(f"{BASE}/{created['id']}", headers=tenant_headers).status_code == 404


class TestListAndSearch:

    def test_list_is_paginated_and_tenant_scoped(self, client, tenant_headers, other_tenant_headers):
        create(client, tenant_headers, person_payload())
        create(client, tenant_headers, company_payload())
        create(client, other_tenant_headers, person_payload())

        response = client.get(BASE, params={"per_page": 1}, headers=tenant_headers)

        body = response.json()
        assert response.status_code == 200
        assert len(body["data"]) == 1
        assert body["meta"] == {"total": 2, "page": 1, "per_page": 1, "last_page": 2}

    def test_list_filters(self, client, tenant_headers):
        create(client, tenant_headers, person_payload())
        create(client, tenant_headers, company_payload())

        response = client.get(BASE, params={"type": "juridical"}, headers=tenant_headers)
        assert [c["business_name"] for c in response.json()["data"]] == ["Acme Distribuciones SAS"]

    def test_search(self, client, tenant_headers):
        created = create(client, tenant_headers, person_payload())

        response = client.get(f"{BASE}/search", params={"q": "perez"}, headers=tenant_headers)

        assert response.status_code == 200
        assert [c["id"] for c in response.json()["data"]] == [created["id"]]

    def test_metrics(self, client, tenant_headers):
        create(client, tenant_headers, person_payload())

        response = client.get(f"{BASE}/metrics", headers=tenant_headers)

        assert response.status_code == 200
        assert response.json()["data"]["total_customers"] == 1
        assert response.json()["data"]["natural_persons"] == 1


class TestStatusEndpoints:

    def test_change_status(self, client, tenant_headers):
        created = create(client, tenant_headers, person_payload())

        response = client.post(
            f"{BASE}/{created['id']}/status", json={"status": "active"}, headers=tenant_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "active"

    def test_blacklist_blocks_delete_until_lifted(self, client, tenant_headers):
        created = create(client, tenant_headers, person_payload())
        url = f"{BASE}/{created['id']}"

        response = client.post(f"{url}/blacklist", json={"reason": "fraud"}, headers=tenant_headers)
        assert response.json()["data"]["blacklist_reason"] == "fraud"

        assert client.delete(url, headers=tenant_headers).status_code == 422
        assert client.put(url, json={"segment": "x"}, headers=tenant_headers).status_code == 422
        assert client.post(
            f"{url}/status", json={"status": "active"}, headers=tenant_headers
        ).status_code == 422

        response = client.post(f"{url}/lift-blacklist", json={}, headers=tenant_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "active"
        assert client.delete(url, headers=tenant_headers).status_code == 200


class TestChildrenEndpoints:

    def test_add_contact_address_and_tax_profile(self, client, tenant_headers):
        created = create(client, tenant_headers, company_payload())
        url = f"{BASE}/{created['id']}"

        response = client.post(
            f"{url}/contacts",
            json={"role": "Buyer", "name": "Ana Gomez", "email": "ana@example.com", "is_primary": True},
            headers=tenant_headers,
        )
        assert response.status_code == 201
        assert response.json()["data"]["contacts"][0]["is_primary"] is True

        response = client.post(
            f"{url}/addresses",
            json={
                "type": "billing",
                "line1": "Calle 10 # 5-20",
                "city": "Bogota",
                "state": "Cundinamarca",
                "postal_code": "110111",
                "country_code": "CO",
                "is_default": True,
            },
            headers=tenant_headers,
        )
        assert response.status_code == 201
        address = response.json()["data"]["addresses"][0]
        assert address["full_address"] == "Calle 10 # 5-20, Bogota, Cundinamarca, 110111, CO"

        response = client.put(
            f"{url}/tax-profile",
            json={"tax_regime": "common", "tax_responsibilities": ["O-13", "O-13"]},
            headers=tenant_headers,
        )
        assert response.status_code == 200
        profile = response.json()["data"]["tax_profile"]
        assert profile["tax_regime"] == "common"
        assert profile["tax_responsibilities"] == ["O-13"]

        metrics = client.get(url, headers=tenant_headers).json()["data"]["metrics"]
        assert metrics["is_complete"] is True
        assert metrics["has_tax_profile"] is True

    def test_unsupported_country(self, client, tenant_headers):
        created = create(client, tenant_headers, person_payload())

        response = client.post(
            f"{BASE}/{created['id']}/addresses",
            json={
                "type": "home", "line1": "Main St 1", "city": "X", "state": "Y",
                "postal_code": "1", "country_code": "ZZ",
            },
            headers=tenant_headers,
        )
        assert response.status_code == 422


class TestDuplicatesAndMerge:

    def _pair(self, client, headers):
        source = create(client, headers, person_payload(
            document_number="87654321", email="juan.perez@example.com", phone="3001234567", segment="retail",
        ))
        destination = create(client, headers, person_payload(phone=None))
        return source, destination

    def test_duplicate_report(self, client, tenant_headers):
        source, destination = self._pair(client, tenant_headers)

        response = client.get(f"{BASE}/{destination['id']}/duplicates", headers=tenant_headers)

        assert response.status_code == 200
        report = response.json()["data"]
        assert [m["customer"]["id"] for m in report] == [source["id"]]
        assert report[0]["is_likely_duplicate"] is True
        assert "Same email" in report[0]["match_reasons"]

    def test_merge_requires_idempotency_key(self, client, tenant_headers):
        source, destination = self._pair(client, tenant_headers)

        response = client.post(
            f"{BASE}/merge",
            json={"source_customer_id": source["id"], "destination_customer_id": destination["id"]},
            headers=tenant_headers,
        )
        assert response.status_code == 422
        assert "idempotency key" in response.json()["message"]

    def test_merge_is_idempotent(self, client, tenant_headers):
        source, destination = self._pair(client, tenant_headers)
        body = {
            "source_customer_id": source["id"],
            "destination_customer_id": destination["id"],
            "reason": "duplicate",
        }
        headers = {**tenant_headers, "Idempotency-Key": "merge-key-1"}

        response = client.post(f"{BASE}/merge", json=body, headers=headers)

        assert response.status_code == 200, response.text
        merged = response.json()["data"]
        assert merged["id"] == destination["id"]
        assert merged["phone"] == "3001234567"
        assert merged["segment"] == "retail"
        assert "Merge reason: duplicate" in merged["notes"]
        assert client.get(f"{BASE}/{source['id']}", headers=tenant_headers).status_code == 404

        replay = client.post(f"{BASE}/merge", json=body, headers=headers)
        assert replay.status_code == 200
        assert replay.json()["data"]["notes"] == merged["notes"]

    def test_merge_key_in_body(self, client, tenant_headers):
        source, destination = self._pair(client, tenant_headers)

        response = client.post(
            f"{BASE}/merge",
            json={
                "source_customer_id": source["id"],
                "destination_customer_id": destination["id"],
                "idempotency_key": "body-key",
            },
            headers=tenant_headers,
        )
        assert response.status_code == 200

    def test_merge_into_customer_of_other_tenant(self, client, tenant_headers, other_tenant_headers):
        source = create(client, tenant_headers, person_payload())
        foreign = create(client, other_tenant_headers, person_payload(document_number="87654321"))

        response = client.post(
            f"{BASE}/merge",
            json={"source_customer_id": source["id"], "destination_customer_id": foreign["id"]},
            headers={**tenant_headers, "Idempotency-Key": "merge-key-1"},
        )
        assert response.status_code == 404

    def test_merge_preview_and_validate(self, client, tenant_headers):
        source, destination = self._pair(client, tenant_headers)
        body = {"source_customer_id": source["id"], "destination_customer_id": destination["id"]}

        preview = client.post(f"{BASE}/merge/preview", json=body, headers=tenant_headers)
        assert preview.status_code == 200
        assert preview.json()["data"]["preview_result"]["changes_applied"] == {
            "phone": "3001234567",
            "segment": "retail",
        }

        validation = client.post(f"{BASE}/merge/validate", json=body, headers=tenant_headers)
        assert validation.json()["data"] == {"valid": True, "errors": []}

        same = {"source_customer_id": destination["id"], "destination_customer_id": destination["id"]}
        validation = client.post(f"{BASE}/merge/validate", json=same, headers=tenant_headers)
        assert validation.json()["data"]["valid"] is False


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["components"]["schema"]["status"] == "healthy"

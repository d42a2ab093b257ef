# backend/tests/api/test_intake.py
import json
from datetime import date, timedelta

from fastapi import status

DESCRIPTION = "Machined aluminium housings for a sensor product, anodised, with inserts."

def _form(**overrides):
    form = {
        "intake_type": "rfq",
        "intake_source": "portal",
        "customer_name": "Jane Buyer",
        "company": "Globex Industries",
        "email": "jane@globex.com",
        "phone": "+49 30 1234567",
        "country": "Germany",
        "title": "Sensor housing",
        "description": DESCRIPTION,
        "volumes": "500 pcs/year",
        "target_price": 12.5,
        "desired_delivery_date": (date.today() + timedelta(days=60)).isoformat(),
        "tags": ["aluminium"],
    }
    form.update(overrides)
    return form

def _files():
    return [
        ("files", ("housing.pdf", b"%PDF-1.4 housing drawing", "application/pdf")),
        ("files", ("bom.csv", b"part,qty\nhousing,1\n", "text/csv")),
    ]

def test_list_intake_types(client):
    response = client.get("/api/intake/types")
    assert response.status_code == status.HTTP_200_OK
    types = {t["intake_type"]: t for t in response.json()}
    assert types["rfq"]["project_type"] == "manufacturing"
    assert types["rfq"]["default_priority"] == "high"
    assert types["purchase_order"]["default_priority"] == "urgent"
    assert types["project_idea"]["requires_bom"] is False

def test_validate_intake_reports_all_errors(client):
    response = client.post("/api/intake/validate", json=_form(
        customer_name="", email="not-an-email", title="ab", volumes=""
    ))

    assert response.status_code == status.HTTP_200_OK
    report = response.json()
    assert report["is_valid"] is False
    assert "Customer name is required" in report["errors"]
    assert "Please enter a valid email address" in report["errors"]
    assert "Project title must be at least 3 characters" in report["errors"]
    assert "Volume information is required for quotes" in report["errors"]
    assert "At least two documents are required (Drawing and BOM)" in report["errors"]

def test_submit_intake(client, sales_user, auth, temp_storage_dir):
    response = client.post(
        "/api/intake",
        data={"form": json.dumps(_form()), "document_types": ["drawing", "bom"]},
        files=_files(),
        headers=auth(sales_user)
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    project = data["project"]
    assert project["title"] == "Sensor housing"
    assert project["priority"] == "high"
    assert project["project_type"] == "manufacturing"
    assert project["intake_type"] == "rfq"
    assert project["tags"] == ["rfq", "manufacturing", "aluminium"]
    assert project["details"]["volumes"] == "500 pcs/year"
    assert project["created_by"] == sales_user.id
    assert len(data["document_ids"]) == 2
    assert data["warnings"] == []

    documents = client.get(f"/api/documents/project/{project['id']}").json()
    assert sorted(d["category"] for d in documents) == ["bom", "drawing"]
    assert all((temp_storage_dir / d["file_path"]).is_file() for d in documents)

    customer = client.get(f"/api/customers/{data['customer_id']}").json()
    assert customer["company_name"] == "Globex Industries"

def test_submit_intake_reuses_customer(client, sample_customer):
    response = client.post(
        "/api/intake",
        data={"form": json.dumps(_form(email=sample_customer.email)), "document_types": ["drawing", "bom"]},
        files=_files()
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["customer_id"] == sample_customer.id

def test_submit_intake_validation_failure_creates_nothing(client, temp_storage_dir):
    before = client.get("/api/projects").json()["total"]
    response = client.post(
        "/api/intake",
        data={"form": json.dumps(_form()), "document_types": ["drawing"]},
        files=_files()[:1]
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    detail = response.json()["detail"]
    assert detail["message"] == "Intake validation failed"
    assert "A Bill of Materials (BOM) is required for quotes and purchase orders" in detail["errors"]
    assert client.get("/api/projects").json()["total"] == before
    assert not any(p.is_file() for p in (temp_storage_dir / "documents").rglob("*"))

def test_submit_intake_mismatched_document_types(client):
    response = client.post(
        "/api/intake",
        data={"form": json.dumps(_form()), "document_types": ["drawing"]},
        files=_files()
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

def test_submit_intake_invalid_json(client):
    response = client.post("/api/intake", data={"form": "{not json"})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

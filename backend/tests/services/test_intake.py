# tests/services/test_intake.py
from datetime import date, timedelta

import pytest

from factory_pulse.errors import ValidationFailedError
from factory_pulse.models import Customer, Document, Project
from factory_pulse.schemas.intake import IntakeDocument, IntakeDocumentType, IntakeForm, IntakeType
from factory_pulse.services.intake import intake_service, intake_types

TODAY = date(2026, 5, 1)

def _form(**overrides):
    data = {
        "intake_type": IntakeType.RFQ,
        "customer_name": "Jane Buyer",
        "company": "Acme Manufacturing",
        "email": "jane@acme.com",
        "phone": "+49 30 1234",
        "country": "Germany",
        "title": "Gearbox housing",
        "description": "Cast aluminium gearbox housing, machined bores, anodized finish",
        "volumes": "500 pcs / year",
        "target_price": 42.0,
        "desired_delivery_date": TODAY + timedelta(days=30),
        "documents": [
            IntakeDocument(file_name="housing.pdf", document_type=IntakeDocumentType.DRAWING),
            IntakeDocument(file_name="bom.xlsx", document_type=IntakeDocumentType.BOM),
        ],
    }
    data.update(overrides)
    return IntakeForm(**data)

def test_valid_form():
    report = intake_service.validate(_form(), today=TODAY)
    assert report.is_valid
    assert report.errors == []
    assert report.warnings == []

def test_delivery_date_needs_lead_time():
    report = intake_service.validate(_form(desired_delivery_date=TODAY + timedelta(days=6)), today=TODAY)
    assert report.errors == ["Delivery date must be at least 7 days from now"]

    report = intake_service.validate(_form(desired_delivery_date=TODAY + timedelta(days=7)), today=TODAY)
    assert report.is_valid

def test_rfq_needs_volumes_and_bom():
    form = _form(volumes="", documents=[
        IntakeDocument(file_name="a.pdf", document_type=IntakeDocumentType.DRAWING),
        IntakeDocument(file_name="b.pdf", document_type=IntakeDocumentType.DRAWING),
    ])
    report = intake_service.validate(form, today=TODAY)
    assert "Volume information is required for quotes" in report.errors
    assert "A Bill of Materials (BOM) is required for quotes and purchase orders" in report.errors
    assert report.warnings == ["Consider using different document types for better organization"]

def test_purchase_order_needs_reference():
    report = intake_service.validate(_form(intake_type=IntakeType.PURCHASE_ORDER), today=TODAY)
    assert report.errors == ["Purchase order reference is required"]

def test_project_idea_does_not_need_bom():
    form = _form(
        intake_type=IntakeType.PROJECT_IDEA,
        desired_delivery_date=None,
        documents=[
            IntakeDocument(file_name="sketch.pdf", document_type=IntakeDocumentType.SPECIFICATION),
            IntakeDocument(file_name="notes.txt", document_type=IntakeDocumentType.OTHER),
        ]
    )
    report = intake_service.validate(form, today=TODAY)
    assert report.is_valid
    assert report.warnings == ["Timeline information helps with feasibility assessment"]

def test_customer_checks():
    report = intake_service.validate(_form(email="not-an-email", phone=None, country=""), today=TODAY)
    assert report.errors == ["Please enter a valid email address"]
    assert report.warnings == [
        "Phone number is recommended for better communication",
        "Country information helps with logistics planning",
    ]

def test_short_text_fields():
    report = intake_service.validate(_form(title="ab", description="too short"), today=TODAY)
    assert "Project title must be at least 3 characters" in report.errors
    assert "Project description must be at least 50 characters" in report.errors

def test_intake_types_table():
    types = {t.intake_type: t for t in intake_types()}
    assert types[IntakeType.RFQ].requires_bom
    assert types[IntakeType.PURCHASE_ORDER].default_priority == "urgent"
    assert not types[IntakeType.DIRECT_REQUEST].requires_bom

@pytest.mark.asyncio
async def test_submit_rejects_invalid_intake(db_session, upload_file):
    uploads = [(upload_file("housing.pdf", b"%PDF", "application/pdf"), IntakeDocumentType.DRAWING)]

    with pytest.raises(ValidationFailedError) as exc_info:
        await intake_service.submit(db_session, _form(documents=[]), uploads)

    assert "At least two documents are required (Drawing and BOM)" in exc_info.value.errors
    assert db_session.query(Project).count() == 0

@pytest.mark.asyncio
async def test_failed_submit_removes_stored_files(db_session, upload_file, temp_storage_dir, monkeypatch):
    def failing_commit():
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(db_session, "commit", failing_commit)
    uploads = [
        (upload_file("housing.pdf", b"%PDF housing", "application/pdf"), IntakeDocumentType.DRAWING),
        (upload_file("bom.csv", b"part,qty\nhousing,1", "text/csv"), IntakeDocumentType.BOM),
    ]

    with pytest.raises(RuntimeError):
        await intake_service.submit(
            db_session, _form(desired_delivery_date=date.today() + timedelta(days=60)), uploads
        )

    assert [p for p in (temp_storage_dir / "documents").rglob("*") if p.is_file()] == []
    assert db_session.query(Project).count() == 0
    assert db_session.query(Document).count() == 0
    assert db_session.query(Customer).count() == 0

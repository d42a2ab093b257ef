# tests/services/test_documents.py
import io

import pytest
from PIL import Image

from factory_pulse.models import DocumentVersion
from factory_pulse.services.documents import (
    can_compare_content,
    can_preview,
    document_service,
    image_dimensions,
    metadata_changes,
)

def test_metadata_changes():
    changes = metadata_changes(
        {"revision": "A", "tolerances": {"flatness": 0.1}, "unchanged": 1},
        {"revision": "B", "tolerances": {"flatness": 0.05}, "unchanged": 1, "material": "6061"}
    )
    assert changes == [
        'material: null -> "6061"',
        'revision: "A" -> "B"',
        'tolerances: {"flatness": 0.1} -> {"flatness": 0.05}',
    ]

def test_metadata_changes_with_missing_details():
    assert metadata_changes(None, None) == []
    assert metadata_changes({"a": 1}, None) == ["a: 1 -> null"]

def test_content_comparison_needs_same_type():
    assert can_compare_content("application/pdf", "application/pdf")
    assert not can_compare_content("application/pdf", "text/plain")
    assert not can_compare_content("image/png", "image/png")

def test_can_preview():
    assert can_preview("image/png")
    assert can_preview("application/pdf")
    assert not can_preview("text/plain")
    assert not can_preview(None)

def test_image_dimensions(temp_storage_dir):
    path = temp_storage_dir / "part.png"
    Image.new("RGB", (12, 7)).save(path)
    assert image_dimensions(path) == {"width": 12, "height": 7}

def test_image_dimensions_of_broken_file(temp_storage_dir):
    path = temp_storage_dir / "broken.png"
    path.write_bytes(b"not an image")
    assert image_dimensions(path) is None

@pytest.mark.asyncio
async def test_failed_version_removes_stored_file(db_session, sample_document, upload_file, temp_storage_dir, monkeypatch):
    def failing_commit():
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with pytest.raises(RuntimeError):
        await document_service.create_version(
            db_session, sample_document.id,
            upload_file("drawing.pdf", b"%PDF-1.4 rev b", "application/pdf")
        )

    versions_dir = temp_storage_dir / "documents" / str(sample_document.project_id) / "versions"
    assert sorted(p.name for p in versions_dir.iterdir()) == ["drawing_v1.pdf"]

@pytest.mark.asyncio
async def test_version_name_collision_uses_document_suffix(db_session, sample_project, upload_file):
    first = await document_service.create_document(
        db_session, sample_project.id, upload_file("plate.pdf", b"%PDF one", "application/pdf")
    )
    second = await document_service.create_document(
        db_session, sample_project.id, upload_file("plate.pdf", b"%PDF two", "application/pdf")
    )

    assert first.file_name == "plate_v1.pdf"
    assert second.file_name == f"plate_d{second.id}_v1.pdf"

def test_cleanup_keeps_current_version(db_session, sample_document):
    assert document_service.cleanup_old_versions(db_session, sample_document.id, keep=0) == 0
    assert document_service.get_history(db_session, sample_document.id).total_versions == 1

@pytest.mark.asyncio
async def test_version_name_skips_taken_document_suffix(db_session, sample_document, upload_file, temp_storage_dir):
    versions_dir = temp_storage_dir / "documents" / str(sample_document.project_id) / "versions"
    (versions_dir / "drawing_v2.pdf").write_bytes(b"other document")
    (versions_dir / f"drawing_d{sample_document.id}_v2.pdf").write_bytes(b"left behind")

    version = await document_service.create_version(
        db_session, sample_document.id,
        upload_file("drawing.pdf", b"%PDF-1.4 rev b", "application/pdf")
    )

    assert version.file_name == f"drawing_d{sample_document.id}_1_v2.pdf"
    assert (versions_dir / "drawing_v2.pdf").read_bytes() == b"other document"
    assert (versions_dir / f"drawing_d{sample_document.id}_v2.pdf").read_bytes() == b"left behind"

@pytest.mark.asyncio
async def test_compare_rounds_half_percent_up(db_session, sample_project, upload_file):
    document = await document_service.create_document(
        db_session, sample_project.id, upload_file("gasket.pdf", b"12345678", "application/pdf")
    )
    second = await document_service.create_version(
        db_session, document.id, upload_file("gasket.pdf", b"123456789", "application/pdf")
    )
    first = db_session.query(DocumentVersion).filter(
        DocumentVersion.document_id == document.id, DocumentVersion.version_number == 1
    ).one()

    comparison = document_service.compare_versions(db_session, first.id, second.id)
    assert comparison.differences["file_size_change"] == 1
    assert comparison.differences["file_size_change_percent"] == 13

def test_compare_treats_missing_description_as_empty(db_session, sample_document):
    first = db_session.query(DocumentVersion).filter(DocumentVersion.document_id == sample_document.id).one()
    second = DocumentVersion(
        document_id=sample_document.id,
        version_number=2,
        file_name="drawing_v2.pdf",
        file_path=first.file_path,
        file_size=first.file_size,
        mime_type="application/pdf",
        title="Drawing",
        description="",
        details={"revision": "A"}
    )
    db_session.add(second)
    db_session.commit()

    assert first.description is None
    comparison = document_service.compare_versions(db_session, first.id, second.id)
    assert comparison.differences["description_changed"] is False

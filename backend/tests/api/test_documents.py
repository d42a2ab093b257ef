# backend/tests/api/test_documents.py
import io
import json

import pytest
from fastapi import status
from PIL import Image

def _png_bytes(width=4, height=3):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color="white").save(buffer, format="PNG")
    return buffer.getvalue()

def _upload_version(client, document_id, content=b"%PDF-1.4 second revision", details=None, summary="Rev B"):
    data = {"change_summary": summary}
    if details is not None:
        data["details"] = json.dumps(details)
    return client.post(
        f"/api/documents/{document_id}/versions",
        files={"file": ("drawing.pdf", content, "application/pdf")},
        data=data
    )

def test_upload_document(client, sample_project, temp_storage_dir):
    """Test document creation from an upload"""
    response = client.post(
        f"/api/documents/project/{sample_project.id}",
        files={"file": ("spec sheet.pdf", b"%PDF-1.4 spec", "application/pdf")},
        data={"title": "Specification", "category": "specification"}
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["title"] == "Specification"
    assert data["project_id"] == sample_project.id
    assert data["version"] == 1
    assert data["mime_type"] == "application/pdf"
    assert data["file_name"].startswith("spec_sheet_v1")
    assert (temp_storage_dir / data["file_path"]).is_file()

def test_upload_document_unknown_project(client):
    response = client.post(
        "/api/documents/project/99999",
        files={"file": ("a.pdf", b"%PDF", "application/pdf")}
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND

def test_upload_document_invalid_details(client, sample_project):
    response = client.post(
        f"/api/documents/project/{sample_project.id}",
        files={"file": ("a.pdf", b"%PDF", "application/pdf")},
        data={"details": "not json"}
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

def test_get_document(client, sample_document):
    """Test getting a single document"""
    response = client.get(f"/api/documents/{sample_document.id}")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["title"] == sample_document.title
    assert data["project_id"] == sample_document.project_id
    assert data["version"] == 1

def test_list_project_documents(client, sample_project, sample_document):
    """Test listing documents in a project"""
    response = client.get(f"/api/documents/project/{sample_project.id}")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert len(data) >= 1
    assert any(d["id"] == sample_document.id for d in data)

def test_update_document(client, sample_document):
    """Test updating a document"""
    update_data = {
        "title": "Updated Drawing",
        "description": "Updated Description"
    }
    response = client.put(
        f"/api/documents/{sample_document.id}",
        json=update_data
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["title"] == update_data["title"]
    assert data["description"] == update_data["description"]

def test_delete_document(client, sample_document, temp_storage_dir):
    """Test deleting a document"""
    stored = temp_storage_dir / sample_document.file_path
    response = client.delete(f"/api/documents/{sample_document.id}")

    assert response.status_code == status.HTTP_200_OK
    assert not stored.exists()

    # Verify document is deleted
    get_response = client.get(f"/api/documents/{sample_document.id}")
    assert get_response.status_code == status.HTTP_404_NOT_FOUND

def test_get_nonexistent_document(client):
    """Test getting a document that doesn't exist"""
    response = client.get("/api/documents/99999")
    assert response.status_code == status.HTTP_404_NOT_FOUND

def test_create_version(client, sample_document, sales_user, auth):
    response = client.post(
        f"/api/documents/{sample_document.id}/versions",
        files={"file": ("drawing.pdf", b"%PDF-1.4 second revision", "application/pdf")},
        data={"change_summary": "Rev B", "details": json.dumps({"revision": "B"})},
        headers=auth(sales_user)
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["version_number"] == 2
    assert data["is_current"] is True
    assert data["file_name"] == "drawing_v2.pdf"
    assert data["uploaded_by"] == sales_user.id
    assert data["uploader_name"] == sales_user.display_name

    document = client.get(f"/api/documents/{sample_document.id}").json()
    assert document["version"] == 2
    assert document["file_name"] == "drawing_v2.pdf"

def test_version_history(client, sample_document):
    _upload_version(client, sample_document.id)
    response = client.get(f"/api/documents/{sample_document.id}/versions")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["total_versions"] == 2
    assert [v["version_number"] for v in data["versions"]] == [2, 1]
    assert data["current_version"]["version_number"] == 2
    assert sum(1 for v in data["versions"] if v["is_current"]) == 1

def test_bulk_history_skips_unknown_documents(client, sample_document):
    response = client.post(
        "/api/documents/versions/bulk-history",
        json={"document_ids": [sample_document.id, 99999]}
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert list(data.keys()) == [str(sample_document.id)]

def test_set_current_version(client, sample_document):
    _upload_version(client, sample_document.id)
    history = client.get(f"/api/documents/{sample_document.id}/versions").json()
    first = next(v for v in history["versions"] if v["version_number"] == 1)

    response = client.put(f"/api/documents/versions/{first['id']}/current")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["is_current"] is True

    document = client.get(f"/api/documents/{sample_document.id}").json()
    assert document["version"] == 1
    history = client.get(f"/api/documents/{sample_document.id}/versions").json()
    assert [v["version_number"] for v in history["versions"] if v["is_current"]] == [1]

def test_delete_only_version_is_rejected(client, sample_document):
    history = client.get(f"/api/documents/{sample_document.id}/versions").json()
    response = client.delete(f"/api/documents/versions/{history['versions'][0]['id']}")
    assert response.status_code == status.HTTP_409_CONFLICT

def test_delete_current_version_promotes_newest(client, sample_document):
    _upload_version(client, sample_document.id)
    current = client.get(f"/api/documents/{sample_document.id}/versions").json()["current_version"]

    response = client.delete(f"/api/documents/versions/{current['id']}")
    assert response.status_code == status.HTTP_200_OK

    history = client.get(f"/api/documents/{sample_document.id}/versions").json()
    assert history["total_versions"] == 1
    assert history["current_version"]["version_number"] == 1

def test_compare_versions(client, sample_document):
    second = _upload_version(
        client, sample_document.id,
        content=b"%PDF-1.4 second revision, longer",
        details={"revision": "B", "material": "steel"}
    ).json()
    first = client.get(f"/api/documents/{sample_document.id}/versions").json()["versions"][-1]

    response = client.get(
        "/api/documents/versions/compare",
        params={"version_a": first["id"], "version_b": second["id"]}
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    differences = data["differences"]
    assert differences["file_size_change"] == second["file_size"] - first["file_size"]
    assert differences["title_changed"] is False
    assert differences["metadata_changes"] == [
        'material: null -> "steel"',
        'revision: "A" -> "B"',
    ]
    assert data["can_compare_content"] is True

def test_compare_versions_of_different_documents(client, sample_document, sample_project):
    other = client.post(
        f"/api/documents/project/{sample_project.id}",
        files={"file": ("other.pdf", b"%PDF other", "application/pdf")}
    ).json()
    other_version = client.get(f"/api/documents/{other['id']}/versions").json()["versions"][0]
    own_version = client.get(f"/api/documents/{sample_document.id}/versions").json()["versions"][0]

    response = client.get(
        "/api/documents/versions/compare",
        params={"version_a": own_version["id"], "version_b": other_version["id"]}
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

def test_download_version(client, sample_document):
    version = client.get(f"/api/documents/{sample_document.id}/versions").json()["versions"][0]
    response = client.get(f"/api/documents/versions/{version['id']}/download")

    assert response.status_code == status.HTTP_200_OK
    assert response.content == b"%PDF-1.4 first revision"
    assert "attachment" in response.headers["content-disposition"]

def test_preview_version(client, sample_document):
    version = client.get(f"/api/documents/{sample_document.id}/versions").json()["versions"][0]
    response = client.get(f"/api/documents/versions/{version['id']}/preview")

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"].startswith("inline")

def test_preview_unsupported_type(client, sample_project):
    created = client.post(
        f"/api/documents/project/{sample_project.id}",
        files={"file": ("notes.txt", b"plain text", "text/plain")}
    ).json()
    version = client.get(f"/api/documents/{created['id']}/versions").json()["versions"][0]

    response = client.get(f"/api/documents/versions/{version['id']}/preview")
    assert response.status_code == status.HTTP_415_UNSUPPORTED_MEDIA_TYPE

def test_image_upload_records_dimensions(client, sample_project):
    created = client.post(
        f"/api/documents/project/{sample_project.id}",
        files={"file": ("photo.png", _png_bytes(8, 5), "image/png")}
    ).json()
    version = client.get(f"/api/documents/{created['id']}/versions").json()["versions"][0]
    assert version["details"]["width"] == 8
    assert version["details"]["height"] == 5

def test_cleanup_versions(client, sample_document):
    for n in range(3):
        _upload_version(client, sample_document.id, content=f"%PDF rev {n}".encode())

    response = client.post(f"/api/documents/{sample_document.id}/versions/cleanup", params={"keep": 2})
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"document_id": sample_document.id, "removed": 2}

    history = client.get(f"/api/documents/{sample_document.id}/versions").json()
    assert [v["version_number"] for v in history["versions"]] == [4, 3]

@pytest.mark.parametrize("keep", [-1])
def test_cleanup_versions_rejects_negative_keep(client, sample_document, keep):
    response = client.post(f"/api/documents/{sample_document.id}/versions/cleanup", params={"keep": keep})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

# backend/tests/api/test_projects.py
import re

import pytest
from fastapi import status

def test_create_project(client, sample_customer):
    """Test project creation"""
    response = client.post(
        "/api/projects",
        json={
            "title": "New Project",
            "description": "Project Description",
            "customer_id": sample_customer.id,
            "priority": "high"
        }
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["title"] == "New Project"
    assert data["priority"] == "high"
    assert data["stage"] == "inquiry_received"
    assert data["status"] == "active"
    assert re.fullmatch(r"P-\d{8}\d{2}", data["project_number"])
    assert "id" in data
    assert "created_at" in data

def test_project_numbers_are_unique(client):
    first = client.post("/api/projects", json={"title": "First"}).json()
    second = client.post("/api/projects", json={"title": "Second"}).json()
    assert first["project_number"] != second["project_number"]

def test_create_project_records_creator(client, sales_user, auth):
    response = client.post("/api/projects", json={"title": "Mine"}, headers=auth(sales_user))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["created_by"] == sales_user.id

def test_get_project(client, sample_project):
    """Test getting a single project"""
    response = client.get(f"/api/projects/{sample_project.id}")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["title"] == sample_project.title
    assert data["stage_name"] == "New Inquiry"
    assert data["days_in_stage"] == 0
    assert data["document_count"] == 0
    assert data["customer_name"] == "Acme Manufacturing"

def test_list_projects(client, sample_project):
    """Test listing projects"""
    response = client.get("/api/projects")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["total"] >= 1
    assert data["page"] == 1
    assert any(p["id"] == sample_project.id for p in data["items"])

def test_list_projects_filters(client, sample_project):
    response = client.get("/api/projects", params={"stage": "quoted"})
    assert response.status_code == status.HTTP_200_OK
    assert all(p["id"] != sample_project.id for p in response.json()["items"])

    response = client.get("/api/projects", params={"search": "bracket"})
    assert any(p["id"] == sample_project.id for p in response.json()["items"])

def test_list_projects_limit_is_capped(client):
    response = client.get("/api/projects", params={"limit": 1000})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["limit"] == 100

def test_update_project(client, sample_project):
    """Test updating a project"""
    update_data = {
        "title": "Updated Project",
        "description": "Updated Description"
    }
    response = client.put(
        f"/api/projects/{sample_project.id}",
        json=update_data
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["title"] == update_data["title"]
    assert data["description"] == update_data["description"]

def test_delete_project(client, sample_project):
    """Test deleting a project"""
    response = client.delete(f"/api/projects/{sample_project.id}")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"success": True}

    # Verify project is deleted
    get_response = client.get(f"/api/projects/{sample_project.id}")
    assert get_response.status_code == status.HTTP_404_NOT_FOUND

def test_get_nonexistent_project(client):
    """Test getting a project that doesn't exist"""
    response = client.get("/api/projects/99999")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert "99999" in response.json()["detail"]

def test_invalid_project_data(client):
    """Test creating a project with invalid data"""
    response = client.post(
        "/api/projects",
        json={"description": "Missing title field"}
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

def test_list_stages(client):
    response = client.get("/api/projects/stages")
    assert response.status_code == status.HTTP_200_OK
    stages = [s["stage"] for s in response.json()]
    assert stages[0] == "inquiry_received"
    assert stages[-1] == "shipped_closed"
    assert len(stages) == 8

def test_stage_transition(client, sample_project):
    response = client.post(
        f"/api/projects/{sample_project.id}/stage",
        json={"stage": "technical_review", "reason": "Drawings complete"}
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["stage"] == "technical_review"

    history = client.get(f"/api/projects/{sample_project.id}/stage-history").json()
    assert [h["to_stage"] for h in history] == ["inquiry_received", "technical_review"]
    assert history[0]["exited_at"] is not None
    assert history[0]["duration_minutes"] is not None
    assert history[1]["exited_at"] is None
    assert history[1]["reason"] == "Drawings complete"

def test_stage_transition_to_same_stage(client, sample_project):
    response = client.post(
        f"/api/projects/{sample_project.id}/stage",
        json={"stage": "inquiry_received"}
    )
    assert response.status_code == status.HTTP_409_CONFLICT

@pytest.mark.parametrize("closed_status", ["cancelled", "completed"])
def test_closed_project_cannot_change_stage(client, sample_project, closed_status):
    client.put(f"/api/projects/{sample_project.id}", json={"status": closed_status})
    response = client.post(
        f"/api/projects/{sample_project.id}/stage",
        json={"stage": "quoted"}
    )
    assert response.status_code == status.HTTP_409_CONFLICT

def test_stage_cannot_move_back(client, sample_project):
    url = f"/api/projects/{sample_project.id}/stage"
    assert client.post(url, json={"stage": "technical_review"}).status_code == status.HTTP_200_OK

    response = client.post(url, json={"stage": "inquiry_received"})
    assert response.status_code == status.HTTP_409_CONFLICT
    assert client.get(f"/api/projects/{sample_project.id}").json()["stage"] == "technical_review"

def test_skipping_stages_needs_bypass(client, sample_project, engineer_user, auth):
    url = f"/api/projects/{sample_project.id}/stage"
    assert client.post(url, json={"stage": "quoted"}).status_code == status.HTTP_403_FORBIDDEN
    response = client.post(url, json={"stage": "quoted"}, headers=auth(engineer_user))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert client.get(f"/api/projects/{sample_project.id}").json()["stage"] == "inquiry_received"

def test_skipping_stages_with_bypass(client, sample_project, sales_user, auth):
    response = client.post(
        f"/api/projects/{sample_project.id}/stage",
        json={"stage": "quoted", "reason": "Repeat order"},
        headers=auth(sales_user)
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["stage"] == "quoted"

    history = client.get(f"/api/projects/{sample_project.id}/stage-history").json()
    assert history[-1]["from_stage"] == "inquiry_received"
    assert history[-1]["changed_by"] == sales_user.id

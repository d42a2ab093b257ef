# tests/conftest.py
import io
import os
import shutil
import tempfile
from pathlib import Path

import pytest
from fastapi import UploadFile
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.datastructures import Headers

from factory_pulse.main import app
from factory_pulse.database import Base, get_db
from factory_pulse.models import (
    Customer,
    Document,
    DocumentVersion,
    Supplier,
    User,
    UserRole,
)
from factory_pulse.config import settings
from factory_pulse.schemas.project import ProjectCreate
from factory_pulse.services.projects import project_service

# Create test database
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="session")
def engine():
    """Create test database engine"""
    engine = create_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool  # Needed for SQLite in-memory database
    )

    # pysqlite defers BEGIN; emit it ourselves so savepoints nest inside the test transaction
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture(scope="session")
def tables(engine):
    """Create all tables in the test database"""
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def db_session(engine, tables):
    """Creates a new database session for a test.

    Service commits and rollbacks act on a savepoint, the outer transaction is
    rolled back when the test ends.
    """
    connection = engine.connect()
    transaction = connection.begin()
    session = sessionmaker(bind=connection, join_transaction_mode="create_savepoint")()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def temp_storage_dir():
    """Create temporary storage directory for test files"""
    temp_dir = tempfile.mkdtemp()
    for subdir in ["documents", "approval-attachments", "exports"]:
        Path(temp_dir, subdir).mkdir(parents=True, exist_ok=True)
    yield Path(temp_dir)
    shutil.rmtree(temp_dir)


@pytest.fixture(autouse=True)
def override_settings(temp_storage_dir):
    """Override settings for testing"""
    original_storage = settings.STORAGE_PATH
    original_documents = settings.DOCUMENTS_PATH
    original_attachments = settings.ATTACHMENTS_PATH
    original_exports = settings.EXPORTS_PATH

    # Override settings
    settings.STORAGE_PATH = temp_storage_dir
    settings.DOCUMENTS_PATH = temp_storage_dir / "documents"
    settings.ATTACHMENTS_PATH = temp_storage_dir / "approval-attachments"
    settings.EXPORTS_PATH = temp_storage_dir / "exports"

    yield

    # Restore settings
    settings.STORAGE_PATH = original_storage
    settings.DOCUMENTS_PATH = original_documents
    settings.ATTACHMENTS_PATH = original_attachments
    settings.EXPORTS_PATH = original_exports


@pytest.fixture
def client(db_session):
    """Test client using the test database"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_user(db_session, email, role, display_name=None):
    user = User(email=email, display_name=display_name or email.split("@")[0], role=role)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session):
    return make_user(db_session, "admin@example.com", UserRole.ADMIN, "Ada Admin")


@pytest.fixture
def sales_user(db_session):
    return make_user(db_session, "sales@example.com", UserRole.SALES, "Sam Sales")


@pytest.fixture
def qa_user(db_session):
    return make_user(db_session, "qa@example.com", UserRole.QA, "Quinn QA")


@pytest.fixture
def engineer_user(db_session):
    return make_user(db_session, "engineer@example.com", UserRole.ENGINEERING, "Eli Engineer")


@pytest.fixture
def auth():
    """Headers that authenticate a request as the given user"""
    def _auth(user):
        return {"X-User-Id": str(user.id)}
    return _auth


@pytest.fixture
def sample_customer(db_session):
    """Create a sample customer"""
    customer = Customer(
        company_name="Acme Manufacturing",
        contact_name="Jane Buyer",
        email="jane@acme.com",
        country="Germany"
    )
    db_session.add(customer)
    db_session.commit()
    db_session.refresh(customer)
    return customer


@pytest.fixture
def sample_project(db_session, sample_customer):
    """Create a sample project in the inquiry stage"""
    return project_service.create_project(db_session, ProjectCreate(
        title="Bracket Assembly",
        description="Laser cut and bent steel brackets",
        customer_id=sample_customer.id,
        project_type="fabrication"
    ))


@pytest.fixture
def sample_supplier(db_session):
    """Create a sample supplier"""
    supplier = Supplier(
        name="Precision Parts",
        company="Precision Parts GmbH",
        email="sales@precision.com",
        country="Germany",
        specialties=["CNC Machining", "Sheet Metal"]
    )
    db_session.add(supplier)
    db_session.commit()
    db_session.refresh(supplier)
    return supplier


@pytest.fixture
def second_supplier(db_session):
    supplier = Supplier(
        name="Castwell Foundry",
        country="Poland",
        specialties=["Casting"],
        quality_rating=3.0,
        delivery_rating=3.5,
        cost_rating=4.5
    )
    db_session.add(supplier)
    db_session.commit()
    db_session.refresh(supplier)
    return supplier


@pytest.fixture
def upload_file():
    """Build an UploadFile from bytes"""
    def _create_upload_file(filename: str, content: bytes, content_type: str = None):
        headers = Headers({"content-type": content_type}) if content_type else None
        return UploadFile(file=io.BytesIO(content), filename=filename, headers=headers)
    return _create_upload_file


@pytest.fixture
def sample_document(db_session, sample_project, temp_storage_dir):
    """Create a document with a single stored version"""
    relative_path = f"documents/{sample_project.id}/versions/drawing_v1.pdf"
    file_path = temp_storage_dir / relative_path
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_bytes(b"%PDF-1.4 first revision")

    document = Document(
        project_id=sample_project.id,
        title="Drawing",
        category="drawing",
        file_name="drawing_v1.pdf",
        file_path=relative_path,
        file_size=file_path.stat().st_size,
        mime_type="application/pdf",
        version=1
    )
    db_session.add(document)
    db_session.flush()
    db_session.add(DocumentVersion(
        document_id=document.id,
        version_number=1,
        file_name="drawing_v1.pdf",
        file_path=relative_path,
        file_size=file_path.stat().st_size,
        mime_type="application/pdf",
        title="Drawing",
        change_summary="Initial version",
        is_current=True,
        details={"revision": "A"}
    ))
    db_session.commit()
    db_session.refresh(document)
    return document


@pytest.fixture(scope="session", autouse=True)
def cleanup_test_files():
    """Clean up test files after all tests are done"""
    yield
    for file in ["test.db", "factory_pulse.db"]:
        if os.path.exists(file):
            os.remove(file)

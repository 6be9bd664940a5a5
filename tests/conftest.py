"""
Pytest configuration and shared fixtures for the KEC Study Hub API tests
"""

import io

import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import create_access_token
from fakes import StaticGenerator, WordListFilter
from gateway import ModerationGateway
from main import app, get_database, get_gateway, get_registry
from registry import MaterialRegistry
from schemas import MaterialForm
from storage import FileStorage


# ============================================
# Storage and database
# ============================================

@pytest.fixture
def mongo_db():
    return mongomock.MongoClient()["kec_study_hub_test"]


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def storage(upload_dir):
    return FileStorage(str(upload_dir), "http://testserver", max_bytes=1024)


@pytest.fixture
def registry(mongo_db, storage):
    return MaterialRegistry(mongo_db, storage)


@pytest.fixture
def generator():
    return StaticGenerator()


@pytest.fixture
def gateway(mongo_db, generator):
    return ModerationGateway(mongo_db, WordListFilter(), generator)


# ============================================
# Domain helpers
# ============================================

@pytest.fixture
def material_form():
    return MaterialForm(
        subjectName="Data Structures",
        courseCode="CS201",
        materialType="notes",
        semester="3",
        department="CSE",
        year="2",
    )


@pytest.fixture
def make_material(registry, material_form):
    def _make(device_id="dev1", **overrides):
        form = material_form.model_copy(update=overrides)
        return registry.create(form, device_id, io.BytesIO(b"lecture notes"), "notes.pdf")
    return _make


# ============================================
# HTTP client
# ============================================

@pytest.fixture
def client(mongo_db, registry, gateway):
    app.dependency_overrides[get_database] = lambda: mongo_db
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def user_headers():
    return {"Authorization": f"Bearer {create_access_token('student-1')}"}


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_access_token('admin-1', is_admin=True)}"}

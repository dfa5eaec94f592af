"""
Test configuration and fixtures
"""
import os

import pytest

# Set testing environment before any project module reads config
os.environ["LOCAL_STORE_PATH"] = ""
os.environ.pop("DATABASE_URL", None)
os.environ.pop("DATABASE_NAME", None)
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ADMIN_CONTACT"] = "admin@test"
os.environ["ADMIN_PASSWORD"] = "admin-pass"
os.environ["INDEX_ORIGIN"] = "1000"

import database
from database import LocalDocumentStore
from allocator import IndexAllocator
from repositories import CoursesRepository, SettingsRepository, UsersRepository
from schemas import RegisterRequest


@pytest.fixture
def store() -> LocalDocumentStore:
    """Fresh in-memory store for each test"""
    return LocalDocumentStore()


@pytest.fixture
def allocator(store) -> IndexAllocator:
    return IndexAllocator(store, origin=1000)


@pytest.fixture
def users(store, allocator) -> UsersRepository:
    return UsersRepository(store, allocator)


@pytest.fixture
def settings_repo(store) -> SettingsRepository:
    return SettingsRepository(store)


@pytest.fixture
def courses_repo(store) -> CoursesRepository:
    return CoursesRepository(store)


@pytest.fixture
def profile_data() -> dict:
    return {
        "name": "Nimal Perera",
        "contact": "0710000001",
        "password": "secret-pass",
        "school": "Royal College",
        "birthday": "2007-04-12",
        "exam_year": "2026",
    }


@pytest.fixture
def student(users, profile_data):
    return users.register(RegisterRequest(**profile_data))


@pytest.fixture
def client(store, monkeypatch):
    """API client wired to the per-test store; startup seeds the admin"""
    from fastapi.testclient import TestClient
    from main import app

    monkeypatch.setattr(database, "_store", store)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_headers(client) -> dict:
    response = client.post(
        "/auth/login", json={"contact": "admin@test", "password": "admin-pass"}
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def student_headers(client, profile_data) -> dict:
    response = client.post("/auth/register", json=profile_data)
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}

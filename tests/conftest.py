"""
Shared fixtures: in-memory database, API client and authenticated users
"""

import asyncio
import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from labflow.database import Base, get_db
from labflow.services.storage import OrderFileStorage, get_storage
from labflow.services.user_service import UserService
from labflow.schemas.user import UserCreate
from main import app

# Test database setup
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db

ADMIN_PASSWORD = "AdminPass123"
USER_PASSWORD = "UserPass123"


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def storage(tmp_path):
    store = OrderFileStorage(str(tmp_path / "order-files"), "test-secret-key")
    app.dependency_overrides[get_storage] = lambda: store
    yield store
    app.dependency_overrides.pop(get_storage, None)


def _create_user(db, username, email, password, role):
    return asyncio.run(UserService(db).create_user(
        UserCreate(username=username, email=email, password=password, role=role)
    ))


def _login(client, username, password):
    response = client.post(
        "/api/v1/auth/login",
        json={"username_or_email": username, "password": password},
    )
    assert response.status_code == 200
    return response.json()["access_token"]


@pytest.fixture
def admin_user(db):
    return _create_user(db, "admin", "admin@example.com", ADMIN_PASSWORD, "admin")


@pytest.fixture
def lab_user(db):
    return _create_user(db, "maria", "maria@example.com", USER_PASSWORD, "user")


@pytest.fixture
def admin_headers(client, admin_user):
    return {"Authorization": f"Bearer {_login(client, 'admin', ADMIN_PASSWORD)}"}


@pytest.fixture
def user_headers(client, lab_user):
    return {"Authorization": f"Bearer {_login(client, 'maria', USER_PASSWORD)}"}


@pytest.fixture
def order_payload():
    return {
        "patient_name": "Ana Souza",
        "dentist_name": "Dr. Carlos Lima",
        "clinic_name": "Clínica Sorriso",
        "selected_teeth": ["11", "12"],
        "material": "zirconia",
        "color": "A2",
        "prosthesis_type": "coroa",
    }


@pytest.fixture
def created_order(client, order_payload):
    response = client.post("/api/v1/orders/", json=order_payload)
    assert response.status_code == 201
    return response.json()

"""Pytest fixtures for the customer back-office.

Provides reusable test fixtures for:
- Database session on an in-memory SQLite database
- Test client with the database dependency overridden
- Tenant headers

Usage:
    def test_list_customers(client, tenant_headers):
        response = client.get("/api/v1/customers", headers=tenant_headers)
        assert response.status_code == 200
"""

import os
import sys
from pathlib import Path
from typing import Generator

# Set environment variables BEFORE any imports to ensure they take effect
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_JSON", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))
sys.path.insert(0, str(Path(__file__).parent))

from models import Base
from database import get_db as database_get_db


TENANT_ID = "tenant-a"
OTHER_TENANT_ID = "tenant-b"


@pytest.fixture(scope="function")
def db_engine():
    """In-memory SQLite engine shared by every connection of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a fresh database session for each test.

    Tables are created before the test and dropped after, so each test
    starts from a clean database.
    """
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session):
    """FastAPI TestClient whose requests use the test session."""
    from main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[database_get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def tenant_headers() -> dict:
    return {"X-Tenant-ID": TENANT_ID, "X-Actor-ID": "user-1"}


@pytest.fixture
def other_tenant_headers() -> dict:
    return {"X-Tenant-ID": OTHER_TENANT_ID, "X-Actor-ID": "user-2"}

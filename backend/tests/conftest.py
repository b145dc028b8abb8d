"""
Shared fixtures: both repository implementations, an application wired to
the in-memory store, and a publisher that records events instead of
talking to Redis.
"""
import os
import sys
from datetime import datetime
from decimal import Decimal

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["REALTIME_EVENTS_ENABLED"] = "false"
os.environ["DEMO_MODE"] = "false"
os.environ["JWT_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.database import Base  # noqa: E402
from app.main import create_app  # noqa: E402
from app.models import Transaction  # noqa: E402
from app.repositories import (  # noqa: E402
    InMemoryRepository,
    MemoryRepositoryProvider,
    SqlAlchemyRepository,
)
from app.schemas import RegisterRequest  # noqa: E402
from app.services.auth_service import AuthService  # noqa: E402
from app.services.event_publisher import EventPublisher, get_event_publisher  # noqa: E402

TEST_PASSWORD = "secret123"


class RecordingPublisher(EventPublisher):
    """Keeps published events in memory."""

    def __init__(self):
        super().__init__(redis_url="redis://unused", enabled=False)
        self.events = []

    def publish(self, user_id: str, event_type: str, payload: dict) -> None:
        self.events.append((str(user_id), event_type, payload))

    def types(self) -> list:
        return [event_type for _, event_type, _ in self.events]


@pytest.fixture
def sql_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def repository(request):
    """Runs the test once per repository implementation."""
    if request.param == "memory":
        return InMemoryRepository()
    return SqlAlchemyRepository(request.getfixturevalue("sql_session"))


@pytest.fixture
def user(repository):
    registered, _ = AuthService(repository).register(
        RegisterRequest(email="alice@example.com", password=TEST_PASSWORD, full_name="Alice Example")
    )
    return registered


@pytest.fixture
def categories(repository, user):
    """The user's categories keyed by name."""
    return {c.name: c for c in repository.list_categories(user.id)}


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def app(publisher):
    application = create_app(MemoryRepositoryProvider())
    application.dependency_overrides[get_event_publisher] = lambda: publisher
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


def register_user(client, email="bob@example.com", full_name="Bob Example", password=TEST_PASSWORD) -> dict:
    response = client.post("/api/auth/register", json={
        "email": email,
        "password": password,
        "fullName": full_name,
    })
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def auth(client):
    """A registered user: response data plus ready-made headers."""
    data = register_user(client)
    data["headers"] = {"Authorization": f"Bearer {data['token']}"}
    return data


@pytest.fixture
def register(client):
    """Register another user through the API; returns (data, headers)."""
    def _register(email: str, full_name: str = "Another User"):
        data = register_user(client, email=email, full_name=full_name)
        return data, {"Authorization": f"Bearer {data['token']}"}
    return _register


@pytest.fixture
def make_transaction(repository, user, categories):
    """Store a transaction for ``user`` directly through the repository."""
    def _make(category: str = "Food & Dining", tags=(), **fields):
        chosen = categories[category]
        values = {
            "user_id": user.id,
            "title": "Lunch",
            "amount": Decimal("100.00"),
            "transaction_type": chosen.category_type,
            "category_id": chosen.id,
            "date": datetime(2024, 3, 15, 12, 0),
            "status": "completed",
        }
        values.update(fields)
        txn = Transaction(**values)
        txn.tags = list(tags)
        return repository.add_transaction(txn)
    return _make

"""
Shared fixtures.

API tests run the real application against the in-memory mocks: mock
Snowflake, mock storage, mock email and the mock video processor. The
mocks are created here and installed as the shared instances the
dependencies hand out, so tests can inspect what the API wrote.
"""

from datetime import date
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient

from src.api import dependencies
from src.config.settings import get_settings
from src.infrastructure.email.client import MockEmailClient
from src.infrastructure.snowflake.client import MockSnowflakeConnection
from src.infrastructure.snowflake.repositories import AccountRepository
from src.infrastructure.storage.client import MockStorageClient
from src.infrastructure.video.processor import MockVideoProcessor
from src.main import create_app

TEST_ENV = {
    "ENVIRONMENT": "development",
    "JWT_SECRET": "test-secret",
    "SNOWFLAKE_MOCK_MODE": "true",
    "R2_MOCK_MODE": "true",
    "EMAIL_MOCK_MODE": "true",
    "VIDEO_PROCESSOR_MOCK_MODE": "true",
    "LOG_LEVEL": "WARNING",
}


@pytest.fixture
def settings(monkeypatch):
    for name, value in TEST_ENV.items():
        monkeypatch.setenv(name, value)
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def db():
    return MockSnowflakeConnection()


@pytest.fixture
def storage():
    return MockStorageClient()


@pytest.fixture
def outbox():
    return MockEmailClient()


@pytest.fixture
def client(settings, db, storage, outbox):
    dependencies.reset_mock_clients()
    dependencies._mock_snowflake_connection = db
    dependencies._mock_storage_client = storage
    dependencies._mock_email_client = outbox
    dependencies._mock_video_processor = MockVideoProcessor()

    app = create_app()
    yield TestClient(app)

    dependencies.reset_mock_clients()


@pytest.fixture
def accounts(db):
    return AccountRepository(db)


def registration(
    user_type: str = "athlete",
    email: Optional[str] = None,
    **overrides: Any,
) -> dict[str, Any]:
    body = {
        "name": f"Test {user_type.title()}",
        "email": email or f"{user_type}@example.com",
        "password": "secret123",
        "user_type": user_type,
        "phone": "+91 98765 43210",
        "date_of_birth": date(2000, 5, 17).isoformat(),
        "gender": "female",
        "state": "Karnataka",
        "city": "Bengaluru",
    }
    if user_type == "athlete":
        body["sport"] = "athletics"
    if user_type == "coach":
        body["specialization"] = ["athletics"]
        body["experience_years"] = 8
    body.update(overrides)
    return body


@pytest.fixture
def registration_form():
    """The registration body builder, for tests that post it themselves."""
    return registration


@pytest.fixture
def register(client):
    """
    Register an account through the API.

    Returns the response body (token and user) plus ready-made
    `headers` for authenticated requests.
    """
    def _register(user_type: str = "athlete", **kwargs: Any) -> dict[str, Any]:
        response = client.post("/api/v1/auth/register", json=registration(user_type, **kwargs))
        assert response.status_code == 201, response.text
        body = response.json()
        body["headers"] = {"Authorization": f"Bearer {body['token']}"}
        return body

    return _register


@pytest.fixture
def athlete(register):
    return register("athlete")


@pytest.fixture
def coach(register):
    return register("coach")


@pytest.fixture
def official(register):
    return register("sai_official", employee_id="SAI-001")

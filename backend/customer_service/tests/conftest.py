# backend/customer_service/tests/conftest.py

import logging
import os
import tempfile
import time

import pytest

# Must be set before the app (and its Database) is imported
TEST_DB_PATH = os.path.join(tempfile.gettempdir(), "customer_service_tests.db")
os.environ["DATABASE_URL"] = os.getenv(
    "TEST_DATABASE_URL", f"sqlite:///{TEST_DB_PATH}"
)

from app.db import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402

from fastapi.testclient import TestClient  # noqa: E402

# Suppress noisy logs from SQLAlchemy/FastAPI/Uvicorn during tests for cleaner output
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
logging.getLogger("fastapi").setLevel(logging.WARNING)
logging.getLogger("app.main").setLevel(logging.WARNING)


# --- Pytest Fixtures ---
@pytest.fixture(scope="session", autouse=True)
def setup_database_for_tests():
    engine = app.state.database.engine
    # Explicitly drop all tables first to ensure a clean slate for the session
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    logging.info("Customer Service Tests: Created all tables for test setup.")

    yield

    app.state.database.dispose()


@pytest.fixture(scope="function")
def db_session_for_test():
    database = app.state.database
    connection = database.engine.connect()
    transaction = connection.begin()
    db = database.SessionLocal(bind=connection)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    try:
        yield db
    finally:
        db.close()
        transaction.rollback()
        connection.close()
        app.dependency_overrides.pop(get_db, None)


def wait_until_ready(test_client: TestClient, timeout: float = 10.0):
    """Poll the health endpoint until the startup sequencer reports ready."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if test_client.get("/health").status_code == 200:
            return
        time.sleep(0.05)
    pytest.fail(f"Customer Service did not become ready within {timeout} seconds")


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as test_client:
        wait_until_ready(test_client)
        yield test_client

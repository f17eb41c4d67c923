import os
import tempfile

# Must be set before isp_billing builds its engine and settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUDIT_LOG_DIR"] = tempfile.mkdtemp(prefix="isp_billing_audit_")

import uuid
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from isp_billing.core.changes import change_feed
from isp_billing.db.engine_sync import sync_engine
from isp_billing.db.init_db import setup_database
from isp_billing.models import Client


@pytest.fixture(autouse=True)
def database():
    """Fresh schema and default settings for every test."""
    SQLModel.metadata.drop_all(sync_engine)
    setup_database(sync_engine)
    yield sync_engine
    change_feed.clear()


@pytest.fixture
def session(database):
    with Session(database) as session:
        yield session


@pytest.fixture
def api_client(database):
    from isp_billing.main import app

    with TestClient(app) as client:
        yield client


@pytest.fixture
def make_client(session):
    """Inserts a client row directly, bypassing validation."""

    def _make(**fields) -> Client:
        values = {
            "id": uuid.uuid4(),
            "name": "Jane Wanjiku",
            "phone_number": "+254712345678",
            "amount_paid": 1000.0,
            "due_date": date(2024, 3, 1),
            "status": "Pending",
            "debt": 0.0,
        }
        values.update(fields)
        client = Client(**values)
        session.add(client)
        session.commit()
        session.refresh(client)
        return client

    return _make

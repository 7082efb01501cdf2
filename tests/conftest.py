"""
Shared fixtures for the portal API tests.

Route tests run against an in-memory KV store with authentication overridden,
so no Supabase project is needed.
"""

import os

import pytest
from fastapi.testclient import TestClient

# Set test environment
os.environ["ENVIRONMENT"] = "test"

from portal import settings as workflow_settings
from portal.auth import get_current_user
from portal.main import app
from portal.router_utils import get_store
from portal.storage import KVStore, MemoryKV


TEST_USER = {"id": "test-user-id", "email": "test@example.com", "user_metadata": {}}
OTHER_USER = {"id": "other-user-id", "email": "other@example.com", "user_metadata": {}}


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def clear_settings_cache():
    workflow_settings.invalidate_cache()
    yield
    workflow_settings.invalidate_cache()


@pytest.fixture
def store():
    return KVStore(MemoryKV())


@pytest.fixture
def api(store):
    """TestClient authenticated as TEST_USER against the in-memory store."""
    app.dependency_overrides[get_current_user] = lambda: TEST_USER
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def client_record(store):
    """A client owned by TEST_USER."""
    return store.create_client(TEST_USER["id"], {
        "name": "Jane Smith",
        "type": "individual",
        "status": "new",
        "setup_progress": 0,
        "assigned_to": None,
    })

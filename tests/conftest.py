from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from edupassport.main import app
from edupassport.repos.blob_store import InMemoryBlobStore, blob_store
from edupassport.services import token_service
from edupassport.services.state import app_state

# Ensure repo root is on sys.path so `import edupassport` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

OWNER = "0xAAA0000000000000000000000000000000000001"
STRANGER = "0xBBB0000000000000000000000000000000000002"


@pytest.fixture(autouse=True)
def reset_blob_store() -> None:
    """Empty the in-memory contract store and mark it available again."""
    if isinstance(blob_store, InMemoryBlobStore):
        blob_store._blobs.clear()
        blob_store.available = True


@pytest.fixture(autouse=True)
def reset_app_state() -> None:
    """Clear activity, notification and reveal session between tests."""
    app_state.reset()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(address: str = OWNER) -> str:
    """Create a valid wallet session token for testing."""
    return token_service.create_access_token(address=address)


def auth(address: str = OWNER) -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(address)}"}


@pytest.fixture
def owner_headers() -> dict[str, str]:
    return auth(OWNER)


@pytest.fixture
def stranger_headers() -> dict[str, str]:
    return auth(STRANGER)

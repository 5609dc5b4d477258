import os
import sys

import pytest
from fastapi.testclient import TestClient

# factories.py sits beside the tests
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from safeharbor_service.main import create_app


@pytest.fixture
def app(tmp_path):
    return create_app(
        db_path=str(tmp_path / "safeharbor.db"),
        event_backend="sqlite_hash_chain",
        max_skew=300,
    )


@pytest.fixture
def client(app):
    # Entering the client runs the lifespan, which creates the schema
    with TestClient(app) as c:
        yield c

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

import gemini_net.workers.requestor as requestor_module
from gemini_net.main import app


@pytest.fixture
def client():
    """TestClient with a fresh shared requestor for each test."""
    requestor_module.reset_requestor()
    with TestClient(app) as c:
        yield c
    requestor_module.reset_requestor()

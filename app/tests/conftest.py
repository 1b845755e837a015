"""
Shared pytest fixtures for the HTTP API tests.
"""
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from api_compare.tests.listings import library_binary
from app.main import app


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def old_dll(tmp_path) -> Path:
    path = tmp_path / "old" / "Lib.dll"
    path.parent.mkdir()
    path.write_bytes(library_binary("1.0.0.0", with_method=True, limit=10))
    return path


@pytest.fixture
def new_dll(tmp_path) -> Path:
    path = tmp_path / "new" / "Lib.dll"
    path.parent.mkdir()
    path.write_bytes(library_binary("2.0.0.0", with_method=False, limit=20))
    return path

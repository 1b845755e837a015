"""
Shared pytest fixtures for api_compare tests.

Listings are assembled from descriptors (see listings.py); the
end-to-end fixtures compile two versions of a small library with the
api_listing metadata builder.
"""
from pathlib import Path

import pytest

from api_compare.tests.listings import field, library_binary, listing, method, type_


@pytest.fixture
def baseline():
    """A listing with one of everything the comparer looks at."""
    return listing(
        type_(
            "C.Service",
            method("Run"),
            method("M"),
            field("Limit", "System.Int32", constant=True, static=True, literal="10"),
        ),
        type_("C.TypeToRename"),
    )


@pytest.fixture
def old_dll(tmp_path) -> Path:
    path = tmp_path / "old" / "Lib.dll"
    path.parent.mkdir()
    path.write_bytes(library_binary("1.0.0.0", with_method=True, limit=10))
    return path


@pytest.fixture
def new_dll(tmp_path) -> Path:
    """Lib 2.0: Ping removed, Limit changed."""
    path = tmp_path / "new" / "Lib.dll"
    path.parent.mkdir()
    path.write_bytes(library_binary("2.0.0.0", with_method=False, limit=20))
    return path

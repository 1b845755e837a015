"""
Shared pytest fixtures for api_listing tests.

Assemblies are synthesised with metadata_builder; the sample library
covers every descriptor rule the reader implements.
"""
from pathlib import Path
from typing import Optional

import pytest

from api_listing.tests.metadata_builder import AssemblyBuilder, Sig, build_sample, wrap_pe


@pytest.fixture
def assembly_builder():
    """Factory for fresh AssemblyBuilder instances."""

    def _make(name: Optional[str] = "Sample", **kwargs) -> AssemblyBuilder:
        return AssemblyBuilder(name, **kwargs)

    return _make


@pytest.fixture
def sig():
    return Sig


@pytest.fixture
def sample_builder():
    return build_sample(AssemblyBuilder("Sample", version=(1, 2, 3, 4)))


@pytest.fixture
def sample_metadata(sample_builder) -> bytes:
    return sample_builder.build()


@pytest.fixture
def sample_dll(tmp_path, sample_builder) -> Path:
    path = tmp_path / "Sample.dll"
    path.write_bytes(sample_builder.build_pe())
    return path


@pytest.fixture
def native_dll(tmp_path) -> Path:
    """A PE image without a CLI header."""
    path = tmp_path / "native.dll"
    path.write_bytes(wrap_pe(b"", with_cli_header=False))
    return path


@pytest.fixture
def not_pe(tmp_path) -> Path:
    path = tmp_path / "readme.txt"
    path.write_text("definitely not a PE image\n")
    return path

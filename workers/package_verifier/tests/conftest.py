"""
Shared pytest fixtures for package_verifier tests.

Assemblies are synthesised with the api_listing metadata builder; each
fixture differs only in its assembly-level attributes.
"""
from pathlib import Path
from typing import Optional

import pytest

from api_listing.core.metadata_tables import CodedIndex, TableId
from api_listing.tests.metadata_builder import AssemblyBuilder, Sig, wrap_pe


def build_assembly(copyright_text: Optional[str] = None, with_attribute: bool = True, name: str = "Pkg") -> bytes:
    b = AssemblyBuilder(name)
    if with_attribute:
        attribute = b.type_ref("System.Reflection", "AssemblyCopyrightAttribute")
        b.attribute(CodedIndex(TableId.Assembly, 1), attribute, Sig.attribute_string(copyright_text))
    description = b.type_ref("System.Reflection", "AssemblyDescriptionAttribute")
    b.attribute(CodedIndex(TableId.Assembly, 1), description, Sig.attribute_string("A package"))
    return b.build_pe()


def _write(directory: Path, name: str, data: bytes) -> Path:
    path = directory / name
    path.write_bytes(data)
    return path


@pytest.fixture
def with_copyright(tmp_path) -> Path:
    return _write(tmp_path, "WithCopyright.dll", build_assembly("© .NET Foundation"))


@pytest.fixture
def without_copyright(tmp_path) -> Path:
    return _write(tmp_path, "WithoutCopyright.dll", build_assembly(with_attribute=False))


@pytest.fixture
def empty_copyright(tmp_path) -> Path:
    return _write(tmp_path, "EmptyCopyright.dll", build_assembly(""))


@pytest.fixture
def null_copyright(tmp_path) -> Path:
    return _write(tmp_path, "NullCopyright.dll", build_assembly(None))


@pytest.fixture
def package_dir(tmp_path) -> Path:
    """A package layout: two assemblies, a native library and a readme."""
    root = tmp_path / "package"
    lib = root / "lib" / "net8.0"
    lib.mkdir(parents=True)
    _write(lib, "Good.dll", build_assembly("Copyright"))
    _write(lib, "Bad.dll", build_assembly(with_attribute=False, name="Bad"))
    native = root / "runtimes" / "linux-x64" / "native"
    native.mkdir(parents=True)
    _write(native, "libnative.dll", wrap_pe(b"", with_cli_header=False))
    _write(root, "readme.txt", b"hello\n")
    return root

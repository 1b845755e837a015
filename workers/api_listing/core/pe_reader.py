"""
PE reader — open a PE image with dnfile and validate its CLI header.

Responsibilities:
  - Validate that the file is a PE image carrying a CLI (COR20) header
    whose metadata root dnfile could read.
  - Compute the file hash and size for provenance.
  - Return an AssemblyMeta dataclass with all reader-relevant facts.

This module intentionally does NOT read metadata tables.
"""
import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import dnfile
import pefile

from api_listing.core.errors import MetadataFormatError, NotAnAssemblyError

logger = logging.getLogger(__name__)

_COM_DESCRIPTOR = pefile.DIRECTORY_ENTRY["IMAGE_DIRECTORY_ENTRY_COM_DESCRIPTOR"]


@dataclass(frozen=True)
class AssemblyMeta:
    """Structural facts about a .NET PE image."""

    path: str
    file_sha256: str
    file_size: int

    machine: str             # e.g. "IMAGE_FILE_MACHINE_I386"
    is_dll: bool
    runtime_major: int       # COR20 header runtime version
    runtime_minor: int
    il_only: bool
    strong_name_signed: bool


def _sha256(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()


def load_pe(path: Optional[str] = None, data: Optional[bytes] = None) -> dnfile.dnPE:
    """
    Parse a PE image from *path* or *data* and check its CLI header.

    The caller owns the returned dnPE and must close() it.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    NotAnAssemblyError
        If the input is not a PE image or has no CLI header.
    MetadataFormatError
        If the CLI header or metadata root cannot be read.
    """
    label = path or "<memory>"
    if path is not None and not Path(path).exists():
        raise FileNotFoundError(f"Binary not found: {path}")

    try:
        pe = dnfile.dnPE(path, data=data, fast_load=True)
    except pefile.PEFormatError as exc:
        raise NotAnAssemblyError(f"{label} is not a PE image: {exc}") from exc

    try:
        directories = pe.OPTIONAL_HEADER.DATA_DIRECTORY
        if len(directories) <= _COM_DESCRIPTOR or directories[_COM_DESCRIPTOR].VirtualAddress == 0:
            raise NotAnAssemblyError(f"{label} has no CLI header")

        pe.parse_data_directories(directories=[_COM_DESCRIPTOR])
        if pe.net is None:
            raise MetadataFormatError(f"{label}: unreadable CLI header")
        if pe.net.metadata is None:
            raise MetadataFormatError(f"{label}: metadata root is missing or unreadable")
    except BaseException:
        pe.close()
        raise

    return pe


def describe_pe(path: str, pe: dnfile.dnPE) -> AssemblyMeta:
    """Provenance and CLI header facts of an image opened by load_pe."""
    p = Path(path)
    header = pe.net.struct
    flags = pe.net.Flags
    machine = pefile.MACHINE_TYPE.get(pe.FILE_HEADER.Machine, hex(pe.FILE_HEADER.Machine))

    logger.debug(
        "%s: CLI %d.%d, %d bytes of metadata",
        path, header.MajorRuntimeVersion, header.MinorRuntimeVersion, header.MetaDataSize,
    )

    return AssemblyMeta(
        path=str(p),
        file_sha256=_sha256(p),
        file_size=p.stat().st_size,
        machine=machine,
        is_dll=pe.is_dll(),
        runtime_major=header.MajorRuntimeVersion,
        runtime_minor=header.MinorRuntimeVersion,
        il_only=flags.CLR_ILONLY,
        strong_name_signed=flags.CLR_STRONGNAMESIGNED,
    )


def read_pe(path: str) -> AssemblyMeta:
    """
    Open *path* as a PE image and return its CLI facts.

    Raises FileNotFoundError, NotAnAssemblyError or MetadataFormatError
    (see load_pe).
    """
    pe = load_pe(path)
    try:
        return describe_pe(path, pe)
    finally:
        pe.close()

"""
Metadata tables — rid-addressed records over dnfile's parsed #~ stream.

Responsibilities:
  - Reject images whose metadata root or table stream dnfile could not
    parse.
  - Copy the columns the reader consumes out of dnfile rows into
    namedtuples with a leading 1-based ``rid``.
  - Flatten heap items to str / bytes, table indexes to rids, member runs
    to rid tuples and coded indexes to hashable CodedIndex pairs.
  - Resolve member runs through FieldPtr / MethodPtr / ParamPtr when an
    uncompressed stream carries them.

Flag columns keep dnfile's ``Clr*Attr`` objects, so callers test bits by
name (``row.Flags.mdVirtual``, ``row.Flags.tdInterface``).
"""
import logging
from collections import namedtuple
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

import dnfile
from dnfile.base import CodedIndex as ClrCodedIndex
from dnfile.base import MDTableIndex
from dnfile.enums import MetadataTables as TableId
from dnfile.stream import HeapItemBinary, HeapItemString

from api_listing.core.errors import MetadataFormatError

logger = logging.getLogger(__name__)

# dnfile records a stream it failed to parse as a PE warning with this prefix.
STREAM_FAILURE = "Unable to parse stream"


class CodedIndex(NamedTuple):
    """A (table, rid) reference; ``rid == 0`` is the null reference."""

    table: Optional[TableId]
    rid: int

    @property
    def is_null(self) -> bool:
        return self.rid == 0 or self.table is None


# ── Column converters ────────────────────────────────────────────────────────

def _string(value: Optional[HeapItemString]) -> str:
    return str(value) if value is not None else ""


def _blob(value: Optional[HeapItemBinary]) -> bytes:
    return value.value if value is not None else b""


def _index(value: Optional[MDTableIndex]) -> int:
    return value.row_index if value is not None else 0


def _coded(value: Optional[ClrCodedIndex]) -> CodedIndex:
    if value is None:
        return CodedIndex(None, 0)
    table = TableId(value.table.number) if value.table is not None else None
    return CodedIndex(table, value.row_index)


def _run(value: Optional[List[MDTableIndex]]) -> Tuple[int, ...]:
    return tuple(index.row_index for index in value or ())


def _asis(value):
    return value


S, B, I, C, L, V = _string, _blob, _index, _coded, _run, _asis

# dnfile row attribute -> converter, per table the reader consumes.
COLUMNS: Dict[TableId, Tuple[Tuple[str, Callable], ...]] = {
    TableId.Module: (("Name", S),),
    TableId.TypeRef: (("ResolutionScope", C), ("TypeName", S), ("TypeNamespace", S)),
    TableId.TypeDef: (("Flags", V), ("TypeName", S), ("TypeNamespace", S), ("Extends", C),
                      ("FieldList", L), ("MethodList", L)),
    TableId.FieldPtr: (("Field", I),),
    TableId.Field: (("Flags", V), ("Name", S), ("Signature", B)),
    TableId.MethodPtr: (("Method", I),),
    TableId.MethodDef: (("Flags", V), ("Name", S), ("Signature", B), ("ParamList", L)),
    TableId.ParamPtr: (("Param", I),),
    TableId.Param: (("Flags", V), ("Sequence", V), ("Name", S)),
    TableId.InterfaceImpl: (("Class", I), ("Interface", C)),
    TableId.MemberRef: (("Class", C), ("Name", S), ("Signature", B)),
    TableId.Constant: (("Type", V), ("Parent", C), ("Value", B)),
    TableId.CustomAttribute: (("Parent", C), ("Type", C), ("Value", B)),
    TableId.MethodImpl: (("Class", I), ("MethodBody", C), ("MethodDeclaration", C)),
    TableId.TypeSpec: (("Signature", B),),
    TableId.Assembly: (("MajorVersion", V), ("MinorVersion", V), ("BuildNumber", V),
                       ("RevisionNumber", V), ("Flags", V), ("PublicKey", B), ("Name", S),
                       ("Culture", S)),
    TableId.AssemblyRef: (("MajorVersion", V), ("MinorVersion", V), ("BuildNumber", V),
                          ("RevisionNumber", V), ("Name", S), ("Culture", S)),
    TableId.NestedClass: (("NestedClass", I), ("EnclosingClass", I)),
    TableId.GenericParam: (("Number", V), ("Flags", V), ("Owner", C), ("Name", S)),
    TableId.GenericParamConstraint: (("Owner", I), ("Constraint", C)),
}

del S, B, I, C, L, V

# (owner table, list column, pointer table, pointer column).  When the
# pointer table is present, list runs index it rather than the target.
POINTER_TABLES = (
    (TableId.TypeDef, "FieldList", TableId.FieldPtr, "Field"),
    (TableId.TypeDef, "MethodList", TableId.MethodPtr, "Method"),
    (TableId.MethodDef, "ParamList", TableId.ParamPtr, "Param"),
)

ROW_TYPES = {
    table: namedtuple(f"{table.name}Row", ["rid"] + [name for name, _ in columns])
    for table, columns in COLUMNS.items()
}


class MetadataTables:
    """
    Records for the tables in COLUMNS, read once from a parsed dnPE.

    Tables outside COLUMNS, and tables the image does not carry, read as
    empty.
    """

    def __init__(self, pe: dnfile.dnPE):
        net = pe.net
        if net is None or net.metadata is None:
            raise MetadataFormatError("metadata root is missing or unreadable")
        if net.mdtables is None:
            raise MetadataFormatError("metadata root has no #~ or #- table stream")
        failures = [w for w in pe.get_warnings() if w.startswith(STREAM_FAILURE)]
        if failures:
            raise MetadataFormatError("; ".join(failures))

        raw_version = getattr(net.metadata.struct, "Version", b"") or b""
        self.version = raw_version.split(b"\0", 1)[0].decode("ascii", errors="replace")

        self._rows: Dict[TableId, List[tuple]] = {}
        for table, columns in COLUMNS.items():
            source = net.mdtables.tables.get(table.value)
            if source is None:
                continue
            record = ROW_TYPES[table]
            self._rows[table] = [
                record(rid, *(convert(getattr(row, name, None)) for name, convert in columns))
                for rid, row in enumerate(source.rows, start=1)
            ]
        self._apply_pointer_tables()
        logger.debug("read %d metadata tables", len(self._rows))

    def _apply_pointer_tables(self) -> None:
        for owner, column, pointer_table, target in POINTER_TABLES:
            pointers = self._rows.get(pointer_table)
            if not pointers or owner not in self._rows:
                continue
            logger.debug("resolving %s through %s", column, pointer_table.name)
            self._rows[owner] = [
                row._replace(**{column: self._through(pointers, target, getattr(row, column))})
                for row in self._rows[owner]
            ]

    @staticmethod
    def _through(pointers: List[tuple], target: str, run: Tuple[int, ...]) -> Tuple[int, ...]:
        result = []
        for position in run:
            if position > len(pointers):
                raise MetadataFormatError(f"pointer table position {position} out of range")
            result.append(getattr(pointers[position - 1], target))
        return tuple(result)

    def rows(self, table: TableId) -> Sequence[tuple]:
        return self._rows.get(table, ())

    def row_count(self, table: TableId) -> int:
        return len(self._rows.get(table, ()))

    def row(self, table: TableId, rid: int) -> tuple:
        rows = self._rows.get(table, ())
        if rid < 1 or rid > len(rows):
            raise MetadataFormatError(f"{table.name} row {rid} out of range")
        return rows[rid - 1]

"""
test_listing_reader — descriptors built from the sample library.

Tests verify invariant properties:
  - Only public types, and nested types whose whole enclosing chain is
    visible, appear; declaration order is kept.
  - Canonical ids follow the documented shapes for types, methods,
    constructors, fields and enum values.
  - Overrides, hiding (``new``), interface implementation, extension
    methods, params arrays, out parameters and defaults are detected.
  - Two readings of one image are identical.
"""
import struct

import pytest

from api_listing.core.errors import UnsupportedMetadataError
from api_listing.core.metadata_tables import CodedIndex, TableId
from api_listing.core.type_index import build_listing
from api_listing.io.schema import MemberKind, ParameterDirection, TypeKind, Visibility
from api_listing.io.writer import dump_listing
from api_listing.policy.filters import exclude_matching, exclude_namespace
from api_listing.runner import read_listing, run_reader

from api_listing.tests.metadata_builder import (
    CTOR_FLAGS,
    FD_PUBLIC,
    MD_FAMILY,
    MD_FINAL,
    MD_HIDE_BY_SIG,
    MD_NEW_SLOT,
    MD_PRIVATE,
    MD_PUBLIC,
    MD_STATIC,
    MD_VIRTUAL,
    TD_NESTED_FAMILY,
    TD_PUBLIC,
    Sig,
    load_image,
)


def _listing(metadata: bytes, filters=()):
    return build_listing(load_image(metadata), filters)


@pytest.fixture
def listing(sample_metadata):
    return _listing(sample_metadata)


def _type(listing, name):
    return next(t for t in listing.types if t.name == name)


def _ids(type_descriptor):
    return [m.id for m in type_descriptor.members]


class TestTypes:
    """Type enumeration and type ids."""

    def test_identity(self, listing):
        assert listing.assembly_identity == "Sample, Version=1.2.3.4, Culture=neutral, PublicKeyToken=null"

    def test_visible_types_in_declaration_order(self, listing):
        assert [t.name for t in listing.types] == [
            "Sample.IShape",
            "Sample.Widget",
            "Sample.Color",
            "Sample.Point",
            "Sample.Extensions",
            "Sample.Outer",
            "Sample.Outer+Inner",
            "Sample.Repository<T>",
            "Sample.Derived",
        ]

    def test_nested_type_of_internal_type_excluded(self, listing):
        names = {t.name for t in listing.types}
        assert "Sample.Hidden" not in names
        assert "Sample.Hidden+Leaked" not in names
        assert "<Module>" not in names

    def test_type_ids(self, listing):
        ids = {t.name: t.id for t in listing.types}
        assert ids["Sample.IShape"] == "public interface Sample.IShape"
        assert ids["Sample.Widget"] == "public class Sample.Widget : Sample.IShape"
        assert ids["Sample.Color"] == "public enum Sample.Color : System.Byte"
        assert ids["Sample.Point"] == "public struct Sample.Point"
        assert ids["Sample.Extensions"] == "public static class Sample.Extensions"
        assert ids["Sample.Outer+Inner"] == "public class Sample.Outer+Inner"
        assert ids["Sample.Repository<T>"] == (
            "public class Sample.Repository<T> "
            "where T : class, System.Collections.Generic.IEnumerable<T>, new()"
        )

    def test_kinds(self, listing):
        assert _type(listing, "Sample.IShape").kind == TypeKind.INTERFACE
        assert _type(listing, "Sample.Color").kind == TypeKind.ENUM
        assert _type(listing, "Sample.Point").kind == TypeKind.STRUCT
        assert _type(listing, "Sample.Widget").kind == TypeKind.CLASS

    def test_modifiers_only_for_classes(self, listing):
        color = _type(listing, "Sample.Color")
        point = _type(listing, "Sample.Point")
        assert not color.sealed and not point.sealed
        extensions = _type(listing, "Sample.Extensions")
        assert extensions.static and extensions.abstract and extensions.sealed

    def test_interfaces_inherited_from_base_are_not_repeated(self, listing):
        derived = _type(listing, "Sample.Derived")
        assert derived.base_type == "Sample.Widget"
        assert derived.implemented_interfaces == ()
        assert derived.id == "public class Sample.Derived : Sample.Widget"

    def test_generic_parameter_descriptor(self, listing):
        (param,) = _type(listing, "Sample.Repository<T>").generic_parameters
        assert param.parameter_name == "T"
        assert param.parameter_position == 0
        assert param.class_constraint and param.new_constraint
        assert not param.struct_constraint
        assert param.base_type_or_interfaces == ("System.Collections.Generic.IEnumerable<T>",)

    def test_find_type(self, listing):
        assert listing.find_type("public struct Sample.Point").name == "Sample.Point"
        assert listing.find_type("public class Sample.Point") is None


class TestMembers:
    """Member enumeration and member ids."""

    def test_widget_members(self, listing):
        assert _ids(_type(listing, "Sample.Widget")) == [
            "public .ctor()",
            "public System.Double Area()",
            "public virtual System.String Describe(System.Int32 count, out System.Boolean ok)",
            "public static System.Int32 Parse(System.String text, params System.Object[] rest)",
            'public System.Void Log(System.String msg = "hi", System.Int32 level = 3)',
            "protected System.Int32 Counter",
            "public const System.Int32 Max = 10",
            "public static readonly System.String Label",
        ]

    def test_interface_members_have_no_visibility(self, listing):
        (area,) = _type(listing, "Sample.IShape").members
        assert area.id == "System.Double Area()"
        assert area.visibility is None
        assert not (area.abstract or area.virtual)

    def test_implicit_interface_implementation(self, listing):
        area = _type(listing, "Sample.Widget").members[1]
        assert area.implemented_interface == "Sample.IShape"
        assert area.explicit_interface is None
        assert not area.virtual and not area.sealed

    def test_constructor(self, listing):
        ctor = _type(listing, "Sample.Widget").members[0]
        assert ctor.kind == MemberKind.CONSTRUCTOR
        assert ctor.return_type is None

    def test_parameters(self, listing):
        describe = _type(listing, "Sample.Widget").members[2]
        assert [p.direction for p in describe.parameters] == [ParameterDirection.IN, ParameterDirection.OUT]
        assert describe.parameters[1].type == "System.Boolean"
        parse = _type(listing, "Sample.Widget").members[3]
        assert parse.parameters[1].is_params
        log = _type(listing, "Sample.Widget").members[4]
        assert [p.default_value for p in log.parameters] == ['"hi"', "3"]

    def test_enum_values(self, listing):
        assert _ids(_type(listing, "Sample.Color")) == ["Red = 1", "Blue = 2"]

    def test_struct_field(self, listing):
        assert _ids(_type(listing, "Sample.Point")) == ["public System.Int32 X"]

    def test_extension_method(self, listing):
        (twice,) = _type(listing, "Sample.Extensions").members
        assert twice.extension
        assert twice.id == "public static System.Int32 Twice(this System.Int32 value)"

    def test_generic_members(self, listing):
        assert _ids(_type(listing, "Sample.Repository<T>")) == [
            "public System.Void Add(T item)",
            "public TOut Map<TOut>(T input)",
        ]

    def test_override_and_new(self, listing):
        assert _ids(_type(listing, "Sample.Derived")) == [
            "public override System.String Describe(System.Int32 count, out System.Boolean ok)",
            'public new System.Void Log(System.String msg = "hi", System.Int32 level = 3)',
        ]

    def test_private_members_excluded(self, listing):
        widget = _type(listing, "Sample.Widget")
        assert all("Hidden" not in m.name for m in widget.members)


class TestRules:
    """Rules exercised on purpose-built assemblies."""

    def test_sealed_override(self, assembly_builder):
        b = assembly_builder("Rules")
        obj = b.type_ref("System", "Object")
        base = b.type_def("Rules", "Base", TD_PUBLIC, obj)
        b.method("Run", MD_PUBLIC | MD_VIRTUAL | MD_NEW_SLOT | MD_HIDE_BY_SIG, Sig.method(Sig.VOID))
        b.type_def("Rules", "Leaf", TD_PUBLIC, CodedIndex(TableId.TypeDef, base))
        b.method("Run", MD_PUBLIC | MD_VIRTUAL | MD_FINAL | MD_HIDE_BY_SIG, Sig.method(Sig.VOID))

        listing = _listing(b.build())
        (run,) = listing.types[1].members
        assert run.id == "public sealed override System.Void Run()"

    def test_explicit_interface_implementation(self, assembly_builder):
        b = assembly_builder("Rules")
        obj = b.type_ref("System", "Object")
        iface = b.type_def("Rules", "IRun", TD_PUBLIC | 0x20 | 0x80)
        decl = b.method("Run", MD_PUBLIC | MD_VIRTUAL | 0x400 | MD_NEW_SLOT | MD_HIDE_BY_SIG, Sig.method(Sig.VOID))
        impl_type = b.type_def("Rules", "Runner", TD_PUBLIC, obj)
        body = b.method(
            "Rules.IRun.Run",
            MD_PRIVATE | MD_VIRTUAL | MD_FINAL | MD_NEW_SLOT | MD_HIDE_BY_SIG,
            Sig.method(Sig.VOID),
        )
        b.interface_impl(impl_type, CodedIndex(TableId.TypeDef, iface))
        b.method_impl(impl_type, CodedIndex(TableId.MethodDef, body), CodedIndex(TableId.MethodDef, decl))

        listing = _listing(b.build())
        runner = listing.types[1]
        # private explicit implementations are not part of the surface
        assert runner.members == ()
        assert runner.implemented_interfaces == ("Rules.IRun",)

    def test_public_method_implementing_through_method_impl(self, assembly_builder):
        b = assembly_builder("Rules")
        obj = b.type_ref("System", "Object")
        iface = b.type_def("Rules", "IRun", TD_PUBLIC | 0x20 | 0x80)
        decl = b.method("Run", MD_PUBLIC | MD_VIRTUAL | 0x400 | MD_NEW_SLOT | MD_HIDE_BY_SIG, Sig.method(Sig.VOID))
        impl_type = b.type_def("Rules", "Runner", TD_PUBLIC, obj)
        body = b.method(
            "Execute",
            MD_PUBLIC | MD_VIRTUAL | MD_FINAL | MD_NEW_SLOT | MD_HIDE_BY_SIG,
            Sig.method(Sig.VOID),
        )
        b.interface_impl(impl_type, CodedIndex(TableId.TypeDef, iface))
        b.method_impl(impl_type, CodedIndex(TableId.MethodDef, body), CodedIndex(TableId.MethodDef, decl))

        listing = _listing(b.build())
        (execute,) = listing.types[1].members
        assert execute.id == "public System.Void Execute()"
        assert execute.implemented_interface == "Rules.IRun"
        assert execute.explicit_interface is None

    def test_new_hides_system_object_member(self, assembly_builder):
        b = assembly_builder("Rules")
        obj = b.type_ref("System", "Object")
        b.type_def("Rules", "Plain", TD_PUBLIC, obj)
        b.method(
            "Equals",
            MD_PUBLIC | MD_HIDE_BY_SIG,
            Sig.method(Sig.BOOLEAN, Sig.OBJECT),
            params=[("other", 0)],
        )
        b.method("ToString", MD_PUBLIC | MD_HIDE_BY_SIG, Sig.method(Sig.STRING))
        b.method("ToString", MD_PUBLIC | MD_HIDE_BY_SIG, Sig.method(Sig.STRING, Sig.I4), params=[("width", 0)])
        b.method("Equals", MD_PUBLIC | MD_HIDE_BY_SIG, Sig.method(Sig.BOOLEAN, Sig.I4), params=[("other", 0)])

        listing = _listing(b.build())
        members = listing.types[0].members
        assert [m.new for m in members] == [True, True, False, False]
        assert members[0].id == "public new System.Boolean Equals(System.Object other)"

    def test_interface_does_not_hide_system_object_member(self, assembly_builder):
        b = assembly_builder("Rules")
        b.type_def("Rules", "IText", TD_PUBLIC | 0x20 | 0x80)
        b.method("ToString", MD_PUBLIC | MD_HIDE_BY_SIG | MD_STATIC, Sig.method(Sig.STRING, has_this=False))

        listing = _listing(b.build())
        (to_string,) = listing.types[0].members
        assert not to_string.new

    def test_protected_nested_type(self, assembly_builder):
        b = assembly_builder("Rules")
        obj = b.type_ref("System", "Object")
        outer = b.type_def("Rules", "Outer", TD_PUBLIC, obj)
        inner = b.type_def("", "Inner", TD_NESTED_FAMILY, obj)
        b.nested(inner, outer)
        b.method(".ctor", CTOR_FLAGS & ~MD_PUBLIC | MD_FAMILY, Sig.method(Sig.VOID))

        listing = _listing(b.build())
        inner_type = listing.types[1]
        assert inner_type.visibility == Visibility.PROTECTED
        assert inner_type.id == "protected class Rules.Outer+Inner"
        assert inner_type.members[0].id == "protected .ctor()"

    def test_null_default_of_value_type(self, assembly_builder):
        b = assembly_builder("Rules")
        obj = b.type_ref("System", "Object")
        guid = b.type_ref("System", "Guid")
        b.type_def("Rules", "Api", TD_PUBLIC, obj)
        m = b.method(
            "Find",
            MD_PUBLIC | MD_HIDE_BY_SIG,
            Sig.method(Sig.VOID, Sig.valuetype(guid), Sig.STRING),
            params=[("id", 0x1010), ("name", 0x1010)],
        )
        b.constant(CodedIndex(TableId.Param, b.params_of[m][0]), 0x12, b"\0\0\0\0")
        b.constant(CodedIndex(TableId.Param, b.params_of[m][1]), 0x12, b"\0\0\0\0")

        (find,) = _listing(b.build()).types[0].members
        assert find.id == "public System.Void Find(System.Guid id = default(System.Guid), System.String name = null)"

    def test_real_literal_field(self, assembly_builder):
        b = assembly_builder("Rules")
        obj = b.type_ref("System", "Object")
        b.type_def("Rules", "Limits", TD_PUBLIC, obj)
        f = b.field("Epsilon", FD_PUBLIC | 0x10 | 0x40 | 0x8000, Sig.field(Sig.R8))
        b.constant(CodedIndex(TableId.Field, f), 0x0D, struct.pack("<d", 1e-5))

        (eps,) = _listing(b.build()).types[0].members
        assert eps.id == "public const System.Double Epsilon = 1E-05"

    def test_unsupported_constant_kind(self, assembly_builder):
        b = assembly_builder("Rules")
        obj = b.type_ref("System", "Object")
        b.type_def("Rules", "Odd", TD_PUBLIC, obj)
        f = b.field("Weird", FD_PUBLIC | 0x10 | 0x40 | 0x8000, Sig.field(Sig.OBJECT))
        b.constant(CodedIndex(TableId.Field, f), 0x1C, b"")

        with pytest.raises(UnsupportedMetadataError):
            _listing(b.build())

    def test_module_without_assembly_row(self, assembly_builder):
        b = assembly_builder(None)
        assert _listing(b.build()).assembly_identity == "Module.dll"

    def test_public_key_token(self, assembly_builder):
        b = assembly_builder("Signed", public_key=bytes(range(160)))
        identity = _listing(b.build()).assembly_identity
        token = identity.rsplit("PublicKeyToken=", 1)[1]
        assert len(token) == 16
        assert token != "null"


class TestFilters:
    """Exclusion filters applied while reading."""

    def test_namespace_filter(self, sample_metadata):
        listing = _listing(sample_metadata, [exclude_namespace("Sample")])
        assert listing.types == ()

    def test_member_filter(self, sample_metadata):
        listing = _listing(sample_metadata, [exclude_matching("Log(*")])
        widget = _type(listing, "Sample.Widget")
        assert all(not m.name.startswith("Log(") for m in widget.members)
        assert len(widget.members) == 7

    def test_type_filter_by_name(self, sample_metadata):
        listing = _listing(sample_metadata, [exclude_matching("Sample.Outer*")])
        names = [t.name for t in listing.types]
        assert "Sample.Outer" not in names
        assert "Sample.Outer+Inner" not in names


class TestDeterminism:
    def test_two_readings_are_identical(self, sample_metadata):
        assert dump_listing(_listing(sample_metadata)) == dump_listing(_listing(sample_metadata))

    def test_reads_from_pe(self, sample_dll, sample_metadata):
        from_file = read_listing(str(sample_dll))
        assert dump_listing(from_file) == dump_listing(_listing(sample_metadata))

    def test_run_reader_writes_listing(self, sample_dll, tmp_path):
        out = tmp_path / "out"
        listing = run_reader(str(sample_dll), output_dir=out)
        written = (out / "api_listing.json").read_text()
        assert written == dump_listing(listing)

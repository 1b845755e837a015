"""
test_comparer — breaking-change detection between two listings.

Tests verify invariant properties:
  - compare(X, X) is empty, and neither listing is modified.
  - Each removed element yields exactly one REMOVED change.
  - Handlers correlate renamed and re-signatured elements; the first
    handler to match wins.
  - One change per (pair, category), only for categories in the mask.
  - Exception predicates drop matching changes; additions never break.
"""
import pytest

from api_compare.core.comparer import (
    compare,
    constraints_tightened,
    find_changes,
    pair_elements,
    split_generic,
)
from api_compare.core.handlers import default_handlers, rename_handler
from api_compare.io.schema import ElementScope
from api_compare.policy.change_types import ChangeKind, ChangeTypes
from api_compare.policy.exceptions import AcceptedChange
from api_compare.tests.listings import (
    ctor,
    enum_value,
    field,
    generic,
    listing,
    method,
    param,
    type_,
)
from api_listing.core.type_index import build_listing
from api_listing.io.schema import ParameterDirection, TypeKind, Visibility
from api_listing.tests.metadata_builder import AssemblyBuilder, build_sample, load_image


def _kinds(changes):
    return [c.kind for c in changes]


class TestIdentity:
    """A listing compared with itself."""

    def test_self_comparison_is_empty(self, baseline):
        assert compare(baseline, baseline) == ()

    def test_sample_assembly_self_comparison(self):
        metadata = build_sample(AssemblyBuilder("Sample")).build()
        sample = build_listing(load_image(metadata))
        assert compare(sample, sample) == ()

    def test_inputs_unchanged(self, baseline):
        new = listing(type_("C.Service", method("Run")))
        before = baseline.model_dump()
        compare(baseline, new)
        assert baseline.model_dump() == before

    def test_additions_are_not_breaking(self, baseline):
        grown = listing(
            type_("C.Service", *baseline.types[0].members, method("Added")),
            baseline.types[1],
            type_("C.Extra", method("Go")),
        )
        assert compare(baseline, grown) == ()


class TestTypeChanges:
    """Type-level categories."""

    def test_removed_type(self, baseline):
        new = listing(baseline.types[0])
        (change,) = compare(baseline, new)
        assert change.kind == ChangeKind.REMOVED
        assert change.old_item.id == "public class C.TypeToRename"
        assert change.old_item.scope == ElementScope.TYPE
        assert change.new_item is None

    def test_rename_handler(self, baseline):
        new = listing(baseline.types[0], type_("C.TypeRenamed"))
        handlers = [rename_handler({"public class C.TypeToRename": "public class C.TypeRenamed"}), *default_handlers()]
        (change,) = compare(baseline, new, handlers=handlers)
        assert change.kind == ChangeKind.RENAMED
        assert change.old_item.id == "public class C.TypeToRename"
        assert change.new_item.id == "public class C.TypeRenamed"

    def test_renamed_type_members_still_compared(self):
        old = listing(type_("C.Old", method("Keep"), method("Drop")))
        new = listing(type_("C.New", method("Keep")))
        changes = compare(old, new, handlers=[rename_handler({"public class C.Old": "public class C.New"})])
        assert _kinds(changes) == [ChangeKind.RENAMED, ChangeKind.REMOVED]
        assert changes[1].old_item.declaring_type == "public class C.Old"

    def test_kind_changed(self):
        old = listing(type_("C.Shape"))
        new = listing(type_("C.Shape", kind=TypeKind.STRUCT))
        assert _kinds(compare(old, new)) == [ChangeKind.KIND_CHANGED]

    def test_visibility_narrowed(self):
        old = listing(type_("C.Outer+Inner"))
        new = listing(type_("C.Outer+Inner", visibility=Visibility.PROTECTED))
        assert _kinds(compare(old, new)) == [ChangeKind.VISIBILITY_NARROWED]

    def test_visibility_widened_is_not_breaking(self):
        old = listing(type_("C.Outer+Inner", visibility=Visibility.PROTECTED))
        new = listing(type_("C.Outer+Inner"))
        assert compare(old, new) == ()

    def test_modifiers_added_once(self):
        old = listing(type_("C.Util"))
        new = listing(type_("C.Util", static=True, abstract=True, sealed=True))
        (change,) = compare(old, new)
        assert change.kind == ChangeKind.MODIFIERS_CHANGED
        assert "static" in change.detail

    def test_modifiers_removed_is_not_breaking(self):
        old = listing(type_("C.Util", sealed=True))
        new = listing(type_("C.Util"))
        assert compare(old, new) == ()

    def test_base_type_changed(self):
        old = listing(type_("C.D", base_type="C.B"))
        new = listing(type_("C.D", base_type="C.Other"))
        assert _kinds(compare(old, new)) == [ChangeKind.BASE_TYPE_CHANGED]

    def test_base_type_removed(self):
        old = listing(type_("C.D", base_type="C.B"))
        new = listing(type_("C.D"))
        assert _kinds(compare(old, new)) == [ChangeKind.BASE_TYPE_CHANGED]

    def test_base_type_introduced_is_not_breaking(self):
        old = listing(type_("C.D"))
        new = listing(type_("C.D", base_type="C.B"))
        assert compare(old, new) == ()

    def test_enum_underlying_type_changed(self):
        old = listing(type_("C.Color", enum_value("Red", "1"), kind=TypeKind.ENUM))
        new = listing(type_("C.Color", enum_value("Red", "1"), kind=TypeKind.ENUM, base_type="System.Byte"))
        (change,) = compare(old, new)
        assert change.kind == ChangeKind.BASE_TYPE_CHANGED
        assert change.detail == "System.Int32 -> System.Byte"

    def test_interface_removed(self):
        old = listing(type_("C.D", implemented_interfaces=("System.IDisposable", "C.IThing")))
        new = listing(type_("C.D", implemented_interfaces=("C.IThing",)))
        (change,) = compare(old, new)
        assert change.kind == ChangeKind.INTERFACE_REMOVED
        assert change.detail == "System.IDisposable"

    def test_interface_moved_to_base_type(self):
        old = listing(
            type_("C.B"),
            type_("C.D", base_type="C.B", implemented_interfaces=("C.IThing",)),
        )
        new = listing(
            type_("C.B", implemented_interfaces=("C.IThing",)),
            type_("C.D", base_type="C.B"),
        )
        assert compare(old, new) == ()

    def test_interface_moved_to_generic_base_type(self):
        old = listing(
            type_("C.Base<T>", generic_parameters=(generic("T"),)),
            type_(
                "C.D",
                base_type="C.Base<System.Int32>",
                implemented_interfaces=("C.IThing", "System.IEquatable<System.Int32>"),
            ),
        )
        new = listing(
            type_(
                "C.Base<T>",
                generic_parameters=(generic("T"),),
                implemented_interfaces=("C.IThing", "System.IEquatable<T>"),
            ),
            type_("C.D", base_type="C.Base<System.Int32>"),
        )
        assert compare(old, new) == ()

    def test_generic_base_interface_with_other_argument_is_removed(self):
        old = listing(
            type_("C.Base<T>", generic_parameters=(generic("T"),)),
            type_(
                "C.D",
                base_type="C.Base<System.Int32>",
                implemented_interfaces=("System.IEquatable<System.String>",),
            ),
        )
        new = listing(
            type_(
                "C.Base<T>",
                generic_parameters=(generic("T"),),
                implemented_interfaces=("System.IEquatable<T>",),
            ),
            type_("C.D", base_type="C.Base<System.Int32>"),
        )
        (change,) = compare(old, new)
        assert change.kind == ChangeKind.INTERFACE_REMOVED
        assert change.detail == "System.IEquatable<System.String>"

    def test_constraint_added(self):
        old = listing(type_("C.G<T>", generic_parameters=(generic("T"),)))
        new = listing(type_(
            "C.G<T>",
            generic_parameters=(generic("T", 0, "System.Collections.Generic.IEnumerable<T>", new_constraint=True),),
        ))
        (change,) = compare(old, new)
        assert change.kind == ChangeKind.GENERIC_CONSTRAINTS_CHANGED
        assert change.old_item.id == "public class C.G<T>"
        assert change.new_item.id == (
            "public class C.G<T> where T : System.Collections.Generic.IEnumerable<T>, new()"
        )

    def test_constraint_relaxed_is_not_breaking(self):
        old = listing(type_("C.G<T>", generic_parameters=(generic("T", 0, class_constraint=True),)))
        new = listing(type_("C.G<T>", generic_parameters=(generic("T"),)))
        assert compare(old, new) == ()

    def test_type_moved_namespace_is_removed(self):
        old = listing(type_("C.ClassToChangeNamespaces"))
        new = listing(type_("D.ClassToChangeNamespaces"))
        (change,) = compare(old, new)
        assert change.kind == ChangeKind.REMOVED


class TestMemberChanges:
    """Member-level categories."""

    def test_removed_member(self, baseline):
        service = baseline.types[0]
        new = listing(type_("C.Service", service.members[0], service.members[2]), baseline.types[1])
        (change,) = compare(baseline, new)
        assert change.kind == ChangeKind.REMOVED
        assert change.old_item.id == "public System.Void M()"
        assert change.old_item.scope == ElementScope.MEMBER
        assert change.old_item.declaring_type == "public class C.Service"

    def test_parameter_added(self):
        old = listing(type_("C.T", method("M")))
        new = listing(type_("C.T", method("M", param("System.Int32", "p"))))
        (change,) = compare(old, new)
        assert change.kind == ChangeKind.PARAMETERS_CHANGED
        assert change.old_item.id == "public System.Void M()"
        assert change.new_item.id == "public System.Void M(System.Int32 p)"

    def test_parameter_added_accepted(self):
        old = listing(type_("C.T", method("M")))
        new = listing(type_("C.T", method("M", param("System.Int32", "p"))))
        assert compare(old, new, exceptions=[AcceptedChange("public System.Void M()")]) == ()

    @pytest.mark.parametrize(
        "before, after",
        [
            (param("System.Int32", "p"), param("System.Int64", "p")),
            (param("System.Int32", "p", ParameterDirection.REF), param("System.Int32", "p", ParameterDirection.OUT)),
            (param("System.Int32", "p", default="0"), param("System.Int32", "p")),
            (param("System.Object[]", "p", is_params=True), param("System.Object[]", "p")),
        ],
    )
    def test_parameter_differences(self, before, after):
        old = listing(type_("C.T", method("M", before)))
        new = listing(type_("C.T", method("M", after)))
        assert _kinds(compare(old, new)) == [ChangeKind.PARAMETERS_CHANGED]

    def test_default_added_is_not_breaking(self):
        old = listing(type_("C.T", method("M", param("System.Int32", "p"))))
        new = listing(type_("C.T", method("M", param("System.Int32", "p", default="0"))))
        assert compare(old, new) == ()

    def test_return_type_changed(self):
        old = listing(type_("C.T", method("Get", returns="System.Int32")))
        new = listing(type_("C.T", method("Get", returns="System.Int64")))
        assert _kinds(compare(old, new)) == [ChangeKind.RETURN_TYPE_CHANGED]

    def test_override_changed(self):
        old = listing(type_("C.T", method("ToString", returns="System.String", virtual=True, override=True)))
        new = listing(type_("C.T", method("ToString", returns="System.String", virtual=True)))
        assert _kinds(compare(old, new)) == [ChangeKind.OVERRIDE_CHANGED]

    def test_sealed_added(self):
        old = listing(type_("C.T", method("Run", virtual=True, override=True)))
        new = listing(type_("C.T", method("Run", virtual=True, override=True, sealed=True)))
        (change,) = compare(old, new)
        assert change.kind == ChangeKind.MODIFIERS_CHANGED

    def test_static_to_instance(self):
        old = listing(type_("C.T", method("Run", static=True)))
        new = listing(type_("C.T", method("Run")))
        (change,) = compare(old, new)
        assert change.kind == ChangeKind.MODIFIERS_CHANGED
        assert change.detail == "static -> instance"

    def test_member_visibility_narrowed(self):
        old = listing(type_("C.T", ctor()))
        new = listing(type_("C.T", ctor(visibility=Visibility.PROTECTED)))
        assert _kinds(compare(old, new)) == [ChangeKind.VISIBILITY_NARROWED]

    def test_literal_changed(self, baseline):
        service = baseline.types[0]
        changed = field("Limit", "System.Int32", constant=True, static=True, literal="20")
        new = listing(type_("C.Service", *service.members[:2], changed), baseline.types[1])
        (change,) = compare(baseline, new)
        assert change.kind == ChangeKind.LITERAL_CHANGED
        assert change.detail == "10 -> 20"

    def test_enum_value_changed(self):
        old = listing(type_("C.Color", enum_value("Red", "1"), kind=TypeKind.ENUM))
        new = listing(type_("C.Color", enum_value("Red", "2"), kind=TypeKind.ENUM))
        (change,) = compare(old, new)
        assert change.kind == ChangeKind.LITERAL_CHANGED
        assert change.old_item.id == "Red = 1"

    def test_method_constraint_added(self):
        old = listing(type_("C.T", method("Map", returns="U", generic=(generic("U"),))))
        new = listing(type_("C.T", method("Map", returns="U", generic=(generic("U", 0, struct_constraint=True),))))
        assert _kinds(compare(old, new)) == [ChangeKind.GENERIC_CONSTRAINTS_CHANGED]

    def test_ambiguous_overloads_are_removed(self):
        old = listing(type_("C.T", method("M", param("System.Int32", "a"))))
        new = listing(type_(
            "C.T",
            method("M", param("System.Int64", "a")),
            method("M", param("System.String", "a")),
        ))
        (change,) = compare(old, new)
        assert change.kind == ChangeKind.REMOVED

    def test_member_rename(self):
        old = listing(type_("C.T", method("Start")))
        new = listing(type_("C.T", method("Begin")))
        handlers = [rename_handler({"public System.Void Start()": "public System.Void Begin()"}), *default_handlers()]
        (change,) = compare(old, new, handlers=handlers)
        assert change.kind == ChangeKind.RENAMED
        assert change.detail == "Start -> Begin"

    def test_removed_type_members_not_reported(self, baseline):
        new = listing(baseline.types[1])
        changes = compare(baseline, new)
        assert _kinds(changes) == [ChangeKind.REMOVED]
        assert changes[0].old_item.id == "public class C.Service"


class TestMaskAndExceptions:
    def test_mask_skips_categories(self):
        old = listing(type_("C.T", method("Get", returns="System.Int32")), type_("C.Gone"))
        new = listing(type_("C.T", method("Get", returns="System.Int64")))
        assert _kinds(compare(old, new, change_types=ChangeTypes.REMOVED)) == [ChangeKind.REMOVED]
        assert _kinds(compare(old, new, change_types=ChangeTypes.RETURN_TYPE_CHANGED)) == [
            ChangeKind.RETURN_TYPE_CHANGED
        ]
        assert compare(old, new, change_types=ChangeTypes.NONE) == ()

    def test_one_change_per_category(self):
        old = listing(type_("C.T", method("M", param("System.Int32", "a"), param("System.Int32", "b"))))
        new = listing(type_("C.T", method("M", param("System.Int64", "a"), param("System.Int64", "b"))))
        assert len(compare(old, new)) == 1

    def test_exception_by_old_and_new_id(self):
        old = listing(type_("C.T", method("M")))
        new = listing(type_("C.T", method("M", param("System.Int32", "p"))))
        assert compare(old, new, exceptions=[
            AcceptedChange("public System.Void M()", new_id="public System.Void M(System.Int32 p)"),
        ]) == ()
        assert len(compare(old, new, exceptions=[
            AcceptedChange("public System.Void M()", new_id="public System.Void M(System.String p)"),
        ])) == 1

    def test_exception_restricted_to_kind(self):
        old = listing(type_("C.T", method("M")))
        new = listing(type_("C.T", method("M", param("System.Int32", "p"))))
        accepted = AcceptedChange("public System.Void M()", kind=ChangeKind.REMOVED)
        assert len(compare(old, new, exceptions=[accepted])) == 1

    def test_plain_callable_exception(self):
        old = listing(type_("C.A"), type_("C.B"))
        new = listing()
        changes = compare(old, new, exceptions=[lambda c: c.old_item.id.endswith(".A")])
        assert [c.old_item.id for c in changes] == ["public class C.B"]

    def test_find_changes_ignores_exceptions(self):
        old = listing(type_("C.A"))
        assert len(find_changes(old, listing())) == 1


class TestPairing:
    def test_exact_ids_win_over_handlers(self):
        old = [method("M"), method("M", param("System.Int32", "p"))]
        new = [method("M", param("System.Int32", "p")), method("M", param("System.String", "p"))]
        pairs = pair_elements(old, new, default_handlers())
        assert pairs[1].new is new[0] and not pairs[1].correlated
        # only one candidate left for M(), so the name handler matches it
        assert pairs[0].new is new[1] and pairs[0].correlated

    def test_constraints_tightened(self):
        assert constraints_tightened((generic("T"),), (generic("T", 0, "C.I"),))
        assert not constraints_tightened((generic("T", 0, "C.I"),), (generic("T"),))
        assert not constraints_tightened((), (generic("T", 0, new_constraint=True),))


class TestGenericNames:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("C.Plain", ("C.Plain", [])),
            ("C.Base<T>", ("C.Base<>", ["T"])),
            ("C.Base<System.Int32>", ("C.Base<>", ["System.Int32"])),
            ("C.Pair<K, System.Collections.Generic.List<V>>", ("C.Pair<,>", ["K", "System.Collections.Generic.List<V>"])),
            ("C.Outer<A>+Inner<B>", ("C.Outer<>+Inner<>", ["A", "B"])),
        ],
    )
    def test_split_generic(self, name, expected):
        assert split_generic(name) == expected

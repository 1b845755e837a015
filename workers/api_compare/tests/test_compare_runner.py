"""
test_compare_runner — end-to-end comparison of assemblies and listings.

Tests verify invariant properties:
  - Either side may be an assembly or a persisted listing.
  - The report carries contract fields, the evaluated mask and a verdict.
  - exceptions.json suppresses accepted changes and counts them.
  - The CLI exit status reflects the verdict.
"""
import json

import pytest

from api_compare import PACKAGE_NAME, SCHEMA_VERSION
from api_compare.io.loader import load_exceptions, load_report, parse_exceptions
from api_compare.io.schema import ExceptionEntry, ExceptionList, Verdict
from api_compare.io.writer import EXCEPTIONS_FILENAME, REPORT_FILENAME, write_exceptions
from api_compare.policy.change_types import (
    ChangeKind,
    ChangeTypes,
    change_type_names,
    parse_change_types,
)
from api_compare.policy.exceptions import accept_changes, predicates_from
from api_compare.policy.profile import CompareProfile
from api_compare.runner import (
    EXIT_BREAKING_CHANGES,
    EXIT_MISSING_INPUT,
    compare_listings,
    main,
    run_compare,
)
from api_listing.io.writer import write_listing
from api_listing.runner import read_listing


class TestRunCompare:
    def test_assemblies(self, old_dll, new_dll, tmp_path):
        report = run_compare(str(old_dll), str(new_dll), output_dir=tmp_path / "out")
        assert report.verdict == Verdict.FAIL
        assert [c.kind for c in report.changes] == [ChangeKind.REMOVED, ChangeKind.LITERAL_CHANGED]
        assert report.changes[0].old_item.id == "public System.Void Ping()"
        assert report.old_assembly.startswith("Lib, Version=1.0.0.0")
        assert report.new_assembly.startswith("Lib, Version=2.0.0.0")

        data = json.loads((tmp_path / "out" / REPORT_FILENAME).read_text())
        assert data["package_name"] == PACKAGE_NAME
        assert data["schema_version"] == SCHEMA_VERSION
        assert data["verdict"] == "FAIL"
        assert data["timestamp"]

    def test_listing_baseline(self, old_dll, new_dll, tmp_path):
        baseline = write_listing(read_listing(str(old_dll)), tmp_path / "baseline")
        from_listing = run_compare(str(baseline), str(new_dll))
        from_assembly = run_compare(str(old_dll), str(new_dll))
        assert from_listing.changes == from_assembly.changes

    def test_same_assembly_passes(self, old_dll):
        report = run_compare(str(old_dll), str(old_dll))
        assert report.verdict == Verdict.PASS
        assert report.changes == []

    def test_exceptions_file(self, old_dll, new_dll, tmp_path):
        exceptions = ExceptionList(exceptions=[
            ExceptionEntry(old_id="public System.Void Ping()", reason="removed in 2.0"),
            ExceptionEntry(old_id="public const System.Int32 Limit = 10", kind=ChangeKind.LITERAL_CHANGED),
        ])
        path = write_exceptions(exceptions, tmp_path / EXCEPTIONS_FILENAME)
        report = run_compare(str(old_dll), str(new_dll), exceptions_path=path)
        assert report.verdict == Verdict.PASS
        assert report.suppressed == 2

    def test_profile_mask(self, old_dll, new_dll):
        profile = CompareProfile(profile_id="removals-only", change_types=ChangeTypes.REMOVED)
        report = run_compare(str(old_dll), str(new_dll), profile=profile)
        assert report.change_types == ["REMOVED"]
        assert [c.kind for c in report.changes] == [ChangeKind.REMOVED]

    def test_profile_renames(self, old_dll):
        old = read_listing(str(old_dll))
        renamed = old.model_copy(update={"types": (
            old.types[0].model_copy(update={"name": "Lib.Service"}),
        )})
        profile = CompareProfile(
            profile_id="renames",
            renames={"public class Lib.Api": "public class Lib.Service"},
        )
        report = compare_listings(old, renamed, profile)
        assert [c.kind for c in report.changes] == [ChangeKind.RENAMED]

    def test_missing_input(self, old_dll, tmp_path):
        with pytest.raises(FileNotFoundError):
            run_compare(str(old_dll), str(tmp_path / "absent.dll"))


class TestExceptionIO:
    def test_round_trip(self, tmp_path):
        exceptions = ExceptionList(exceptions=[ExceptionEntry(old_id="public class C.A", new_id="public class C.B")])
        loaded = load_exceptions(write_exceptions(exceptions, tmp_path / "x" / EXCEPTIONS_FILENAME))
        assert loaded == exceptions

    def test_version_check(self):
        with pytest.raises(ValueError, match="schema_version"):
            parse_exceptions({"schema_version": "0.0", "exceptions": []})

    def test_invalid_kind(self):
        with pytest.raises(ValueError):
            parse_exceptions({"schema_version": SCHEMA_VERSION, "exceptions": [{"old_id": "x", "kind": "NOPE"}]})

    def test_accept_changes(self, old_dll, new_dll):
        report = run_compare(str(old_dll), str(new_dll))
        accepted = accept_changes(report.changes)
        predicates = predicates_from(accepted)
        assert all(any(p(c) for p in predicates) for c in report.changes)

    def test_report_round_trip(self, old_dll, new_dll, tmp_path):
        report = run_compare(str(old_dll), str(new_dll), output_dir=tmp_path)
        assert load_report(tmp_path / REPORT_FILENAME) == report


class TestChangeTypes:
    def test_parse(self):
        assert parse_change_types(["removed", " RENAMED "]) == ChangeTypes.REMOVED | ChangeTypes.RENAMED
        assert parse_change_types(["ALL"]) == ChangeTypes.ALL

    def test_unknown(self):
        with pytest.raises(ValueError):
            parse_change_types(["sideways"])

    def test_names(self):
        assert change_type_names(ChangeTypes.ALL) == [k.value for k in ChangeKind]
        assert change_type_names(ChangeTypes.NONE) == []


class TestCli:
    def test_breaking_changes_exit_status(self, old_dll, new_dll, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            main([str(old_dll), str(new_dll), "-o", str(tmp_path)])
        assert exc.value.code == EXIT_BREAKING_CHANGES
        assert "REMOVED: public System.Void Ping()" in capsys.readouterr().out

    def test_pass(self, old_dll, tmp_path, capsys):
        main([str(old_dll), str(old_dll)])
        assert "Verdict: PASS" in capsys.readouterr().out

    def test_missing_file(self, old_dll, tmp_path):
        with pytest.raises(SystemExit) as exc:
            main([str(old_dll), str(tmp_path / "absent.dll")])
        assert exc.value.code == EXIT_MISSING_INPUT

    def test_accept_writes_exceptions(self, old_dll, new_dll, tmp_path):
        main([str(old_dll), str(new_dll), "--accept", "-o", str(tmp_path)])
        accepted = load_exceptions(tmp_path / EXCEPTIONS_FILENAME)
        assert len(accepted.exceptions) == 2
        report = run_compare(str(old_dll), str(new_dll), exceptions_path=tmp_path / EXCEPTIONS_FILENAME)
        assert report.verdict == Verdict.PASS

"""Tests for the records passed between pipeline stages."""

import pytest

from prgate_core.models import ApprovedFileSet, ExistingCommentIndex, Issue, ScanResult, make_fingerprint


def _issue(**kwargs):
    defaults = {
        "scanner_type": "phpcs",
        "file_path": "src/a.php",
        "line": 3,
        "severity": "error",
        "message": "Missing nonce check",
    }
    defaults.update(kwargs)
    return Issue(**defaults)


# ---------------------------------------------------------------------------
# Issue fingerprints
# ---------------------------------------------------------------------------


class TestIssueFingerprint:
    def test_same_identity_same_fingerprint(self):
        assert _issue().fingerprint == _issue().fingerprint

    def test_fingerprint_ignores_severity_and_rule(self):
        a = _issue(severity="error", source_rule="Rule.A")
        b = _issue(severity="warning", source_rule="Rule.B", column=7)
        assert a.fingerprint == b.fingerprint

    @pytest.mark.parametrize(
        "change",
        [{"file_path": "src/b.php"}, {"line": 4}, {"scanner_type": "lint"}, {"message": "Other"}],
    )
    def test_each_identity_field_changes_fingerprint(self, change):
        assert _issue(**change).fingerprint != _issue().fingerprint

    def test_parts_are_not_ambiguous(self):
        assert make_fingerprint("a", "bc") != make_fingerprint("ab", "c")

    def test_line_zero_is_file_level(self):
        assert _issue(line=0).is_file_level is True
        assert _issue(line=1).is_file_level is False


# ---------------------------------------------------------------------------
# ApprovedFileSet
# ---------------------------------------------------------------------------


class TestApprovedFileSet:
    def test_add_and_contains(self):
        approved = ApprovedFileSet("abc1234")
        assert approved.add("README.md") is True
        assert "README.md" in approved
        assert "other.md" not in approved

    def test_add_twice_is_noop(self):
        approved = ApprovedFileSet("abc1234")
        approved.add("README.md")
        assert approved.add("README.md") is False
        assert len(approved) == 1

    def test_iterates_in_insertion_order(self):
        approved = ApprovedFileSet("abc1234")
        for name in ("z.md", "a.txt", "m.svg"):
            approved.add(name)
        assert list(approved) == ["z.md", "a.txt", "m.svg"]

    @pytest.mark.parametrize("name", ["index.php", "lib/app.js", "UPPER.PHP"])
    def test_forbidden_types_refused(self, name):
        approved = ApprovedFileSet("abc1234")
        with pytest.raises(ValueError):
            approved.add(name)
        assert name not in approved

    def test_has_no_removal_api(self):
        approved = ApprovedFileSet("abc1234")
        for method in ("remove", "discard", "pop", "clear"):
            assert not hasattr(approved, method)


# ---------------------------------------------------------------------------
# ExistingCommentIndex / ScanResult
# ---------------------------------------------------------------------------


class TestExistingCommentIndex:
    def test_contains_checks_fingerprints(self):
        index = ExistingCommentIndex(pr_number=1, fingerprints={"abc"})
        assert "abc" in index
        assert "def" not in index


class TestScanResultCounts:
    def test_counts_split_by_severity(self):
        result = ScanResult(
            scanner_type="phpcs",
            pr_number=1,
            issues=[_issue(), _issue(line=4), _issue(line=5, severity="warning")],
        )
        assert result.counts == {"error": 2, "warning": 1}

    def test_empty_result_has_zero_counts(self):
        assert ScanResult(scanner_type="lint", pr_number=1).counts == {"error": 0, "warning": 0}

"""Tests for stats aggregation, the verdict and the exit code."""

from prgate_core.errors import EXIT_ISSUES_FOUND, EXIT_NORMAL, EXIT_SYSTEM_PROBLEM, ScannerFailure
from prgate_core.models import Issue
from prgate_core.status import VERDICT_FAILED, VERDICT_PASSED, build_stats, exit_code_for, verdict


def _issue(scanner_type="phpcs", severity="error", line=1):
    return Issue(scanner_type=scanner_type, file_path="a.php", line=line, severity=severity, message="m")


class TestBuildStats:
    def test_zeroed_entries_for_every_scanner_and_pr(self):
        stats = build_stats(["lint", "phpcs"], [1, 2], {1: [], 2: []})
        assert stats == {
            "lint": {1: {"error": 0, "warning": 0}, 2: {"error": 0, "warning": 0}},
            "phpcs": {1: {"error": 0, "warning": 0}, 2: {"error": 0, "warning": 0}},
        }

    def test_counts_by_scanner_pr_and_severity(self):
        kept = {8: [_issue(line=3), _issue(line=7), _issue(line=11)]}
        assert build_stats(["phpcs"], [8], kept) == {"phpcs": {8: {"error": 3, "warning": 0}}}

    def test_scanner_that_did_not_run_is_absent(self):
        stats = build_stats(["phpcs"], [1], {1: [_issue(scanner_type="lint")]})
        assert "lint" not in stats
        assert stats["phpcs"][1] == {"error": 0, "warning": 0}


class TestVerdict:
    def test_failed_on_any_error(self):
        stats = {"lint": {1: {"error": 0, "warning": 0}}, "phpcs": {2: {"error": 1, "warning": 0}}}
        assert verdict(stats) == VERDICT_FAILED

    def test_warnings_alone_pass(self):
        assert verdict({"phpcs": {1: {"error": 0, "warning": 5}}}) == VERDICT_PASSED

    def test_empty_table_passes(self):
        assert verdict({}) == VERDICT_PASSED


class TestExitCode:
    def test_passed(self):
        assert exit_code_for(VERDICT_PASSED) == EXIT_NORMAL

    def test_failed(self):
        assert exit_code_for(VERDICT_FAILED) == EXIT_ISSUES_FOUND

    def test_scanner_failure_is_system_problem(self):
        assert exit_code_for(VERDICT_PASSED, [ScannerFailure("lint", "php missing")]) == EXIT_SYSTEM_PROBLEM

    def test_errors_found_take_precedence(self):
        assert exit_code_for(VERDICT_FAILED, [ScannerFailure("lint", "php missing")]) == EXIT_ISSUES_FOUND

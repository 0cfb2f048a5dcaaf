"""Reduce per-scanner, per-PR counts to one verdict and exit code."""

from __future__ import annotations

from prgate_core.errors import EXIT_ISSUES_FOUND, EXIT_NORMAL, EXIT_SYSTEM_PROBLEM
from prgate_core.models import SEVERITIES, Issue

VERDICT_PASSED = "passed"
VERDICT_FAILED = "failed"

StatsTable = dict[str, dict[int, dict[str, int]]]


def build_stats(scanners_run, pr_numbers, kept_by_pr: dict[int, list[Issue]]) -> StatsTable:
    """Count the filtered issues per scanner type and PR.

    Every scanner that ran gets a zeroed entry for every PR; scanners that did
    not run are absent, which is not the same as zero.
    """
    stats: StatsTable = {
        scanner_type: {pr: {s: 0 for s in SEVERITIES} for pr in pr_numbers} for scanner_type in scanners_run
    }
    for pr_number, issues in kept_by_pr.items():
        for issue in issues:
            entry = stats.get(issue.scanner_type, {}).get(pr_number)
            if entry is not None:
                entry[issue.severity] += 1
    return stats


def verdict(stats: StatsTable) -> str:
    for per_pr in stats.values():
        for counts in per_pr.values():
            if counts.get("error", 0) > 0:
                return VERDICT_FAILED
    return VERDICT_PASSED


def exit_code_for(run_verdict: str, scanner_failures=()) -> int:
    if run_verdict == VERDICT_FAILED:
        return EXIT_ISSUES_FOUND
    if scanner_failures:
        return EXIT_SYSTEM_PROBLEM
    return EXIT_NORMAL

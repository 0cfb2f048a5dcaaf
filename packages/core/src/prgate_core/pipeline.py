"""Core per-commit pipeline orchestration.

Resolve PRs → scan → approve → filter → submit → verdict. Each stage runs to
completion before the next starts; in particular the approved-file set is
final before any issue is filtered against it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from github import GithubException
from rich.console import Console

from prgate_core.approval.base import ApprovalContext
from prgate_core.approval.engine import ApprovalEngine, apply_decision, build_modules
from prgate_core.config import ScanSettings, Settings
from prgate_core.errors import EXIT_SKIPPED, ScannerFailure
from prgate_core.filtering import filter_issues
from prgate_core.gh.comments import (
    build_comment_index,
    cleanup_scanner_failure_notices,
    dismiss_stale_reviews,
    fingerprint_marker,
    scanner_failure_fingerprint,
)
from prgate_core.gh.pull_request import (
    get_file_content,
    get_pr_diff,
    get_prs_implicated,
    is_latest_commit,
    rate_limit_usage,
    to_ref,
)
from prgate_core.limiter import plan_submission, submit_plan
from prgate_core.models import ApprovedFileSet, Issue, ScanResult
from prgate_core.reporting import AlertQueue, Counters
from prgate_core.scanners.base import BaseScanner
from prgate_core.scanners.lint import LintScanner
from prgate_core.scanners.phpcs import PhpcsScanner
from prgate_core.scanners.svg import SvgScanner
from prgate_core.status import StatsTable, build_stats, exit_code_for, verdict

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """What one run did; the CLI turns this into notifications and an exit code."""

    repo: str
    commit: str
    exit_code: int
    verdict: str | None = None
    pr_numbers: list[int] = field(default_factory=list)
    stats: StatsTable = field(default_factory=dict)
    approved_files: list[str] = field(default_factory=list)
    approved_prs: list[int] = field(default_factory=list)
    scanner_failures: list[str] = field(default_factory=list)
    posted_comments: int = 0
    skipped_reason: str | None = None


def build_scanners(settings: ScanSettings) -> list[BaseScanner]:
    scanners: list[BaseScanner] = []
    if settings.lint:
        scanners.append(LintScanner(command=settings.lint_command, skip_folders=settings.skip_folders))
    if settings.phpcs:
        scanners.append(
            PhpcsScanner(
                phpcs_path=settings.phpcs_path,
                standard=settings.phpcs_standard,
                severity=settings.phpcs_severity,
                sniffs_exclude=settings.phpcs_sniffs_exclude,
                skip_folders=settings.skip_folders,
            )
        )
    if settings.svg_checks:
        scanners.append(SvgScanner(skip_folders=settings.skip_folders))
    return scanners


def run_scanners(
    scanners: list[BaseScanner],
    prs: list,
    diffs: dict,
    repo_path: str,
    counters: Counters,
) -> tuple[list[ScanResult], list[ScannerFailure]]:
    """Run every scanner over every PR. One scanner failing never stops another."""
    results: list[ScanResult] = []
    failures: list[ScannerFailure] = []
    for scanner in scanners:
        scanner_results = []
        try:
            for pr in prs:
                scanner_results.append(scanner.scan(pr.number, diffs[pr.number], repo_path))
        except ScannerFailure as e:
            logger.error("%s", e)
            console.print(f"[red]{e}[/red]")
            failures.append(e)
            continue
        for result in scanner_results:
            counters.incr("files_scanned", len(result.scanned_files))
            counters.incr(f"{scanner.scanner_type}_issues", len(result.issues))
        results.extend(scanner_results)
    return results, failures


def _skip(settings: Settings, reason: str) -> RunSummary:
    console.print(f"[yellow]{reason}[/yellow]")
    return RunSummary(
        repo=settings.repo.full_name,
        commit=settings.repo.commit,
        exit_code=EXIT_SKIPPED,
        skipped_reason=reason,
    )


def run_pipeline(
    settings: Settings,
    repo,
    login: str,
    alerts: AlertQueue,
    counters: Counters,
    client=None,
) -> RunSummary:
    commit = settings.repo.commit
    dry_run = settings.dry_run

    # --- Resolve ---------------------------------------------------------
    prs = get_prs_implicated(repo, commit, settings.repo.branches_ignore)
    if not prs:
        return _skip(settings, "Skipping scanning entirely, as the commit is not a part of any pull request.")
    console.print(f"Commit [bold]{commit[:7]}[/bold] is part of PR(s): " + ", ".join(f"#{p.number}" for p in prs))

    scanners = build_scanners(settings.scan)
    stale = [p.number for p in prs if not is_latest_commit(p, commit)]
    if stale:
        logger.info("Commit is not the latest on PR(s) %s; skipping lint", stale)
        scanners = [s for s in scanners if s.scanner_type != "lint"]
        if not scanners:
            return _skip(settings, "The commit is not the latest one to the pull request and only linting is enabled.")

    commit_obj = repo.get_commit(commit)

    indexes = {pr.number: build_comment_index(pr, login) for pr in prs}
    diffs = {pr.number: get_pr_diff(repo, pr, commit) for pr in prs}

    # --- Scan ------------------------------------------------------------
    results, failures = run_scanners(scanners, prs, diffs, settings.repo.local_git_repo, counters)
    failed_types = {f.scanner_type for f in failures}
    scanners_run = [s.scanner_type for s in scanners if s.scanner_type not in failed_types]
    for pr in prs:
        cleanup_scanner_failure_notices(pr, login, scanners_run, dry_run)
    issues_by_pr: dict[int, list[Issue]] = {pr.number: [] for pr in prs}
    for result in results:
        issues_by_pr[result.pr_number].extend(result.issues)

    # --- Approve ---------------------------------------------------------
    approved = ApprovedFileSet(commit)
    approved_prs: list[int] = []
    if settings.approval.enabled:
        modules = build_modules(settings.approval, lambda path, ref: get_file_content(repo, path, ref))
        engine = ApprovalEngine(modules, approved)
        for pr in prs:
            context = _approval_context(commit, pr, results)
            decision = engine.evaluate_pr(diffs[pr.number], context)
            if decision.unapproved_files:
                logger.debug("PR #%d not auto-approvable because of %s", pr.number, decision.unapproved_files)
            if apply_decision(
                pr,
                decision,
                commit_obj,
                settings.approval.label,
                login,
                alerts,
                counters,
                dry_run=dry_run,
                informational_url=settings.limits.informational_url,
            ):
                approved_prs.append(pr.number)

    # --- Filter ----------------------------------------------------------
    filtered = filter_issues(issues_by_pr, approved, indexes, settings.filter.ignore)

    # --- Submit ----------------------------------------------------------
    posted = 0
    for pr in prs:
        plan = plan_submission(pr.number, filtered.kept_by_pr[pr.number], indexes[pr.number], settings.limits)
        report = submit_plan(
            pr,
            plan,
            diffs[pr.number],
            commit_obj,
            indexes[pr.number],
            alerts,
            counters,
            dry_run=dry_run,
            informational_url=settings.limits.informational_url,
        )
        posted += report.posted
        for failure in failures:
            _post_scanner_failure_notice(pr, failure, indexes[pr.number], alerts, dry_run)
        if settings.limits.dismiss_stale_reviews:
            dismiss_stale_reviews(pr, login, dry_run)

    # --- Verdict ---------------------------------------------------------
    stats = build_stats(scanners_run, [pr.number for pr in prs], filtered.kept_by_pr)
    run_verdict = verdict(stats)
    exit_code = exit_code_for(run_verdict, failures)

    if client is not None:
        try:
            logger.info("GitHub API rate limit: %s", rate_limit_usage(client))
        except GithubException as e:
            logger.debug("Could not read GitHub rate limit: %s", e)
    logger.info("Counters: %s", counters.snapshot())

    color = "green" if exit_code == 0 else "red"
    console.print(f"[{color}]Verdict: {run_verdict}. {posted} comment(s) posted.[/{color}]")

    return RunSummary(
        repo=settings.repo.full_name,
        commit=commit,
        exit_code=exit_code,
        verdict=run_verdict,
        pr_numbers=[pr.number for pr in prs],
        stats=stats,
        approved_files=list(approved),
        approved_prs=approved_prs,
        scanner_failures=[f.scanner_type for f in failures],
        posted_comments=posted,
    )


def _approval_context(commit: str, pr, results: list[ScanResult]) -> ApprovalContext:
    scanned: dict[str, set] = {}
    flagged: dict[str, set] = {}
    for result in results:
        if result.pr_number != pr.number:
            continue
        scanned.setdefault(result.scanner_type, set()).update(result.scanned_files)
        flagged.setdefault(result.scanner_type, set()).update(result.flagged_files)
    return ApprovalContext(
        commit=commit,
        pr=to_ref(pr),
        scanned_files={k: frozenset(v) for k, v in scanned.items()},
        flagged_files={k: frozenset(v) for k, v in flagged.items()},
    )


def _post_scanner_failure_notice(pr, failure: ScannerFailure, index, alerts: AlertQueue, dry_run: bool) -> None:
    fingerprint = scanner_failure_fingerprint(failure.scanner_type)
    if fingerprint in index:
        return
    alerts.add(f"PR #{pr.number}: {failure}")
    if dry_run:
        console.print(f"[yellow]Dry run: would post scanner failure notice on PR #{pr.number}[/yellow]")
        return
    body = (
        f":x: The `{failure.scanner_type}` scan could not run for this commit ({failure.reason}). "
        "Results from this scanner are missing; it will be retried on the next push."
        f"\n{fingerprint_marker(fingerprint)}"
    )
    try:
        pr.create_issue_comment(body)
    except GithubException as e:
        logger.error("Could not post scanner failure notice on PR #%d: %s", pr.number, e)

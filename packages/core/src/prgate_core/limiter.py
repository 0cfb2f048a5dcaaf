"""Comment caps and review submission.

Two caps apply per PR: ``per_review_max`` bounds one review submission, and
``total_max`` bounds everything prgate ever posted to the PR, earlier runs
included (0 disables it). Issues past the total cap are dropped in stable
order and a single overflow notice is posted instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from github import GithubException
from rich.console import Console

from prgate_core.config import LimitSettings
from prgate_core.errors import SubmissionFailure
from prgate_core.gh.comments import (
    OVERFLOW_FINGERPRINT,
    fingerprint_marker,
    format_inline_comment,
    format_issue,
    with_footer,
)
from prgate_core.models import SEVERITY_ERROR, DiffFile, ExistingCommentIndex, Issue, SubmissionBudget
from prgate_core.reporting import AlertQueue, Counters
from prgate_core.utils.diff import get_diff_positions

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class SubmissionPlan:
    pr_number: int
    inline_batches: list[list[Issue]] = field(default_factory=list)
    generic_issues: list[Issue] = field(default_factory=list)
    overflow: int = 0

    @property
    def queued(self) -> int:
        return sum(len(b) for b in self.inline_batches) + len(self.generic_issues)


@dataclass
class SubmissionReport:
    pr_number: int
    posted: int = 0
    failed_batches: int = 0
    overflow_notice_posted: bool = False


def compute_budget(index: ExistingCommentIndex, limits: LimitSettings) -> SubmissionBudget:
    if limits.total_max <= 0:
        return SubmissionBudget(per_review_max=limits.per_review_max, remaining=None)
    return SubmissionBudget(
        per_review_max=limits.per_review_max,
        remaining=max(0, limits.total_max - index.posted_count),
    )


def plan_submission(
    pr_number: int,
    issues: list[Issue],
    index: ExistingCommentIndex,
    limits: LimitSettings,
) -> SubmissionPlan:
    """Truncate to the remaining budget and split into review-sized batches.

    File-level issues count against the budget like any other issue; the ones
    that fit go into one generic PR comment.
    """
    budget = compute_budget(index, limits)

    overflow = 0
    if budget.remaining is not None and len(issues) > budget.remaining:
        overflow = len(issues) - budget.remaining
        issues = issues[: budget.remaining]
        logger.info("PR #%d: comment cap reached, %d issue(s) not submitted", pr_number, overflow)

    inline = [i for i in issues if not i.is_file_level]
    generic = [i for i in issues if i.is_file_level]

    size = budget.per_review_max
    batches = [inline[i : i + size] for i in range(0, len(inline), size)]
    return SubmissionPlan(pr_number=pr_number, inline_batches=batches, generic_issues=generic, overflow=overflow)


def _determine_event(batch: list[Issue]) -> str:
    if any(i.severity == SEVERITY_ERROR for i in batch):
        return "REQUEST_CHANGES"
    return "COMMENT"


def _review_body(commit: str, batch: list[Issue], unpositioned: list[Issue], part: int, parts: int) -> str:
    errors = sum(1 for i in batch if i.severity == SEVERITY_ERROR)
    warnings = len(batch) - errors
    lines = [f"prgate scanned commit `{commit[:7]}` and found {errors} error(s) and {warnings} warning(s)."]
    if parts > 1:
        lines.append(f"_Review {part} of {parts}._")
    if unpositioned:
        lines.append("\nIssues outside the diff:")
        for issue in unpositioned:
            lines.append(
                f"- `{issue.file_path}` line {issue.line}: {format_issue(issue)} {fingerprint_marker(issue.fingerprint)}"
            )
    return "\n".join(lines)


def submit_plan(
    pr,
    plan: SubmissionPlan,
    diff_files: list[DiffFile],
    commit_obj,
    index: ExistingCommentIndex,
    alerts: AlertQueue,
    counters: Counters,
    dry_run: bool = False,
    informational_url: str | None = None,
) -> SubmissionReport:
    """Post the plan: one review per batch, one generic comment, and the overflow notice.

    A failed batch is logged and the remaining batches are still attempted;
    whatever did land is recognised by fingerprint on the next run.
    """
    report = SubmissionReport(pr_number=plan.pr_number)
    positions = {f.filename: get_diff_positions(f.patch) for f in diff_files}
    commit = commit_obj.sha

    if dry_run:
        print_shadow_plan(plan)
        return report

    for idx, batch in enumerate(plan.inline_batches, 1):
        api_comments = []
        unpositioned = []
        for issue in batch:
            position = positions.get(issue.file_path, {}).get(issue.line)
            if position is None:
                unpositioned.append(issue)
                continue
            api_comments.append({"path": issue.file_path, "position": position, "body": format_inline_comment(issue)})

        body = with_footer(_review_body(commit, batch, unpositioned, idx, len(plan.inline_batches)), informational_url)
        try:
            pr.create_review(commit=commit_obj, body=body, event=_determine_event(batch), comments=api_comments)
        except GithubException as e:
            failure = SubmissionFailure(plan.pr_number, f"review {idx}/{len(plan.inline_batches)}: {e}")
            logger.error("%s", failure)
            report.failed_batches += 1
            counters.incr("review_submit_failures")
            alerts.add(str(failure))
            continue
        report.posted += len(batch)

    if plan.generic_issues:
        lines = [f"prgate found {len(plan.generic_issues)} issue(s) not tied to a line in commit `{commit[:7]}`:\n"]
        for issue in plan.generic_issues:
            lines.append(f"- `{issue.file_path}`: {format_issue(issue)} {fingerprint_marker(issue.fingerprint)}")
        if _post_generic(pr, with_footer("\n".join(lines), informational_url), alerts, counters):
            report.posted += len(plan.generic_issues)

    if plan.overflow > 0 and OVERFLOW_FINGERPRINT not in index:
        body = (
            ":warning: The maximum number of review comments for this pull request has been reached; "
            "further issues are not posted. Fix the reported issues and push again to get more feedback."
            f"\n{fingerprint_marker(OVERFLOW_FINGERPRINT)}"
        )
        report.overflow_notice_posted = _post_generic(pr, body, alerts, counters)
        if report.overflow_notice_posted:
            alerts.add(f"PR #{plan.pr_number} reached the review comment cap")

    counters.incr("comments_posted", report.posted)
    return report


def _post_generic(pr, body: str, alerts: AlertQueue, counters: Counters) -> bool:
    try:
        pr.create_issue_comment(body)
    except GithubException as e:
        failure = SubmissionFailure(pr.number, f"generic comment: {e}")
        logger.error("%s", failure)
        counters.incr("review_submit_failures")
        alerts.add(str(failure))
        return False
    return True


def print_shadow_plan(plan: SubmissionPlan) -> None:
    """Print what would be posted without touching GitHub."""
    if not plan.queued and not plan.overflow:
        console.print(f"[yellow]Dry run: nothing to post on PR #{plan.pr_number}.[/yellow]")
        return
    console.print(f"\n[bold]Dry run, PR #{plan.pr_number}: {plan.queued} issue(s) (not posted)[/bold]\n")
    for idx, batch in enumerate(plan.inline_batches, 1):
        console.print(f"[dim]Review {idx} ({_determine_event(batch)})[/dim]")
        for issue in batch:
            color = "red" if issue.severity == SEVERITY_ERROR else "yellow"
            console.print(
                f"  [bold cyan]{issue.file_path}[/bold cyan]  line [bold]{issue.line}[/bold]  "
                f"[{color}]{issue.severity.upper()}[/{color}]  {issue.message}"
            )
    for issue in plan.generic_issues:
        console.print(f"  [bold cyan]{issue.file_path}[/bold cyan]  {issue.message}")
    if plan.overflow:
        console.print(f"[yellow]  {plan.overflow} issue(s) over the comment cap; overflow notice would be posted.[/yellow]")

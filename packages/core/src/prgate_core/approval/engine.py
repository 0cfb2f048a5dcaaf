"""Auto-approval: decide which changed files are trusted, then approve PRs made only of them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from github import GithubException
from rich.console import Console

from prgate_core.approval.base import ApprovalContext, ApprovalModule
from prgate_core.approval.modules import FileTypeModule, HashesApiModule, SvgModule
from prgate_core.gh.comments import APPROVAL_FINGERPRINT, fingerprint_marker
from prgate_core.gh.pull_request import has_approval_for_commit
from prgate_core.models import ApprovedFileSet, DiffFile
from prgate_core.reporting import AlertQueue, Counters
from prgate_core.utils.code import is_forbidden_for_approval

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class ApprovalDecision:
    pr_number: int
    files: list[str] = field(default_factory=list)
    approved_by: dict[str, str] = field(default_factory=dict)  # file -> module name, this PR only
    eligible: bool = False

    @property
    def unapproved_files(self) -> list[str]:
        return [f for f in self.files if f not in self.approved_by]


def build_modules(settings, fetch_content=None) -> list[ApprovalModule]:
    """Instantiate approval modules in their fixed consultation order."""
    modules: list[ApprovalModule] = []
    if settings.filetypes:
        modules.append(FileTypeModule(settings.filetypes))
    if settings.hashes_api:
        token = settings.hashes_api_token.get_secret_value()
        modules.append(HashesApiModule(settings.hashes_api_url, token, fetch_content))
    if settings.svg_checks:
        modules.append(SvgModule())
    return modules


class ApprovalEngine:
    """Runs approval modules over PR diffs, growing one commit-scoped ApprovedFileSet.

    A file is approved by the first module that accepts it. Files already in the
    set are not re-evaluated, and nothing is ever removed from it.
    """

    def __init__(self, modules: list[ApprovalModule], approved: ApprovedFileSet):
        self.modules = list(modules)
        self.approved = approved

    def evaluate_pr(self, diff_files: list[DiffFile], context: ApprovalContext) -> ApprovalDecision:
        files = list(dict.fromkeys(f.filename for f in diff_files))
        decision = ApprovalDecision(pr_number=context.pr.number, files=files)

        for file_path in files:
            if file_path in self.approved:
                decision.approved_by[file_path] = "previously-approved"
                continue
            if is_forbidden_for_approval(file_path):
                logger.debug("PR #%d: %s can never be auto-approved", context.pr.number, file_path)
                continue
            for module in self.modules:
                if self._ask(module, file_path, context):
                    self.approved.add(file_path)
                    decision.approved_by[file_path] = module.name
                    break

        decision.eligible = bool(files) and all(f in self.approved for f in files)
        logger.info(
            "PR #%d: %d/%d file(s) approvable, eligible=%s",
            context.pr.number,
            len(decision.approved_by),
            len(files),
            decision.eligible,
        )
        return decision

    def _ask(self, module: ApprovalModule, file_path: str, context: ApprovalContext) -> bool:
        try:
            return bool(module.is_approvable(file_path, context))
        except Exception as e:
            # Any module error counts as "not approvable".
            logger.warning("Approval module %s failed on %s: %s", module.name, file_path, e)
            return False


def apply_decision(
    pr,
    decision: ApprovalDecision,
    commit_obj,
    label: str,
    login: str,
    alerts: AlertQueue,
    counters: Counters,
    dry_run: bool = False,
    informational_url: str | None = None,
) -> bool:
    """Approve and label an eligible PR. Return True if the PR is (now) approved.

    Non-eligible PRs are left alone: an earlier approval is never revoked. Both
    writes are skipped when already in place, so re-running is harmless.
    """
    if not decision.eligible:
        counters.incr("pr_non_approval")
        return False

    counters.incr("pr_approval")
    commit = commit_obj.sha

    if has_approval_for_commit(pr, login, commit):
        logger.info("PR #%d already approved by %s at %s", pr.number, login, commit[:7])
    elif dry_run:
        console.print(f"[yellow]Dry run: would approve PR #{pr.number}[/yellow]")
    else:
        body = (
            "Auto-approved this pull request as it only changes files that can be approved "
            "automatically:\n\n"
            + "\n".join(f"- `{f}` ({decision.approved_by[f]})" for f in decision.files)
        )
        if informational_url:
            body += f"\n\n[What is this?]({informational_url})"
        body += f"\n{fingerprint_marker(APPROVAL_FINGERPRINT)}"
        try:
            pr.create_review(commit=commit_obj, body=body, event="APPROVE")
        except GithubException as e:
            logger.error("Could not approve PR #%d: %s", pr.number, e)
            alerts.add(f"Failed to auto-approve PR #{pr.number}: {e}")
            return False
        console.print(f"[green]Auto-approved PR #{pr.number}[/green]")
        alerts.add(f"Auto-approved PR #{pr.number} ({len(decision.files)} file(s))")

    if label not in {lbl.name for lbl in pr.labels}:
        if dry_run:
            console.print(f"[yellow]Dry run: would add label {label!r} to PR #{pr.number}[/yellow]")
        else:
            try:
                pr.add_to_labels(label)
            except GithubException as e:
                logger.warning("Could not add label %r to PR #%d: %s", label, pr.number, e)
    return True

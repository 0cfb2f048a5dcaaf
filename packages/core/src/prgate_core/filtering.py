"""Issue filtering and de-duplication.

Three stages, always in this order:
  1. approved  : the file is trusted for auto-approval on this commit
  2. existing  : the same finding was already posted to the PR in an earlier run
  3. ignored   : the message contains a configured ignore substring

What survives is both what gets submitted and what the verdict is computed
from, so a re-run that finds nothing new reports a clean result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from prgate_core.models import ApprovedFileSet, ExistingCommentIndex, Issue

logger = logging.getLogger(__name__)


@dataclass
class FilterResult:
    kept_by_pr: dict[int, list[Issue]] = field(default_factory=dict)
    dropped_approved: int = 0
    dropped_existing: int = 0
    dropped_ignored: int = 0

    @property
    def total_kept(self) -> int:
        return sum(len(v) for v in self.kept_by_pr.values())


def is_ignored(message: str, ignore) -> bool:
    folded = message.casefold()
    return any(needle.casefold() in folded for needle in ignore if needle)


def filter_issues(
    issues_by_pr: dict[int, list[Issue]],
    approved: ApprovedFileSet,
    index_by_pr: dict[int, ExistingCommentIndex],
    ignore=(),
) -> FilterResult:
    result = FilterResult()

    for pr_number, issues in issues_by_pr.items():
        index = index_by_pr.get(pr_number)
        kept = []
        for issue in issues:
            if issue.file_path in approved:
                result.dropped_approved += 1
                continue
            if index is not None and issue.fingerprint in index:
                result.dropped_existing += 1
                continue
            if is_ignored(issue.message, ignore):
                result.dropped_ignored += 1
                continue
            kept.append(issue)
        result.kept_by_pr[pr_number] = _dedupe(kept)

    logger.info(
        "Filtered issues: %d kept, %d on approved files, %d already posted, %d ignored",
        result.total_kept,
        result.dropped_approved,
        result.dropped_existing,
        result.dropped_ignored,
    )
    return result


def _dedupe(issues: list[Issue]) -> list[Issue]:
    """Drop repeats of the same finding within this run, keeping the first."""
    seen: set[str] = set()
    unique = []
    for issue in issues:
        if issue.fingerprint in seen:
            continue
        seen.add(issue.fingerprint)
        unique.append(issue)
    return unique

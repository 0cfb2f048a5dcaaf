"""Comment bodies, fingerprint markers and the index of what was posted before.

Every comment prgate posts carries a hidden ``<!-- prgate:fp=... -->`` marker.
The next run reads those markers back, which is what makes re-running the
pipeline on the same commit safe.
"""

from __future__ import annotations

import logging
import re

from github import GithubException

from prgate_core.models import SEVERITY_ERROR, ExistingCommentIndex, Issue

logger = logging.getLogger(__name__)

OVERFLOW_FINGERPRINT = "review-comments-total-max"
APPROVAL_FINGERPRINT = "auto-approval"
SCANNER_FAILURE_PREFIX = "scanner-failure:"

_MARKER_RE = re.compile(r"<!-- prgate:fp=([\w:.\-]+) -->")
_SEVERITY_LABEL = {SEVERITY_ERROR: ":no_entry_sign: **Error**", "warning": ":warning: **Warning**"}


def fingerprint_marker(fingerprint: str) -> str:
    return f"<!-- prgate:fp={fingerprint} -->"


def fingerprints_in(body: str | None) -> list[str]:
    return _MARKER_RE.findall(body or "")


def scanner_failure_fingerprint(scanner_type: str) -> str:
    return f"{SCANNER_FAILURE_PREFIX}{scanner_type}"


def format_issue(issue: Issue) -> str:
    """Render one issue the way it appears in a comment, without the marker."""
    label = _SEVERITY_LABEL.get(issue.severity, _SEVERITY_LABEL[SEVERITY_ERROR])
    text = f"{label}: {issue.message}"
    if issue.source_rule:
        text += f" (*{issue.source_rule}*)"
    return text


def format_inline_comment(issue: Issue) -> str:
    return f"{format_issue(issue)}\n{fingerprint_marker(issue.fingerprint)}"


def with_footer(body: str, informational_url: str | None) -> str:
    if informational_url:
        body += f"\n\n---\n_This review was generated automatically. [Learn more]({informational_url})._"
    return body


def _is_issue_fingerprint(fingerprint: str) -> bool:
    if fingerprint in (OVERFLOW_FINGERPRINT, APPROVAL_FINGERPRINT):
        return False
    return not fingerprint.startswith(SCANNER_FAILURE_PREFIX)


def build_comment_index(pr, login: str | None = None) -> ExistingCommentIndex:
    """Collect fingerprints of prgate's earlier comments on a PR.

    ``posted_count`` counts every issue prgate posted, inline, listed in a
    review body or in a generic comment; it is what the cumulative per-PR cap
    is charged against. Notices (overflow, approval, scanner failure) are not
    issues and are not counted.
    """
    index = ExistingCommentIndex(pr_number=pr.number)
    for comment in pr.get_review_comments():
        if not _authored_by(comment, login):
            continue
        found = fingerprints_in(comment.body)
        if found:
            index.fingerprints.update(found)
            index.posted_count += 1
    for review in pr.get_reviews():
        if not _authored_by(review, login):
            continue
        # Issues without a diff position are listed in the review body instead.
        found = fingerprints_in(review.body)
        index.fingerprints.update(found)
        index.posted_count += sum(1 for fp in found if _is_issue_fingerprint(fp))
    for comment in pr.get_issue_comments():
        if not _authored_by(comment, login):
            continue
        found = fingerprints_in(comment.body)
        index.fingerprints.update(found)
        index.posted_count += sum(1 for fp in found if _is_issue_fingerprint(fp))
    logger.debug(
        "PR #%d: %d existing fingerprint(s), %d issue(s) posted",
        pr.number,
        len(index.fingerprints),
        index.posted_count,
    )
    return index


def cleanup_scanner_failure_notices(pr, login: str | None, resolved_types, dry_run: bool = False) -> int:
    """Delete earlier "scanner could not run" notices for scanner types that ran fine this time."""
    resolved = {scanner_failure_fingerprint(t) for t in resolved_types}
    deleted = 0
    for comment in pr.get_issue_comments():
        if not _authored_by(comment, login):
            continue
        if not resolved.intersection(fingerprints_in(comment.body)):
            continue
        if dry_run:
            logger.info("Dry run: would delete scanner failure notice %s on PR #%d", comment.id, pr.number)
        else:
            try:
                comment.delete()
            except GithubException as e:
                logger.warning("Could not delete comment %s on PR #%d: %s", comment.id, pr.number, e)
                continue
        deleted += 1
    return deleted


def dismiss_stale_reviews(pr, login: str | None, dry_run: bool = False) -> list[int]:
    """Dismiss prgate's change requests whose inline comments are all outdated."""
    comments_by_review: dict[int, list] = {}
    for comment in pr.get_review_comments():
        if _authored_by(comment, login) and comment.pull_request_review_id is not None:
            comments_by_review.setdefault(comment.pull_request_review_id, []).append(comment)

    dismissed = []
    for review in pr.get_reviews():
        if not _authored_by(review, login) or review.state != "CHANGES_REQUESTED":
            continue
        comments = comments_by_review.get(review.id, [])
        # An outdated comment has no position in the current diff.
        if not comments or any(c.position is not None for c in comments):
            continue
        if dry_run:
            logger.info("Dry run: would dismiss stale review %d on PR #%d", review.id, pr.number)
        else:
            try:
                review.dismiss("Dismissing review as all inline comments are obsolete by now")
            except GithubException as e:
                logger.warning("Could not dismiss review %d on PR #%d: %s", review.id, pr.number, e)
                continue
        dismissed.append(review.id)
    return dismissed


def _authored_by(item, login: str | None) -> bool:
    if login is None:
        return True
    user = getattr(item, "user", None)
    return user is not None and user.login == login

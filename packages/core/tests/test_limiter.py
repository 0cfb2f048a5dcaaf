"""Tests for comment caps, batching and review submission."""

import types
from unittest.mock import MagicMock

from github import GithubException

from prgate_core.config import LimitSettings
from prgate_core.gh.comments import OVERFLOW_FINGERPRINT, fingerprints_in
from prgate_core.limiter import compute_budget, plan_submission, print_shadow_plan, submit_plan
from prgate_core.models import DiffFile, ExistingCommentIndex, Issue
from prgate_core.reporting import AlertQueue, Counters

SHA = "e" * 40
# Lines 1-20 added; line n sits at diff position n.
PATCH = "@@ -0,0 +1,20 @@\n" + "\n".join(f"+line {n}" for n in range(1, 21))
DIFF = [DiffFile("a.php", "added", PATCH)]


def _issues(count, severity="error", start=1):
    return [
        Issue(scanner_type="phpcs", file_path="a.php", line=n, severity=severity, message=f"issue {n}")
        for n in range(start, start + count)
    ]


def _limits(per_review_max=10, total_max=200, **kwargs):
    return LimitSettings(per_review_max=per_review_max, total_max=total_max, **kwargs)


def _submit(pr, plan, index=None, **kwargs):
    alerts, counters = AlertQueue(), Counters()
    commit_obj = types.SimpleNamespace(sha=SHA)
    report = submit_plan(pr, plan, DIFF, commit_obj, index or ExistingCommentIndex(pr.number), alerts, counters, **kwargs)
    return report, alerts, counters


def _pr(number=1):
    pr = MagicMock()
    pr.number = number
    return pr


# ---------------------------------------------------------------------------
# Budget and planning
# ---------------------------------------------------------------------------


class TestComputeBudget:
    def test_remaining_is_total_minus_existing(self):
        budget = compute_budget(ExistingCommentIndex(1, posted_count=9), _limits(total_max=10))
        assert budget.remaining == 1

    def test_never_negative(self):
        budget = compute_budget(ExistingCommentIndex(1, posted_count=50), _limits(total_max=10))
        assert budget.remaining == 0

    def test_zero_total_max_is_unlimited(self):
        assert compute_budget(ExistingCommentIndex(1, posted_count=500), _limits(total_max=0)).remaining is None


class TestPlanSubmission:
    def test_truncates_to_remaining_budget(self):
        # 9 comments already posted, cap of 10, 5 new issues: only the first goes out.
        issues = _issues(5)
        plan = plan_submission(1, issues, ExistingCommentIndex(1, posted_count=9), _limits(total_max=10))
        assert plan.inline_batches == [issues[:1]]
        assert plan.overflow == 4

    def test_batches_respect_per_review_max(self):
        plan = plan_submission(1, _issues(12), ExistingCommentIndex(1), _limits(per_review_max=5))
        assert [len(b) for b in plan.inline_batches] == [5, 5, 2]
        assert plan.overflow == 0

    def test_stable_order_across_batches(self):
        issues = _issues(7)
        plan = plan_submission(1, issues, ExistingCommentIndex(1), _limits(per_review_max=5))
        assert [i for b in plan.inline_batches for i in b] == issues

    def test_file_level_issues_charged_against_total(self):
        file_level = Issue(scanner_type="svg", file_path="a.svg", line=0, severity="error", message="bad xml")
        plan = plan_submission(1, [file_level, *_issues(2)], ExistingCommentIndex(1, posted_count=10), _limits(total_max=10))
        assert plan.generic_issues == []
        assert plan.inline_batches == []
        assert plan.overflow == 3

    def test_file_level_issues_truncated_in_stable_order(self):
        file_level = Issue(scanner_type="svg", file_path="a.svg", line=0, severity="error", message="bad xml")
        issues = [file_level, *_issues(2)]
        plan = plan_submission(1, issues, ExistingCommentIndex(1, posted_count=8), _limits(total_max=10))
        assert plan.generic_issues == [file_level]
        assert plan.inline_batches == [issues[1:2]]
        assert plan.overflow == 1

    def test_unlimited_total(self):
        plan = plan_submission(1, _issues(15), ExistingCommentIndex(1, posted_count=400), _limits(total_max=0))
        assert plan.overflow == 0
        assert plan.queued == 15

    def test_nothing_to_do(self):
        plan = plan_submission(1, [], ExistingCommentIndex(1), _limits())
        assert plan.queued == 0
        assert plan.inline_batches == []


# ---------------------------------------------------------------------------
# submit_plan
# ---------------------------------------------------------------------------


class TestSubmitPlan:
    def test_one_review_per_batch(self):
        pr = _pr()
        plan = plan_submission(1, _issues(12), ExistingCommentIndex(1), _limits(per_review_max=5))
        report, _, counters = _submit(pr, plan)
        assert pr.create_review.call_count == 3
        assert report.posted == 12
        assert counters.get("comments_posted") == 12

    def test_inline_comments_positioned_and_marked(self):
        pr = _pr()
        issues = _issues(2)
        _submit(pr, plan_submission(1, issues, ExistingCommentIndex(1), _limits()))
        comments = pr.create_review.call_args.kwargs["comments"]
        assert [(c["path"], c["position"]) for c in comments] == [("a.php", 1), ("a.php", 2)]
        assert fingerprints_in(comments[0]["body"]) == [issues[0].fingerprint]

    def test_event_depends_on_severity(self):
        pr = _pr()
        _submit(pr, plan_submission(1, _issues(2, severity="warning"), ExistingCommentIndex(1), _limits()))
        assert pr.create_review.call_args.kwargs["event"] == "COMMENT"
        _submit(pr, plan_submission(1, _issues(2), ExistingCommentIndex(1), _limits()))
        assert pr.create_review.call_args.kwargs["event"] == "REQUEST_CHANGES"

    def test_issue_without_position_goes_into_body(self):
        pr = _pr()
        outside = Issue(scanner_type="phpcs", file_path="a.php", line=99, severity="error", message="far away")
        _submit(pr, plan_submission(1, [outside], ExistingCommentIndex(1), _limits()))
        kwargs = pr.create_review.call_args.kwargs
        assert kwargs["comments"] == []
        assert "far away" in kwargs["body"]
        assert outside.fingerprint in fingerprints_in(kwargs["body"])

    def test_failed_batch_does_not_stop_the_rest(self):
        pr = _pr()
        pr.create_review.side_effect = [GithubException(502, {"message": "Bad Gateway"}, None), None, None]
        plan = plan_submission(1, _issues(12), ExistingCommentIndex(1), _limits(per_review_max=5))
        report, alerts, counters = _submit(pr, plan)
        assert pr.create_review.call_count == 3
        assert report.failed_batches == 1
        assert report.posted == 7
        assert counters.get("review_submit_failures") == 1
        assert len(alerts) == 1

    def test_overflow_notice_posted_once(self):
        pr = _pr()
        plan = plan_submission(1, _issues(5), ExistingCommentIndex(1, posted_count=9), _limits(total_max=10))
        report, _, _ = _submit(pr, plan)
        assert report.posted == 1
        assert report.overflow_notice_posted is True
        pr.create_issue_comment.assert_called_once()
        assert fingerprints_in(pr.create_issue_comment.call_args[0][0]) == [OVERFLOW_FINGERPRINT]

    def test_overflow_notice_not_repeated(self):
        pr = _pr()
        index = ExistingCommentIndex(1, fingerprints={OVERFLOW_FINGERPRINT}, posted_count=10)
        plan = plan_submission(1, _issues(5), index, _limits(total_max=10))
        report, _, _ = _submit(pr, plan, index=index)
        assert report.overflow_notice_posted is False
        pr.create_issue_comment.assert_not_called()
        pr.create_review.assert_not_called()

    def test_file_level_issues_in_one_generic_comment(self):
        pr = _pr()
        file_level = [
            Issue(scanner_type="svg", file_path="a.svg", line=0, severity="error", message="bad xml"),
            Issue(scanner_type="svg", file_path="b.svg", line=0, severity="error", message="bad xml"),
        ]
        report, _, _ = _submit(pr, plan_submission(1, file_level, ExistingCommentIndex(1), _limits()))
        pr.create_issue_comment.assert_called_once()
        body = pr.create_issue_comment.call_args[0][0]
        assert set(fingerprints_in(body)) == {i.fingerprint for i in file_level}
        assert report.posted == 2

    def test_file_level_issues_held_back_when_budget_spent(self):
        pr = _pr()
        file_level = [
            Issue(scanner_type="svg", file_path=f"{name}.svg", line=0, severity="error", message="bad xml")
            for name in ("a", "b", "c")
        ]
        index = ExistingCommentIndex(1, posted_count=10)
        report, _, _ = _submit(pr, plan_submission(1, file_level, index, _limits(total_max=10)), index=index)
        assert report.posted == 0
        assert report.overflow_notice_posted is True
        pr.create_issue_comment.assert_called_once()
        assert fingerprints_in(pr.create_issue_comment.call_args[0][0]) == [OVERFLOW_FINGERPRINT]

    def test_dry_run_posts_nothing(self):
        pr = _pr()
        plan = plan_submission(1, _issues(5), ExistingCommentIndex(1, posted_count=9), _limits(total_max=10))
        report, _, _ = _submit(pr, plan, dry_run=True)
        assert report.posted == 0
        pr.create_review.assert_not_called()
        pr.create_issue_comment.assert_not_called()

    def test_informational_url_in_review_body(self):
        pr = _pr()
        _submit(pr, plan_submission(1, _issues(1), ExistingCommentIndex(1), _limits()), informational_url="https://docs.example")
        assert "https://docs.example" in pr.create_review.call_args.kwargs["body"]


def test_print_shadow_plan_handles_empty_plan():
    print_shadow_plan(plan_submission(1, [], ExistingCommentIndex(1), _limits()))

from __future__ import annotations

import logging

from github import Github, GithubException

from prgate_core.errors import UpstreamUnavailable
from prgate_core.models import DiffFile, PullRequestRef

logger = logging.getLogger(__name__)


def get_client(token: str) -> Github:
    return Github(token)


def get_repo(client: Github, repo_name: str):
    return client.get_repo(repo_name)


def get_authenticated_login(client: Github) -> str:
    """Return the login the token belongs to; raise UpstreamUnavailable if GitHub won't say."""
    try:
        login = client.get_user().login
    except GithubException as e:
        raise UpstreamUnavailable(f"Unable to get information about token-holder user from GitHub: {e}")
    if not login:
        raise UpstreamUnavailable("Unable to get information about token-holder user from GitHub.")
    return login


def to_ref(pr) -> PullRequestRef:
    return PullRequestRef(
        number=pr.number,
        base_ref=pr.base.ref,
        base_sha=pr.base.sha,
        head_ref=pr.head.ref,
        head_sha=pr.head.sha,
        labels=frozenset(label.name for label in pr.labels),
    )


def get_prs_implicated(repo, commit: str, branches_ignore=()) -> list:
    """Return open PRs containing commit, ordered by number, minus PRs targeting an ignored branch."""
    prs = []
    for pr in repo.get_commit(commit).get_pulls():
        if pr.state != "open":
            continue
        if pr.base.ref in branches_ignore:
            logger.info("Ignoring PR #%d: base branch %s is ignored", pr.number, pr.base.ref)
            continue
        prs.append(pr)
    return sorted(prs, key=lambda p: p.number)


def is_latest_commit(pr, commit: str) -> bool:
    return pr.head.sha.lower().startswith(commit.lower())


def get_pr_diff(repo, pr, commit: str) -> list[DiffFile]:
    """Files changed between the PR's base and the commit under review, sorted by name."""
    comparison = repo.compare(pr.base.sha, commit)
    return sorted(
        (DiffFile(filename=f.filename, status=f.status, patch=f.patch or "") for f in comparison.files),
        key=lambda f: f.filename,
    )


def get_file_content(repo, path: str, ref: str) -> bytes:
    return repo.get_contents(path, ref=ref).decoded_content


def has_approval_for_commit(pr, login: str, commit: str) -> bool:
    for review in pr.get_reviews():
        if review.user is None or review.user.login != login:
            continue
        if review.state == "APPROVED" and review.commit_id == commit:
            return True
    return False


def rate_limit_usage(client: Github) -> dict:
    remaining, limit = client.rate_limiting
    return {"remaining": remaining, "limit": limit}

"""Built-in approval modules, in the order the engine consults them."""

from __future__ import annotations

import hashlib
import logging
from typing import Callable

import requests
from github import GithubException

from prgate_core.approval.base import ApprovalContext
from prgate_core.errors import ApprovalLookupFailure
from prgate_core.utils.code import SVG_EXTENSIONS, file_extension, has_extension

logger = logging.getLogger(__name__)


class FileTypeModule:
    """Approve files whose extension is on the configured allow-list."""

    name = "file-types"

    def __init__(self, filetypes):
        self.filetypes = frozenset(ft.lower().lstrip(".") for ft in filetypes)

    def is_approvable(self, file_path: str, context: ApprovalContext) -> bool:
        return file_extension(file_path) in self.filetypes


class HashesApiModule:
    """Approve files whose exact content was already verified by a human.

    The file is fetched at the commit under review, SHA-1 hashed, and looked up
    in the hashes-to-hashes API. Any failure along the way means "not
    approvable"; an API outage never stops the pipeline.
    """

    name = "hashes-api"
    TIMEOUT = 20

    def __init__(
        self,
        api_url: str,
        token: str,
        fetch_content: Callable[[str, str], bytes],
        session: requests.Session | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.fetch_content = fetch_content
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {token}", "Accept": "application/json"})

    def is_approvable(self, file_path: str, context: ApprovalContext) -> bool:
        try:
            return self._lookup(file_path, context.commit)
        except ApprovalLookupFailure as e:
            logger.warning("Hashes API lookup failed for %s, not approving it: %s", file_path, e)
            return False

    def _lookup(self, file_path: str, commit: str) -> bool:
        try:
            content = self.fetch_content(file_path, commit)
        except GithubException as e:
            raise ApprovalLookupFailure(f"could not fetch {file_path} at {commit[:7]}: {e}")

        digest = hashlib.sha1(content).hexdigest()
        url = f"{self.api_url}/v1/hashes/id/{digest}"
        try:
            resp = self.session.get(url, timeout=self.TIMEOUT)
            resp.raise_for_status()
            records = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise ApprovalLookupFailure(f"GET {url}: {e}")

        if isinstance(records, dict):
            records = [records]
        if not isinstance(records, list):
            raise ApprovalLookupFailure(f"unexpected response from {url}")

        # Approved only if someone verified this hash and nobody rejected it.
        statuses = [str(r.get("status", "")).lower() for r in records if isinstance(r, dict)]
        approved = "true" in statuses and "false" not in statuses
        logger.debug("Hashes API: %s (%s) approved=%s", file_path, digest, approved)
        return approved


class SvgModule:
    """Approve SVG files the SVG scanner fully scanned and found nothing wrong with.

    The whole file counts, not only the lines this PR changed.
    """

    name = "svg"

    def is_approvable(self, file_path: str, context: ApprovalContext) -> bool:
        if not has_extension(file_path, SVG_EXTENSIONS):
            return False
        if not context.was_scanned(file_path, "svg"):
            return False
        return not context.was_flagged(file_path, "svg")

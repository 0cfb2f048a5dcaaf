"""Records passed between pipeline stages."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field

from prgate_core.utils.code import file_extension, is_forbidden_for_approval

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"
SEVERITIES = (SEVERITY_ERROR, SEVERITY_WARNING)


def make_fingerprint(*parts) -> str:
    """Stable digest of an identity tuple; the same parts always give the same value."""
    joined = "\x1f".join(str(p) for p in parts)
    return hashlib.sha1(joined.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class Issue:
    """One finding produced by a scanner.

    ``line == 0`` marks a file-level finding with no line to anchor an inline
    comment to; those are posted in a generic PR comment instead.
    """

    scanner_type: str
    file_path: str
    line: int
    severity: str  # "error" | "warning"
    message: str
    source_rule: str = ""
    fixable: bool = False
    column: int = 0

    @property
    def identity(self) -> tuple:
        return (self.file_path, self.line, self.scanner_type, self.message)

    @property
    def fingerprint(self) -> str:
        return make_fingerprint(*self.identity)

    @property
    def is_file_level(self) -> bool:
        return self.line == 0


@dataclass(frozen=True)
class PullRequestRef:
    number: int
    base_ref: str
    base_sha: str
    head_ref: str
    head_sha: str
    labels: frozenset = frozenset()


@dataclass(frozen=True)
class DiffFile:
    filename: str
    status: str  # "added" | "modified" | "removed" | "renamed" | ...
    patch: str = ""

    @property
    def is_removed(self) -> bool:
        return self.status == "removed"


class ApprovedFileSet:
    """Files trusted for auto-approval on one commit.

    Add-only: nothing ever leaves the set during a run, and files with a
    forbidden extension can never enter it.
    """

    def __init__(self, commit: str):
        self.commit = commit
        self._files: dict[str, None] = {}

    def add(self, file_path: str) -> bool:
        """Add a file; return True if it was not already present."""
        if is_forbidden_for_approval(file_path):
            raise ValueError(f"Files of type .{file_extension(file_path)} can never be auto-approved: {file_path}")
        if file_path in self._files:
            return False
        self._files[file_path] = None
        return True

    def __contains__(self, file_path: object) -> bool:
        return file_path in self._files

    def __iter__(self):
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __repr__(self) -> str:
        return f"ApprovedFileSet(commit={self.commit!r}, files={list(self._files)!r})"


@dataclass
class ExistingCommentIndex:
    """What prgate already posted to one PR in earlier runs."""

    pr_number: int
    fingerprints: set[str] = field(default_factory=set)
    posted_count: int = 0

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self.fingerprints


@dataclass(frozen=True)
class SubmissionBudget:
    per_review_max: int
    remaining: int | None  # None = unlimited


@dataclass
class ScanResult:
    """Output of one scanner over one PR diff."""

    scanner_type: str
    pr_number: int
    issues: list[Issue] = field(default_factory=list)
    scanned_files: list[str] = field(default_factory=list)
    # Files with any finding at all, including on lines the diff did not touch.
    flagged_files: list[str] = field(default_factory=list)
    failed_files: list[str] = field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        counts = {s: 0 for s in SEVERITIES}
        for issue in self.issues:
            counts[issue.severity] += 1
        return counts

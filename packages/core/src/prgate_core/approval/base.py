"""The approval module extension point.

An approval module is one independent trust predicate: given a changed file
and the PR it belongs to, it answers whether that file may be auto-approved.
Modules never see or modify the approved-file set; the engine owns it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from prgate_core.models import PullRequestRef


@dataclass(frozen=True)
class ApprovalContext:
    commit: str
    pr: PullRequestRef
    # scanner_type -> files that scanner fully scanned for this PR.
    scanned_files: dict[str, frozenset] = field(default_factory=dict)
    # scanner_type -> files with any finding, changed lines or not.
    flagged_files: dict[str, frozenset] = field(default_factory=dict)

    def was_scanned(self, file_path: str, scanner_type: str) -> bool:
        return file_path in self.scanned_files.get(scanner_type, frozenset())

    def was_flagged(self, file_path: str, scanner_type: str) -> bool:
        return file_path in self.flagged_files.get(scanner_type, frozenset())


class ApprovalModule(Protocol):
    name: str

    def is_approvable(self, file_path: str, context: ApprovalContext) -> bool:
        """Return True if file_path can be trusted. Lookup failures must return False."""
        ...

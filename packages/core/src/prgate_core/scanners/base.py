"""Base scanner implementing the Template Method pattern.

All scanners share the same scan algorithm:
    scan() → check_available()           ← whole scanner type fails here
           → for each changed file: _scan_file()   ← only this differs per scanner
           → keep issues on lines the diff added

A scanner that cannot run at all raises ScannerFailure, which stops that
scanner type only. A file that fails to scan is recorded in ``failed_files``
and the remaining files are still scanned.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from prgate_core.errors import ScannerFailure
from prgate_core.models import DiffFile, Issue, ScanResult
from prgate_core.utils.code import has_extension, in_skipped_folder
from prgate_core.utils.diff import get_added_lines

logger = logging.getLogger(__name__)


class FileScanError(Exception):
    """One file could not be scanned; the rest of the diff still is."""


class BaseScanner(ABC):
    scanner_type: str = ""
    extensions: frozenset = frozenset()
    TIMEOUT: int = 120

    def __init__(self, skip_folders=()):
        self.skip_folders = tuple(skip_folders)

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def scan(self, pr_number: int, diff_files: list[DiffFile], repo_path: str) -> ScanResult:
        self.check_available()
        result = ScanResult(scanner_type=self.scanner_type, pr_number=pr_number)

        for diff_file in diff_files:
            if not self.applies_to(diff_file):
                continue
            path = Path(repo_path) / diff_file.filename
            try:
                found = self._scan_file(path, diff_file.filename)
            except (FileScanError, OSError, subprocess.TimeoutExpired, ValueError, KeyError, TypeError) as e:
                logger.warning("%s: could not scan %s: %s", self.scanner_type, diff_file.filename, e)
                result.failed_files.append(diff_file.filename)
                continue

            added = get_added_lines(diff_file.patch)
            result.scanned_files.append(diff_file.filename)
            if found:
                result.flagged_files.append(diff_file.filename)
            result.issues.extend(i for i in found if i.is_file_level or i.line in added)

        logger.info(
            "%s: PR #%d, %d file(s) scanned, %d issue(s) on changed lines",
            self.scanner_type,
            pr_number,
            len(result.scanned_files),
            len(result.issues),
        )
        return result

    def applies_to(self, diff_file: DiffFile) -> bool:
        if diff_file.is_removed:
            return False
        if in_skipped_folder(diff_file.filename, self.skip_folders):
            return False
        return has_extension(diff_file.filename, self.extensions)

    def check_available(self) -> None:
        """Raise ScannerFailure when the underlying engine is missing."""
        executable = self.executable()
        if executable is None:
            return
        if shutil.which(executable) is None and not Path(executable).is_file():
            raise ScannerFailure(self.scanner_type, f"executable not found: {executable}")

    def executable(self) -> str | None:
        """External program this scanner runs, or None for in-process scanners."""
        return None

    # ------------------------------------------------------------------ #
    # Abstract: implement in each scanner                                 #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _scan_file(self, path: Path, file_name: str) -> list[Issue]:
        """Scan one file on disk and return every issue found in it.

        ``file_name`` is the repository-relative name to put on issues.
        Raise FileScanError when the output can not be understood.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        logger.debug("%s: running %s", self.scanner_type, " ".join(args))
        return subprocess.run(
            args, capture_output=True, text=True, encoding="utf-8", errors="replace", timeout=self.TIMEOUT
        )

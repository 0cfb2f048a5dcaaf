from __future__ import annotations

import json
from pathlib import Path

from prgate_core.models import SEVERITY_ERROR, SEVERITY_WARNING, Issue
from prgate_core.scanners.base import BaseScanner, FileScanError
from prgate_core.utils.code import PHP_EXTENSIONS

# phpcs exits 0 (clean), 1 (fixable issues) or 2 (issues); 3 means it failed to process the file.
_OK_EXIT_CODES = (0, 1, 2)


class PhpcsScanner(BaseScanner):
    scanner_type = "phpcs"
    extensions = PHP_EXTENSIONS

    def __init__(
        self,
        phpcs_path: str = "phpcs",
        standard: str = "WordPress-VIP-Go",
        severity: int = 1,
        sniffs_exclude=(),
        skip_folders=(),
    ):
        super().__init__(skip_folders)
        self.phpcs_path = phpcs_path
        self.standard = standard
        self.severity = severity
        self.sniffs_exclude = tuple(sniffs_exclude)

    def executable(self) -> str:
        return self.phpcs_path

    def build_command(self, path: Path) -> list[str]:
        args = [
            self.phpcs_path,
            f"--standard={self.standard}",
            f"--severity={self.severity}",
            "--report=json",
            "-q",
        ]
        if self.sniffs_exclude:
            args.append(f"--exclude={','.join(self.sniffs_exclude)}")
        args.append(str(path))
        return args

    def _scan_file(self, path: Path, file_name: str) -> list[Issue]:
        if not path.is_file():
            raise FileScanError(f"{path} does not exist in the local checkout")
        proc = self._run(self.build_command(path))
        if proc.returncode not in _OK_EXIT_CODES:
            raise FileScanError(f"phpcs exited with {proc.returncode}: {proc.stderr.strip()[:200]}")
        try:
            report = json.loads(proc.stdout)
        except json.JSONDecodeError:
            raise FileScanError(f"phpcs output is not JSON: {proc.stdout[:200]}")
        return self._parse(report, file_name)

    def _parse(self, report: dict, file_name: str) -> list[Issue]:
        issues = []
        for file_report in (report.get("files") or {}).values():
            for message in file_report.get("messages", []):
                issues.append(
                    Issue(
                        scanner_type=self.scanner_type,
                        file_path=file_name,
                        line=int(message.get("line", 0)),
                        severity=SEVERITY_ERROR if message.get("type") == "ERROR" else SEVERITY_WARNING,
                        message=message.get("message", ""),
                        source_rule=message.get("source", ""),
                        fixable=bool(message.get("fixable", False)),
                        column=int(message.get("column", 0)),
                    )
                )
        return issues

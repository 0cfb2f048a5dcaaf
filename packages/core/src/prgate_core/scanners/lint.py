from __future__ import annotations

import re
from pathlib import Path

from prgate_core.models import SEVERITY_ERROR, Issue
from prgate_core.scanners.base import BaseScanner, FileScanError
from prgate_core.utils.code import PHP_EXTENSIONS

# "PHP Parse error:  syntax error, unexpected '}' in /tmp/x.php on line 3"
_ERROR_RE = re.compile(r"^(?:PHP )?((?:Parse|Fatal) error):\s*(.+?) in .+? on line (\d+)\s*$")


class LintScanner(BaseScanner):
    """Syntax check with the PHP interpreter's lint mode (``php -l``)."""

    scanner_type = "lint"
    extensions = PHP_EXTENSIONS

    def __init__(self, command=("php", "-l"), skip_folders=()):
        super().__init__(skip_folders)
        self.command = tuple(command)

    def executable(self) -> str:
        return self.command[0]

    def _scan_file(self, path: Path, file_name: str) -> list[Issue]:
        if not path.is_file():
            raise FileScanError(f"{path} does not exist in the local checkout")
        proc = self._run([*self.command, str(path)])
        if proc.returncode == 0:
            return []

        issues = []
        seen = set()
        for line in (proc.stdout + "\n" + proc.stderr).splitlines():
            match = _ERROR_RE.match(line.strip())
            if not match:
                continue
            kind, text, line_no = match.group(1), match.group(2).strip(), int(match.group(3))
            if (line_no, text) in seen:  # php -l echoes errors on stdout and stderr
                continue
            seen.add((line_no, text))
            issues.append(
                Issue(
                    scanner_type=self.scanner_type,
                    file_path=file_name,
                    line=line_no,
                    severity=SEVERITY_ERROR,
                    message=f"PHP {kind.lower()}: {text}",
                    source_rule="php-lint",
                )
            )
        if not issues:
            raise FileScanError(f"lint exited with {proc.returncode} but reported no parsable error")
        return issues

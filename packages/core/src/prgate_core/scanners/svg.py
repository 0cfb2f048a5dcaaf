from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from pathlib import Path

from prgate_core.models import SEVERITY_ERROR, Issue
from prgate_core.scanners.base import BaseScanner
from prgate_core.utils.code import SVG_EXTENSIONS

# (pattern, message, rule) checked line by line; any hit makes the file unsafe to serve inline.
_LINE_CHECKS = (
    (re.compile(r"<\s*script\b", re.IGNORECASE), "SVG file contains a <script> element", "svg.script"),
    (re.compile(r"\son[a-z]+\s*=", re.IGNORECASE), "SVG file contains an event handler attribute", "svg.event-handler"),
    (re.compile(r"javascript\s*:", re.IGNORECASE), "SVG file contains a javascript: URI", "svg.javascript-uri"),
    (re.compile(r"<!ENTITY\b"), "SVG file declares XML entities", "svg.entity"),
    (re.compile(r"<\s*foreignObject\b", re.IGNORECASE), "SVG file embeds foreign content", "svg.foreign-object"),
)


class SvgScanner(BaseScanner):
    """In-process checks for content that makes an SVG unsafe to serve."""

    scanner_type = "svg"
    extensions = SVG_EXTENSIONS

    def _scan_file(self, path: Path, file_name: str) -> list[Issue]:
        text = path.read_text(encoding="utf-8", errors="replace")
        issues = []

        for line_no, line in enumerate(text.splitlines(), 1):
            for pattern, message, rule in _LINE_CHECKS:
                if pattern.search(line):
                    issues.append(self._issue(file_name, line_no, message, rule))

        # Files declaring entities are never parsed.
        if not any(i.source_rule == "svg.entity" for i in issues):
            try:
                ET.fromstring(text)
            except ET.ParseError as e:
                line_no = e.position[0] if e.position else 0
                issues.append(self._issue(file_name, line_no, f"SVG file is not well-formed XML: {e}", "svg.xml"))

        return issues

    def _issue(self, file_name: str, line: int, message: str, rule: str) -> Issue:
        return Issue(
            scanner_type=self.scanner_type,
            file_path=file_name,
            line=line,
            severity=SEVERITY_ERROR,
            message=message,
            source_rule=rule,
        )

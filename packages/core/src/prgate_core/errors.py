"""Error taxonomy and process exit codes.

Fatal errors (ConfigurationError, UpstreamUnavailable) stop the run before any
write reaches GitHub. The remaining errors are local to one stage: they are
logged, turned into counters/alerts, and the pipeline carries on.
"""

from __future__ import annotations

EXIT_NORMAL = 0
EXIT_SKIPPED = 249
EXIT_ISSUES_FOUND = 250
EXIT_SYSTEM_PROBLEM = 251
EXIT_GITHUB_PROBLEM = 252
EXIT_USAGE_ERROR = 253


class PrgateError(Exception):
    """Base class for every error raised by prgate."""

    exit_code: int = EXIT_SYSTEM_PROBLEM


class ConfigurationError(PrgateError):
    """An option is missing or invalid. Raised before any platform mutation."""

    exit_code = EXIT_USAGE_ERROR


class UpstreamUnavailable(PrgateError):
    """GitHub identity/auth check failed at startup."""

    exit_code = EXIT_GITHUB_PROBLEM


class ScannerFailure(PrgateError):
    """A scanner type could not run at all."""

    def __init__(self, scanner_type: str, reason: str):
        super().__init__(f"{scanner_type} scanner could not run: {reason}")
        self.scanner_type = scanner_type
        self.reason = reason


class ApprovalLookupFailure(PrgateError):
    """An approval module's remote lookup failed; the file is treated as not approvable."""


class SubmissionFailure(PrgateError):
    """One review batch or generic comment could not be posted."""

    def __init__(self, pr_number: int, reason: str):
        super().__init__(f"Submission to PR #{pr_number} failed: {reason}")
        self.pr_number = pr_number
        self.reason = reason

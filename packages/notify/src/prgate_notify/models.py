"""Notification payloads.

Decoupled from prgate_core so sinks can be used on their own and the core
pipeline has no knowledge of where alerts and counters end up.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class AlertBatch:
    """Chat alerts collected during one run.

    Built by the CLI from the run's AlertQueue after the pipeline returns.
    """

    repo: str
    commit: str
    messages: list[str] = field(default_factory=list)

    def formatted(self) -> list[str]:
        prefix = f"{self.repo}@{self.commit[:7]}"
        return [f"{prefix}: {m}" for m in self.messages]


@dataclass
class MetricsBatch:
    """Named counters collected during one run."""

    repo: str
    counters: dict[str, int] = field(default_factory=dict)

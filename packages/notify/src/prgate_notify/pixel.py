"""PixelMetricsSink: report run counters to a stats pixel endpoint.

Counters go out in two groups: ``<prefix>-actions`` for statistics shared by
every repository, and ``<prefix>-<repo name>`` for per-repository ones. Each
non-zero counter is one GET request of the form
``<url>?v=wpcom-no-pv&x_<group>/<stat>=<value>``.
"""

from __future__ import annotations

import logging

import requests

from prgate_notify.base import BaseSink
from prgate_notify.models import MetricsBatch

logger = logging.getLogger(__name__)

ACTION_STATS = ("pr_approval", "pr_non_approval")
REPO_STATS = (
    "pr_approval",
    "pr_non_approval",
    "files_scanned",
    "lint_issues",
    "phpcs_issues",
    "svg_issues",
    "comments_posted",
)


class PixelMetricsSink(BaseSink):
    TIMEOUT = 10

    def __init__(self, api_url: str, group_prefix: str, session: requests.Session | None = None):
        self.api_url = api_url
        self.group_prefix = group_prefix
        self._session = session or requests.Session()

    def groups(self, batch: MetricsBatch) -> dict[str, tuple[str, ...]]:
        repo_name = batch.repo.split("/")[-1]
        return {
            f"{self.group_prefix}-actions": ACTION_STATS,
            f"{self.group_prefix}-{repo_name}": REPO_STATS,
        }

    def send(self, batch: MetricsBatch) -> int:
        sent = 0
        for group, stats in self.groups(batch).items():
            for stat in stats:
                value = batch.counters.get(stat, 0)
                if value <= 0:
                    continue
                params = {"v": "wpcom-no-pv", f"x_{group}/{stat}": value}
                try:
                    resp = self._session.get(self.api_url, params=params, timeout=self.TIMEOUT)
                    resp.raise_for_status()
                except requests.RequestException as e:
                    logger.warning("Pixel API request for %s/%s failed: %s", group, stat, e)
                    continue
                sent += 1
        logger.debug("Sent %d statistic(s) to pixel API", sent)
        return sent

    def close(self) -> None:
        self._session.close()

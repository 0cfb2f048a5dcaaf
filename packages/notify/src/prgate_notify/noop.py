"""No-op sink, the default when no notification endpoint is configured."""

from __future__ import annotations

from prgate_notify.base import BaseSink


class NoOpSink(BaseSink):
    """Discards everything. Lets the CLI always call send() unconditionally."""

    def send(self, batch) -> int:
        return 0

"""Abstract notification sink.

The CLI depends on BaseSink, not on a concrete backend, so an IRC relay, a
stats pixel or nothing at all can be wired in without touching the pipeline.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from prgate_notify.models import AlertBatch, MetricsBatch


class BaseSink(ABC):
    """Fire-and-forget destination for run alerts or counters.

    Implementations must never raise out of send(): a notification that does
    not arrive is logged and otherwise ignored. It never changes the exit code.
    """

    @abstractmethod
    def send(self, batch: Union[AlertBatch, MetricsBatch]) -> int:
        """Deliver a batch; return how many items were delivered."""

    def close(self) -> None:
        """Release any resources held by the sink. Default is a no-op."""

"""Run-scoped accumulators for alerts and counters.

Both are created at run start and handed to every stage that reports
something. Nothing is sent while the run is in progress; the CLI drains them
into the notification sinks once, at shutdown.
"""

from __future__ import annotations

from collections import Counter


class AlertQueue:
    """Messages destined for the chat alert sink."""

    def __init__(self):
        self._messages: list[str] = []

    def add(self, message: str) -> None:
        self._messages.append(message)

    def drain(self) -> list[str]:
        """Return all queued messages and empty the queue."""
        messages, self._messages = self._messages, []
        return messages

    def __len__(self) -> int:
        return len(self._messages)


class Counters:
    """Named, non-negative run counters (approvals, files scanned, issues, ...)."""

    def __init__(self):
        self._counts: Counter[str] = Counter()

    def incr(self, name: str, amount: int = 1) -> None:
        if amount < 0:
            raise ValueError(f"Counter {name} can only grow, got {amount}")
        self._counts[name] += amount

    def get(self, name: str) -> int:
        return self._counts.get(name, 0)

    def snapshot(self) -> dict[str, int]:
        return dict(self._counts)

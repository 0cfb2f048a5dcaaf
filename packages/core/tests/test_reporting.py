"""Tests for the run-scoped alert queue and counters."""

import pytest

from prgate_core.reporting import AlertQueue, Counters


class TestAlertQueue:
    def test_drain_returns_and_empties(self):
        alerts = AlertQueue()
        alerts.add("one")
        alerts.add("two")
        assert alerts.drain() == ["one", "two"]
        assert len(alerts) == 0
        assert alerts.drain() == []


class TestCounters:
    def test_incr_and_get(self):
        counters = Counters()
        counters.incr("pr_approval")
        counters.incr("files_scanned", 3)
        assert counters.get("pr_approval") == 1
        assert counters.get("files_scanned") == 3
        assert counters.get("unknown") == 0

    def test_negative_increment_rejected(self):
        with pytest.raises(ValueError):
            Counters().incr("x", -1)

    def test_snapshot_is_a_copy(self):
        counters = Counters()
        counters.incr("x")
        snap = counters.snapshot()
        counters.incr("x")
        assert snap == {"x": 1}

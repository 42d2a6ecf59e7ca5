# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.
"""Unit tests for Metrics."""

import pytest

from store_orchestrator.core.metrics import PIPELINE_FAILURES, Metrics


class TestMetrics:
    def test_counter_increment(self):
        m = Metrics()
        m.inc("stores_created")
        m.inc("stores_created")
        assert m.get_counter("stores_created") == 2

    def test_counter_default_zero(self):
        m = Metrics()
        assert m.get_counter("nonexistent") == 0

    def test_gauge(self):
        m = Metrics()
        m.set_gauge("in_flight", 3)
        assert m.get_gauge("in_flight") == 3

    def test_observe(self):
        m = Metrics()
        m.observe("pipeline_latency_ms", 100)
        m.observe("pipeline_latency_ms", 200)
        snap = m.snapshot()
        assert snap["histogram_pipeline_latency_ms"]["avg"] == 150.0

    def test_reset(self):
        m = Metrics()
        m.inc("stores_failed")
        m.reset()
        assert m.get_counter("stores_failed") == 0
        assert m.snapshot()["counters"] == {}

    def test_labelled_counter_breakdown(self):
        m = Metrics()
        m.inc(PIPELINE_FAILURES, "ingress")
        m.inc(PIPELINE_FAILURES, "ingress")
        m.inc(PIPELINE_FAILURES, "credentials")
        assert m.get_counter(PIPELINE_FAILURES, "ingress") == 2
        assert m.breakdown(PIPELINE_FAILURES) == {"ingress": 2, "credentials": 1}
        assert m.breakdown("nothing") == {}

    def test_timer_observes_completed_blocks_only(self):
        m = Metrics()
        with m.timer("pipeline_latency_ms"):
            pass
        with pytest.raises(RuntimeError):
            with m.timer("pipeline_latency_ms"):
                raise RuntimeError("step failed")
        assert m.snapshot()["histogram_pipeline_latency_ms"]["count"] == 1

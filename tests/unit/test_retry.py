# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.
"""Unit tests for RetryPolicy."""

import pytest

from store_orchestrator.resilience.retry import RetryPolicy


class TestRetryPolicy:
    def test_fixed_delay(self):
        policy = RetryPolicy.fixed(max_attempts=30, delay=5.0)
        assert policy.next_delay(1) == 5.0
        assert policy.next_delay(29) == 5.0

    def test_exponential_delay_capped(self):
        policy = RetryPolicy(backoff_base=1.0, backoff_multiplier=10.0, max_backoff=5.0)
        assert policy.next_delay(2) == 5.0

    def test_should_retry(self):
        policy = RetryPolicy(max_attempts=3)
        assert policy.should_retry(2) is True
        assert policy.should_retry(3) is False

    def test_budget(self):
        assert RetryPolicy.fixed(max_attempts=30, delay=5.0).budget_seconds == 145.0
        assert RetryPolicy.fixed(max_attempts=1, delay=5.0).budget_seconds == 0

    @pytest.mark.asyncio
    async def test_wait_zero_delay(self):
        await RetryPolicy.fixed(max_attempts=2, delay=0.0).wait(1)

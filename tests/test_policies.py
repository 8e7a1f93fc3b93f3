"""Tests for backoff policy."""

import random
from unittest.mock import AsyncMock, patch

import pytest

from aluvia_playwright.core.policies import BackoffPolicy


@pytest.mark.unit
class TestBackoffPolicy:
    def test_delay_doubles_per_attempt(self):
        policy = BackoffPolicy(base_delay_ms=300, jitter_ms=0)

        assert policy.delay(1) == pytest.approx(0.3)
        assert policy.delay(2) == pytest.approx(0.6)
        assert policy.delay(3) == pytest.approx(1.2)

    def test_jitter_is_bounded(self):
        policy = BackoffPolicy(base_delay_ms=300, jitter_ms=100, rng=random.Random(7))

        for _ in range(50):
            assert 0.3 <= policy.delay(1) <= 0.4

    def test_jitter_never_reorders_attempts(self):
        policy = BackoffPolicy(base_delay_ms=300, jitter_ms=100, rng=random.Random(1))

        assert policy.delay(1) < policy.delay(2) < policy.delay(3)

    @pytest.mark.parametrize("attempt", [0, -1])
    def test_rejects_attempt_below_one(self, attempt):
        with pytest.raises(ValueError, match="attempt must be >= 1"):
            BackoffPolicy().delay(attempt)

    def test_zero_base_means_no_wait(self):
        assert BackoffPolicy(base_delay_ms=0, jitter_ms=0).delay(4) == 0

    async def test_wait_sleeps_for_delay(self):
        policy = BackoffPolicy(base_delay_ms=200, jitter_ms=0)

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            delay = await policy.wait(2)

        assert delay == pytest.approx(0.4)
        mock_sleep.assert_awaited_once_with(pytest.approx(0.4))

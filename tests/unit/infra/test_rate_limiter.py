import time

from chronoprice.infra.http.rate_limited_client import RateLimiter


class TestRateLimiter:
    def test_per_minute(self):
        limiter = RateLimiter.per_minute(120)
        assert limiter._min_interval == 0.5

    async def test_first_slot_is_immediate(self):
        limiter = RateLimiter(rate_per_second=1.0)
        start = time.monotonic()
        await limiter.wait_for_slot()
        assert time.monotonic() - start < 0.5

    async def test_consecutive_slots_are_spaced(self):
        limiter = RateLimiter(rate_per_second=20.0)
        start = time.monotonic()
        for _ in range(3):
            await limiter.wait_for_slot()
        # Two enforced gaps of 50ms each
        assert time.monotonic() - start >= 0.09

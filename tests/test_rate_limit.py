from guardnomad.rate_limit import RateLimiter


def test_tenth_call_passes_eleventh_blocked_then_recovers(clock):
    limiter = RateLimiter(limit=10, window_sec=60, clock=clock)
    results = [limiter.try_acquire("news") for _ in range(10)]
    assert all(results)
    assert limiter.try_acquire("news") is False
    # a refused call does not consume budget
    assert limiter.remaining("news") == 0

    clock.advance(60)
    assert limiter.try_acquire("news") is True


def test_windows_are_per_source(clock):
    limiter = RateLimiter(limit=1, window_sec=60, clock=clock)
    assert limiter.try_acquire("ai")
    assert not limiter.try_acquire("ai")
    assert limiter.try_acquire("scams")


def test_per_source_limits(clock):
    limiter = RateLimiter(limit=10, window_sec=60, limits={"ai": 2}, clock=clock)
    assert [limiter.try_acquire("ai") for _ in range(3)] == [True, True, False]
    assert limiter.remaining("news") == 10


def test_fixed_window_allows_burst_across_boundary(clock):
    limiter = RateLimiter(limit=3, window_sec=60, clock=clock)
    clock.advance(59)
    assert all(limiter.try_acquire("k") for _ in range(3))
    clock.advance(60)
    assert all(limiter.try_acquire("k") for _ in range(3))


def test_reset_and_evict_stale(clock):
    limiter = RateLimiter(limit=1, window_sec=60, clock=clock)
    limiter.try_acquire("a")
    limiter.try_acquire("b")
    limiter.reset("a")
    assert limiter.try_acquire("a")

    clock.advance(61)
    assert limiter.evict_stale() == 2
    assert len(limiter) == 0

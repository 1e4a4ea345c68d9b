from paystream.exceptions import (
    NonceConflictError,
    RateLimitedError,
    SettlementNetworkError,
)
from paystream.utils.retry import RetryPolicy


def test_fixed_delay_per_failure_class():
    policy = RetryPolicy(max_attempts=3, rate_limit_backoff=2.0, nonce_conflict_backoff=1.0)

    assert policy.delay_for(RateLimitedError("slow down")) == 2.0
    assert policy.delay_for(NonceConflictError("nonce too low")) == 1.0
    assert policy.delay_for(SettlementNetworkError("boom")) == 0.0


def test_delays_do_not_grow_with_attempts():
    policy = RetryPolicy()
    delays = [policy.delay_for(RateLimitedError("429")) for _ in range(3)]
    assert delays == [2.0, 2.0, 2.0]

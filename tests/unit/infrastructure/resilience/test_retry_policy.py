import httpx
import pytest
from unittest.mock import MagicMock

from creeble.domain.events.api_events import RetryScheduled
from creeble.domain.models.errors import ApiError
from creeble.infrastructure.resilience.retry_policy import RetryPolicy


class CountingOperation:
    """Raises the queued errors in order, then returns ``result``."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class AlwaysFailing:
    def __init__(self, error):
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        raise self.error


@pytest.mark.asyncio
async def test_always_retryable_failure_invokes_max_retries_plus_one(retry_policy, recording_sleep):
    error = ApiError.server("Service unavailable", 503)
    operation = AlwaysFailing(error)

    with pytest.raises(ApiError) as exc_info:
        await retry_policy.execute(operation, "GET /v1/posts")

    assert operation.calls == 4
    assert exc_info.value is error
    assert recording_sleep.delays == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_unauthorized_is_never_retried(retry_policy, recording_sleep):
    operation = AlwaysFailing(ApiError.unauthorized("Invalid API key"))

    with pytest.raises(ApiError):
        await retry_policy.execute(operation)

    assert operation.calls == 1
    assert recording_sleep.delays == []


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    ApiError.validation("Invalid", {"email": ["required"]}),
    ApiError.not_found(),
    ApiError.generic("I'm a teapot", status_code=418),
    ApiError.oversized(1000, 500),
    ValueError("programming error"),
])
async def test_permanent_failures_surface_immediately(retry_policy, error):
    operation = AlwaysFailing(error)

    with pytest.raises(type(error)):
        await retry_policy.execute(operation)

    assert operation.calls == 1


@pytest.mark.asyncio
async def test_recovers_after_transient_failures(retry_policy, recording_sleep):
    operation = CountingOperation([
        ApiError.rate_limited(retry_after=1),
        ApiError.timeout(),
    ], result={"data": []})

    result = await retry_policy.execute(operation)

    assert result == {"data": []}
    assert operation.calls == 3
    assert recording_sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_zero_retries_means_single_attempt(recording_sleep):
    policy = RetryPolicy(max_retries=0, sleep=recording_sleep)
    operation = AlwaysFailing(ApiError.network("connection reset"))

    with pytest.raises(ApiError):
        await policy.execute(operation)

    assert operation.calls == 1


def test_delay_includes_bounded_jitter():
    policy = RetryPolicy(random_source=lambda: 0.5)
    # 1000 * 2^0 * (1 + 0.5 * 0.1)
    assert policy.calculate_delay(0) == 1050
    assert policy.calculate_delay(1) == 2100


def test_delay_is_capped_at_max_delay():
    policy = RetryPolicy(base_delay_ms=1000, max_delay_ms=3000, random_source=lambda: 0.99)
    assert policy.calculate_delay(2) == 3000
    assert policy.calculate_delay(10) == 3000


@pytest.mark.parametrize("jitter", [0.0, 0.25, 0.5, 0.999])
def test_delays_grow_monotonically_within_cap(jitter):
    policy = RetryPolicy(base_delay_ms=100, max_delay_ms=5000, random_source=lambda: jitter)
    for attempt in range(8):
        assert policy.calculate_delay(attempt + 1) >= policy.base_delay_for(attempt)
        assert policy.calculate_delay(attempt) <= 5000


@pytest.mark.parametrize("error, expected", [
    (ApiError.rate_limited(), True),
    (ApiError.server("boom", 502), True),
    (ApiError.timeout(), True),
    (ApiError.network("refused"), True),
    (ApiError.generic("unavailable", status_code=503), True),
    (ApiError.unauthorized(), False),
    (ApiError.generic("Invalid JSON response from API", status_code=200), False),
    (httpx.ConnectError("refused"), True),
    (httpx.ReadTimeout("slow"), True),
    (KeyError("data"), False),
])
def test_is_retryable_classification(error, expected):
    assert RetryPolicy().is_retryable(error) is expected


def test_custom_retryable_status_codes():
    policy = RetryPolicy(retryable_status_codes={503})
    assert policy.is_retryable(ApiError.server("down", 503)) is True
    assert policy.is_retryable(ApiError.server("boom", 500)) is False


def test_invalid_bounds_are_rejected():
    with pytest.raises(ValueError):
        RetryPolicy(max_retries=-1)
    with pytest.raises(ValueError):
        RetryPolicy(base_delay_ms=-5)


@pytest.mark.asyncio
async def test_retry_hook_receives_events(recording_sleep):
    hook = MagicMock()
    policy = RetryPolicy(max_retries=2, on_retry=hook, sleep=recording_sleep, random_source=lambda: 0.0)
    operation = CountingOperation([ApiError.server("boom", 500)])

    await policy.execute(operation, "GET /v1/posts page 2")

    hook.assert_called_once()
    event = hook.call_args.args[0]
    assert isinstance(event, RetryScheduled)
    assert event.context == "GET /v1/posts page 2"
    assert event.attempt_number == 1
    assert event.max_attempts == 3
    assert event.delay_ms == 1000
    assert event.error_kind == "server"
    assert event.status_code == 500


@pytest.mark.asyncio
async def test_failing_hook_does_not_abort_retries(recording_sleep):
    hook = MagicMock(side_effect=RuntimeError("hook exploded"))
    policy = RetryPolicy(on_retry=hook, sleep=recording_sleep, random_source=lambda: 0.0)
    operation = CountingOperation([ApiError.timeout(), ApiError.timeout()])

    assert await policy.execute(operation) == "ok"
    assert operation.calls == 3
    assert hook.call_count == 2

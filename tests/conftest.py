import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from typer.testing import CliRunner

from creeble.client import Creeble
from creeble.domain.interfaces.transport import Transport
from creeble.infrastructure.resilience.retry_policy import RetryPolicy


@dataclass
class RecordedCall:
    method: str
    path: str
    params: Dict[str, Any] = field(default_factory=dict)
    body: Any = None

    @property
    def page(self) -> int:
        return int(self.params.get("page", 1))


class FakeTransport(Transport):
    """Transport that answers from a handler and records every call.

    The handler receives the RecordedCall and returns a payload, or an
    exception instance which is raised instead.
    """

    def __init__(self, handler: Callable[[RecordedCall], Any],
                 delay: Optional[Callable[[RecordedCall], float]] = None):
        self.handler = handler
        self.delay = delay
        self.calls: List[RecordedCall] = []
        self.closed = False

    async def request(self, method, path, params=None, body=None, headers=None, timeout_ms=None):
        call = RecordedCall(method=method, path=path, params=dict(params or {}), body=body)
        self.calls.append(call)
        # Yield to the loop so concurrent requests interleave
        await asyncio.sleep(self.delay(call) if self.delay else 0)
        result = self.handler(call)
        if isinstance(result, BaseException):
            raise result
        return result

    async def aclose(self) -> None:
        self.closed = True

    def pages_requested(self) -> List[int]:
        return [call.page for call in self.calls]


class PagedResource:
    """Synthetic collection of ``total`` items served page by page.

    ``failures`` maps a page number to a list of exceptions returned, in
    order, before the page is served normally.
    """

    def __init__(self, total: int, name: str = "posts", paginated: bool = True,
                 failures: Optional[Dict[int, List[BaseException]]] = None):
        self.name = name
        self.total = total
        self.paginated = paginated
        self.items = [{"id": str(i), "title": f"Item {i}"} for i in range(1, total + 1)]
        self.failures = failures or {}

    def __call__(self, call: RecordedCall) -> Any:
        page = call.page
        limit = int(call.params.get("limit", 25))
        pending = self.failures.get(page)
        if pending:
            return pending.pop(0)

        start = (page - 1) * limit
        response: Dict[str, Any] = {
            "data": self.items[start:start + limit],
            "meta": {"endpoint": self.name},
        }
        if self.paginated:
            last_page = max(1, -(-self.total // limit))
            response["pagination"] = {
                "current_page": page,
                "per_page": limit,
                "total": self.total,
                "last_page": last_page,
                "has_more_pages": page < last_page,
            }
        return response


class RecordingSleep:
    """Stand-in for asyncio.sleep that returns immediately."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def fake_transport_factory():
    return FakeTransport


@pytest.fixture
def paged_resource_factory():
    return PagedResource


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retry_policy(recording_sleep: RecordingSleep) -> RetryPolicy:
    """Default retry bounds, no real waiting and no jitter."""
    return RetryPolicy(sleep=recording_sleep, random_source=lambda: 0.0)


@pytest.fixture
def make_client(retry_policy: RetryPolicy):
    """Builds a Creeble client around a FakeTransport."""
    def factory(handler: Callable[[RecordedCall], Any], **kwargs: Any) -> Creeble:
        transport = FakeTransport(handler)
        return Creeble("napi_test", transport=transport, retry_policy=retry_policy, **kwargs)
    return factory


@pytest.fixture
def mock_http_client():
    """Builds an httpx.AsyncClient whose requests are answered by ``handler``."""
    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return factory


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch, tmp_path):
    """Keeps real CREEBLE_* variables and stray .env files out of tests."""
    for name in ("API_KEY", "BASE_URL", "TIMEOUT_MS", "MAX_RETRIES", "BASE_DELAY_MS",
                 "MAX_DELAY_MS", "LOG_LEVEL", "LOG_FILE", "LOG_FORMAT", "ENABLE_CACHE", "CACHE_TTL"):
        monkeypatch.delenv(f"CREEBLE_{name}", raising=False)
    monkeypatch.chdir(tmp_path)

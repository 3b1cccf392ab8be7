"""Domain Events related to API calls, retries and traversals."""

from dataclasses import dataclass, field
import time
from typing import Callable, Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class RetryScheduled(DomainEvent):
    """A failed call is about to be retried after a delay."""
    context: str
    attempt_number: int  # 1-based number of the attempt that failed
    max_attempts: int
    delay_ms: int
    error_kind: str
    error_message: str
    status_code: Optional[int] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class PageFetched(DomainEvent):
    """A page of a collection was received."""
    resource: str
    page: int
    item_count: int
    last_page: Optional[int] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class StrategySelected(DomainEvent):
    """The auto-select traversal picked a strategy after probing."""
    resource: str
    strategy: str
    total: int
    last_page: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class ConcurrentFallbackTriggered(DomainEvent):
    """A batch failed; the traversal restarts sequentially from page 1."""
    resource: str
    failed_pages: list
    reason: str
    timestamp: float = field(default_factory=time.time)


EventHook = Callable[[DomainEvent], None]

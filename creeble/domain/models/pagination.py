"""Domain models describing how a full collection should be traversed."""

import enum
from dataclasses import dataclass
from typing import Optional

from .common import DEFAULT_PAGE_SIZE, clamp_page_size

DEFAULT_CONCURRENCY = 3
# Collections with at most this many pages are always fetched sequentially
SMALL_COLLECTION_PAGES = 3


class Strategy(str, enum.Enum):
    """Traversal strategies understood by the pagination engine."""
    SEQUENTIAL = "sequential"
    CONCURRENT = "concurrent"
    AUTO = "auto"


@dataclass(frozen=True)
class PaginationOptions:
    """Options for ``PaginationEngine.collect_all``."""
    strategy: Strategy = Strategy.SEQUENTIAL
    concurrency: int = DEFAULT_CONCURRENCY
    page_size: int = DEFAULT_PAGE_SIZE
    max_items: Optional[int] = None
    prefer_concurrent: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "strategy", Strategy(self.strategy))
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.max_items is not None and self.max_items < 0:
            raise ValueError(f"max_items must be >= 0, got {self.max_items}")
        object.__setattr__(self, "page_size", clamp_page_size(self.page_size))

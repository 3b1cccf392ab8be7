"""Defines common Value Objects used across the client.

These objects describe queries, page envelopes and pagination metadata, the
shapes that flow between the collection facade, the pagination engine and the
page fetcher.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, NewType, Optional, Tuple

# === Core Value Objects ===

ResourceName = NewType("ResourceName", str)   # Published collection name, e.g. 'blog-posts'
ItemId = NewType("ItemId", str)               # Identifier of a single item
ApiKey = NewType("ApiKey", str)               # 'napi_...' key sent in X-API-Key

Item = Dict[str, Any]                         # Opaque record; shape is consumer-defined

# Largest page the server will return, regardless of the requested limit
MAX_PAGE_SIZE = 25
DEFAULT_PAGE_SIZE = 25

SORT_DIRECTIONS = ("asc", "desc")


@dataclass(frozen=True)
class Query:
    """Immutable description of one list request.

    Built by the collection facade from caller arguments and rendered into
    wire parameters by ``to_params``.
    """
    filters: Mapping[str, Any] = field(default_factory=dict)
    sort: Optional[Tuple[str, str]] = None
    page: Optional[int] = None
    limit: Optional[int] = None
    fields: Optional[Tuple[str, ...]] = None
    find_by: Optional[Tuple[str, Any]] = None
    search: Optional[str] = None

    def __post_init__(self) -> None:
        if self.sort is not None and self.sort[1] not in SORT_DIRECTIONS:
            raise ValueError(f"Sort direction must be one of {SORT_DIRECTIONS}, got '{self.sort[1]}'")
        # Freeze the filters so a caller mutating its dict cannot alter the query
        object.__setattr__(self, "filters", dict(self.filters))
        if self.fields is not None:
            object.__setattr__(self, "fields", tuple(self.fields))

    def with_page(self, page: int, limit: int) -> "Query":
        """Returns a copy targeting a specific page."""
        return replace(self, page=page, limit=limit)

    def with_fields(self, *fields: str) -> "Query":
        return replace(self, fields=tuple(fields))

    def to_params(self) -> Dict[str, Any]:
        """Renders the query into request parameters.

        Filters are copied first so that explicit paging/sorting arguments
        take precedence over same-named filter keys.
        """
        params: Dict[str, Any] = {key: value for key, value in self.filters.items() if value is not None}
        if self.sort is not None:
            params["sort"], params["order"] = self.sort
        if self.fields:
            params["fields"] = ",".join(self.fields)
        if self.find_by is not None:
            params["find_by"] = f"{self.find_by[0]}:{self.find_by[1]}"
        if self.search is not None:
            params["search"] = self.search
        if self.page is not None:
            params["page"] = self.page
        if self.limit is not None:
            params["limit"] = self.limit
        return params


@dataclass(frozen=True)
class PaginationMeta:
    """Server-reported pagination state for one page."""
    current_page: int
    per_page: int
    total: int
    last_page: int
    has_more_pages: bool
    next_page: Optional[int]
    prev_page: Optional[int]
    is_last_page: bool

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "PaginationMeta":
        """Parses a ``pagination`` block.

        Accepts either ``last_page`` or the older ``total_pages`` key. Derived
        flags the server leaves out are computed so the invariants hold:
        ``has_more_pages == current_page < last_page``, ``next_page`` set iff
        there are more pages, ``is_last_page == not has_more_pages``.
        """
        current_page = max(1, int(raw.get("current_page") or 1))
        per_page = max(1, int(raw.get("per_page") or DEFAULT_PAGE_SIZE))
        total = max(0, int(raw.get("total") or 0))
        last_page = raw.get("last_page", raw.get("total_pages"))
        if last_page is None:
            last_page = max(1, -(-total // per_page))
        last_page = max(1, int(last_page))

        has_more = raw.get("has_more_pages")
        if has_more is None:
            has_more = current_page < last_page
        has_more = bool(has_more)

        next_page = raw.get("next_page")
        if has_more and next_page is None:
            next_page = current_page + 1
        if not has_more:
            next_page = None

        prev_page = raw.get("prev_page")
        if prev_page is None and current_page > 1:
            prev_page = current_page - 1

        return cls(
            current_page=current_page,
            per_page=per_page,
            total=total,
            last_page=last_page,
            has_more_pages=has_more,
            next_page=int(next_page) if next_page is not None else None,
            prev_page=int(prev_page) if prev_page is not None else None,
            is_last_page=not has_more,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_page": self.current_page,
            "per_page": self.per_page,
            "total": self.total,
            "last_page": self.last_page,
            "has_more_pages": self.has_more_pages,
            "next_page": self.next_page,
            "prev_page": self.prev_page,
            "is_last_page": self.is_last_page,
        }


@dataclass(frozen=True)
class ResponseMeta:
    """Optional ``meta`` block of a response."""
    endpoint: Optional[str] = None
    request_id: Optional[str] = None
    response_time_ms: Optional[float] = None


@dataclass
class PageEnvelope:
    """One server response normalized to items plus pagination metadata."""
    items: List[Item]
    pagination: Optional[PaginationMeta] = None
    meta: Optional[ResponseMeta] = None

    @property
    def is_paginated(self) -> bool:
        return self.pagination is not None

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class RetryAttempt:
    """Record of one failed attempt that is about to be retried."""
    attempt_index: int
    error: BaseException
    delay_ms: int


def clamp_page_size(page_size: int) -> int:
    """Clamps a requested page size to the server-side maximum."""
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")
    return min(page_size, MAX_PAGE_SIZE)

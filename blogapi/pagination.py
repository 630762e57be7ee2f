"""
Shared pagination and sort normalisation for every list endpoint.

Out-of-range input is clamped rather than rejected: ``page`` below 1
becomes 1, ``limit`` is forced into ``[1, MAX_PAGE_SIZE]``, and unknown sort
columns or directions fall back to ``created_at`` / ``desc``.
"""
import math
from dataclasses import dataclass
from typing import Iterable

from blogapi.config import settings

DEFAULT_SORT_BY = "created_at"
DEFAULT_SORT_ORDER = "desc"
SORT_ORDERS: frozenset[str] = frozenset({"asc", "desc"})


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class SortSpec:
    sort_by: str
    sort_order: str

    @property
    def descending(self) -> bool:
        return self.sort_order == "desc"


def _parse_int(value) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_page(page=None, limit=None) -> PageRequest:
    parsed_page = _parse_int(page) or 1
    parsed_limit = _parse_int(limit) or settings.DEFAULT_PAGE_SIZE
    return PageRequest(
        page=max(1, parsed_page),
        limit=min(settings.MAX_PAGE_SIZE, max(1, parsed_limit)),
    )


def resolve_sort(
    sort_by: str | None,
    sort_order: str | None,
    allowed: Iterable[str],
    default: str = DEFAULT_SORT_BY,
) -> SortSpec:
    """Validate *sort_by* against the caller's allow-list."""
    column = sort_by if sort_by in frozenset(allowed) else default
    order = sort_order.lower() if isinstance(sort_order, str) else ""
    if order not in SORT_ORDERS:
        order = DEFAULT_SORT_ORDER
    return SortSpec(sort_by=column, sort_order=order)


def build_pagination(page: int, limit: int, total: int) -> dict:
    total_pages = math.ceil(total / limit) if total > 0 else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


@dataclass
class Page:
    """A slice of results plus the metadata of the envelope it is served in."""

    items: list
    pagination: dict

    @classmethod
    def build(cls, items: list, request: PageRequest, total: int) -> "Page":
        return cls(items=items, pagination=build_pagination(request.page, request.limit, total))

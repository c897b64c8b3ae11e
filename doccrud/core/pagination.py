"""Offset pagination calculus. Page numbering starts from 1."""
import math
from collections.abc import Mapping, Sequence
from typing import Any, TypeVar

from doccrud.schemas.pagination import OffsetPagination, Page, PaginatedSet

T = TypeVar('T')

DEFAULT_PAGE_SIZE = 50


def _as_pagination(pagination: OffsetPagination | Mapping[str, Any] | None) -> OffsetPagination | None:
    if pagination is None or isinstance(pagination, OffsetPagination):
        return pagination
    return OffsetPagination.model_validate(pagination)


def calculate_limit(
    pagination: OffsetPagination | Mapping[str, Any] | None = None,
    default_page_size: int = DEFAULT_PAGE_SIZE,
) -> Page:
    """
    Normalize a page request into page, limit and offset.

    Missing or non-positive pages become 1; missing, zero or negative page
    sizes become the default page size.
    """
    request = _as_pagination(pagination)
    page = request.page if request else None
    if not page or page < 1:
        page = 1
    page_size = request.page_size if request else None
    if not page_size or page_size < 0:
        page_size = default_page_size
    return Page(page=page, limit=page_size, offset=(page - 1) * page_size)


def calculate_total_pages(total: int, page_size: int) -> int:
    if not total or not page_size:
        return 0
    return math.ceil(total / page_size)


def result_set(data: Sequence[T], page: Page, total: int) -> PaginatedSet[T]:
    """Wrap one page of data with its pagination metadata."""
    return PaginatedSet(
        data=list(data),
        page=page.page,
        page_size=page.limit,
        total=total,
        total_pages=calculate_total_pages(total, page.limit),
    )


def limit_offset(data: Sequence[T], page: Page) -> list[T]:
    """Slice an in-memory sequence down to the requested page."""
    return list(data[page.offset:page.page * page.limit])

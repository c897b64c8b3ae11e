from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar('T')


class OffsetPagination(BaseModel):
    """Page request; invalid values are normalized by calculate_limit."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)
    page: int | None = None
    page_size: int | None = None


class Page(BaseModel):
    model_config = ConfigDict(frozen=True)
    page: int = Field(ge=1)
    limit: int = Field(ge=0)
    offset: int = Field(ge=0)


class PaginatedSet(BaseModel, Generic[T]):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)
    data: list[T]
    page: int
    page_size: int
    total: int
    total_pages: int

"""Pydantic literal shapes and schema descriptors."""
from doccrud.schemas.document import Document, DocumentSchema, get_document, get_document_from_row
from doccrud.schemas.filtering import (
    Aggregate,
    FilterCondition,
    FilterCriteria,
    FilterGroup,
    FilterOperator,
    Group,
    GroupCondition,
    GroupOperation,
    Sort,
    SortCondition,
    SortOrder,
)
from doccrud.schemas.pagination import OffsetPagination, Page, PaginatedSet

__all__ = [
    "Aggregate",
    "Document",
    "DocumentSchema",
    "FilterCondition",
    "FilterCriteria",
    "FilterGroup",
    "FilterOperator",
    "Group",
    "GroupCondition",
    "GroupOperation",
    "OffsetPagination",
    "Page",
    "PaginatedSet",
    "Sort",
    "SortCondition",
    "SortOrder",
    "get_document",
    "get_document_from_row",
]

"""Backend-agnostic document CRUD over async SQLAlchemy."""
from doccrud.core.errors_mapper import ErrorsMapper, get_errors_mapper
from doccrud.core.exceptions import DbError
from doccrud.core.pagination import calculate_limit, result_set
from doccrud.db import CollectionDatabase, DatabaseClient, SQLDatabase
from doccrud.filters import Condition, Filter, sort_by
from doccrud.repositories import CollectionRepository, DocumentRepository, SQLRepository
from doccrud.schemas import DocumentSchema, OffsetPagination, PaginatedSet

__version__ = "0.1.0"

__all__ = [
    "CollectionDatabase",
    "CollectionRepository",
    "Condition",
    "DatabaseClient",
    "DbError",
    "DocumentRepository",
    "DocumentSchema",
    "ErrorsMapper",
    "Filter",
    "OffsetPagination",
    "PaginatedSet",
    "SQLDatabase",
    "SQLRepository",
    "calculate_limit",
    "get_errors_mapper",
    "result_set",
    "sort_by",
]

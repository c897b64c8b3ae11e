from doccrud.repositories.base import DocumentRepository
from doccrud.repositories.collection_repository import CollectionRepository
from doccrud.repositories.sql_repository import SQLRepository

__all__ = ["CollectionRepository", "DocumentRepository", "SQLRepository"]

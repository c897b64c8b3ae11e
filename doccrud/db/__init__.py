"""Database clients."""
from doccrud.db.base import DatabaseClient
from doccrud.db.collection import CollectionDatabase
from doccrud.db.sql import SQLDatabase

__all__ = ["CollectionDatabase", "DatabaseClient", "SQLDatabase"]

"""Document-collection backend: each document is stored whole in a JSON column."""
from sqlalchemy import JSON, Column, String, Table

from doccrud.config.settings import Settings
from doccrud.db.base import DatabaseClient
from doccrud.filters.criteria import validate_field_name
from doccrud.schemas.document import DocumentSchema

DOC_COLUMN = "doc"


class CollectionDatabase(DatabaseClient):
    """
    Schema-less collections on top of a JSON-capable SQL engine.

    A collection is a table with the identity column and a ``doc`` JSON
    column; fields are addressed through JSON path extraction.
    """

    @staticmethod
    def _url_from_settings(settings: Settings) -> str:
        return settings.collection_database_url or settings.database_url

    def _build_table(self, schema: DocumentSchema) -> Table:
        return Table(
            schema.name,
            self._metadata,
            Column(schema.id, String(255), primary_key=True),
            Column(DOC_COLUMN, JSON, nullable=False),
        )

    def json_path(self, field: str) -> str:
        """SQL expression extracting a (possibly dotted) field from the document."""
        path = validate_field_name(field)
        if self.dialect_name == "postgresql":
            keys = ", ".join(f"'{key}'" for key in path.split("."))
            return f"json_extract_path_text({DOC_COLUMN}, {keys})"
        return f"json_extract({DOC_COLUMN}, '$.{path}')"

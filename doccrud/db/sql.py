"""Relational backend: one column per declared document property."""
from sqlalchemy import JSON, Boolean, Column, Float, Integer, String, Table, Text, UniqueConstraint
from sqlalchemy.types import TypeEngine

from doccrud.db.base import DatabaseClient
from doccrud.schemas.document import DocumentSchema

COLUMN_TYPES: dict[str, type[TypeEngine]] = {
    "string": Text,
    "integer": Integer,
    "number": Float,
    "boolean": Boolean,
    "object": JSON,
    "array": JSON,
}


class SQLDatabase(DatabaseClient):
    """Table-per-schema client."""

    def _build_table(self, schema: DocumentSchema) -> Table:
        if not schema.properties:
            raise ValueError(f"Schema {schema.name!r} declares no properties")

        columns: list[Column] = []
        for prop in schema.properties:
            if prop == schema.id:
                if schema.generated_id:
                    columns.append(Column(prop, Integer, primary_key=True, autoincrement=True))
                else:
                    columns.append(Column(prop, String(255), primary_key=True, autoincrement=False))
                continue
            column_type = COLUMN_TYPES.get(schema.property_type(prop) or "", Text)
            columns.append(Column(prop, column_type(), nullable=True))

        constraints = [
            UniqueConstraint(*index, name=f"uq_{schema.name}_{'_'.join(index)}")
            for index in schema.unique
        ]
        return Table(schema.name, self._metadata, *columns, *constraints)

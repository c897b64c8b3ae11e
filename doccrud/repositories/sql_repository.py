"""Repository over ``SQLDatabase``: documents are table rows."""
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import Select, insert, select, update
from sqlalchemy.engine import Result
from sqlalchemy.ext.asyncio import AsyncSession

from doccrud.core.exceptions import NoIdProvidedError, UnsupportedFilterOperationError
from doccrud.db.sql import SQLDatabase
from doccrud.filters.criteria import to_text_clause, validate_field_name
from doccrud.repositories.base import DocumentRepository, FilterLike, PaginationLike, SortLike
from doccrud.schemas.document import Document
from doccrud.schemas.filtering import FilterCriteria, GroupCondition
from doccrud.schemas.pagination import PaginatedSet


class SQLRepository(DocumentRepository[SQLDatabase]):
    """
    CRUD over a table with one column per declared property.

    Fields outside the table columns are rejected, as are dotted paths.
    Values not backed by a column are dropped on write.
    """

    def _field(self, name: str) -> str:
        validate_field_name(name)
        if name not in self._table.c:
            raise UnsupportedFilterOperationError(details={"field": name, "collection": self._schema.name})
        return self._db.quote(name)

    def _select(self) -> Select:
        return select(self._table)

    def _materialize(self, result: Result) -> list[Document]:
        return [dict(row) for row in result.mappings()]

    def _row(self, document: Document) -> dict[str, Any]:
        columns = self._table.c
        return {key: value for key, value in document.items() if key in columns}

    async def _insert(self, session: AsyncSession, document: Document) -> Any:
        row = self._row(document)
        if row.get(self._id) is None:
            if not self._schema.generated_id:
                raise NoIdProvidedError()
            row.pop(self._id, None)

        result = await session.execute(insert(self._table).values(row))
        if self._id in row:
            return row[self._id]
        return result.inserted_primary_key[0]

    async def _patch(self, session: AsyncSession, id: Any, document: Document, existing: Document) -> None:
        values = {key: value for key, value in self._row(document).items() if key != self._id}
        if not values:
            return
        table = self._table
        await session.execute(update(table).where(table.c[self._id] == id).values(values))

    async def search_documents_by_criteria(
        self,
        session: AsyncSession,
        criteria: FilterLike,
        pagination: PaginationLike | None = None,
        sort: SortLike | None = None,
    ) -> PaginatedSet[Document]:
        return await self.filter_documents_by_criteria(session, criteria, pagination, sort)

    async def group_by_documents(
        self,
        session: AsyncSession,
        group_by: Sequence[GroupCondition | Mapping[str, Any]],
        filter: FilterLike | None = None,
    ) -> list[Document]:
        group, columns = self._group(group_by)
        criteria = self._criteria(filter)
        where = f" WHERE {criteria.statement}" if criteria.statement.strip() else ""
        statement = FilterCriteria(
            statement=f"SELECT {columns} FROM {self._db.quote(self._table.name)}{where}{self._group_keys(group)}",
            variables=criteria.variables,
        )
        result = await session.execute(to_text_clause(statement))
        return [dict(row) for row in result.mappings()]

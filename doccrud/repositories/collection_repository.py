"""Repository over ``CollectionDatabase``: documents live in a JSON column."""
import json
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import Select, insert, literal_column, select, update
from sqlalchemy.engine import Result
from sqlalchemy.ext.asyncio import AsyncSession

from doccrud.core.exceptions import NoIdProvidedError
from doccrud.core.ids import generate_id
from doccrud.core.pagination import calculate_limit, result_set
from doccrud.db.collection import DOC_COLUMN, CollectionDatabase
from doccrud.filters.criteria import to_text_clause
from doccrud.repositories.base import DocumentRepository, FilterLike, PaginationLike, SortLike
from doccrud.schemas.document import Document, get_document_from_row
from doccrud.schemas.filtering import FilterCriteria, GroupCondition
from doccrud.schemas.pagination import PaginatedSet


class CollectionRepository(DocumentRepository[CollectionDatabase]):
    """
    CRUD over a schema-less collection.

    Documents are stored and returned whole. Searches project the
    declared properties as columns and rebuild documents from the
    labels the cursor reports.
    """

    def _field(self, name: str) -> str:
        if name == self._id:
            return self._db.quote(name)
        return self._db.json_path(name)

    def _select(self) -> Select:
        return select(self._table.c[DOC_COLUMN])

    def _materialize(self, result: Result) -> list[Document]:
        return [row[0] for row in result]

    async def _insert(self, session: AsyncSession, document: Document) -> Any:
        document = dict(document)
        id = document.get(self._id)
        if id is None:
            if not self._schema.generated_id:
                raise NoIdProvidedError()
            id = generate_id(self._schema.alias)
            document[self._id] = id

        await session.execute(insert(self._table).values({self._id: id, DOC_COLUMN: document}))
        return id

    async def _patch(self, session: AsyncSession, id: Any, document: Document, existing: Document) -> None:
        # Merge-patch: stored keys missing from the document survive
        table = self._table
        await session.execute(
            update(table).where(table.c[self._id] == id).values({DOC_COLUMN: {**existing, **document}})
        )

    def _decode(self, prop: str, value: Any) -> Any:
        """Restore JSON types lost by path extraction."""
        if value is None:
            return None
        prop_type = self._schema.property_type(prop)
        if prop_type in ("object", "array") and isinstance(value, str):
            return json.loads(value)
        if prop_type == "boolean":
            if isinstance(value, str):
                return value == "true"
            return bool(value)
        return value

    def _result_set(self, result: Result) -> list[Document]:
        properties = set(self._schema.properties)
        labels = [label for label in result.keys() if label in properties]
        return [
            {label: self._decode(label, row[label]) for label in labels}
            for row in result.mappings()
        ]

    async def search_documents_by_criteria(
        self,
        session: AsyncSession,
        criteria: FilterLike,
        pagination: PaginationLike | None = None,
        sort: SortLike | None = None,
    ) -> PaginatedSet[Document]:
        if not self._schema.properties:
            return await self.filter_documents_by_criteria(session, criteria, pagination, sort)

        criteria = self._criteria(criteria)
        page = calculate_limit(pagination, self._db.default_page_size)
        columns = [literal_column(self._field(prop)).label(prop) for prop in self._schema.properties]
        statement = (
            self._where(select(*columns).select_from(self._table), criteria)
            .order_by(self._order_by(sort))
            .offset(page.offset)
            .limit(page.limit)
        )
        documents = self._result_set(await session.execute(statement))
        total = await self._count(session, criteria)
        return result_set(documents, page, total)

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
        labels = [condition.label for condition in group]
        return [get_document_from_row(labels, row) for row in result]

"""
Backend-independent CRUD contract for one document schema.

Both implementations take the session handed out by
``DatabaseClient.using_session`` as first argument of every operation.
Orchestration (uniqueness guards, read-merge-write updates, id filters,
pagination) lives here; statement shapes and result materialization are
left to the backend repositories.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, Table, TextClause, delete, func, select, text
from sqlalchemy.engine import Result
from sqlalchemy.ext.asyncio import AsyncSession

from doccrud.core.exceptions import (
    DocumentNotFoundError,
    DuplicatedDocumentError,
    NoCriteriaProvidedError,
    NoIdProvidedError,
    NothingWasDeletedError,
)
from doccrud.core.ids import generate_var_name
from doccrud.core.logging import get_logger
from doccrud.core.pagination import calculate_limit, result_set
from doccrud.db.base import DatabaseClient
from doccrud.filters.criteria import (
    Condition,
    Filter,
    compile_filter,
    props_to_criteria,
    to_text_clause,
    validate_field_name,
)
from doccrud.filters.group import grouping_keys, parse_group
from doccrud.filters.sort import parse_sort
from doccrud.schemas.document import Document, DocumentSchema
from doccrud.schemas.filtering import (
    FilterCondition,
    FilterCriteria,
    FilterGroup,
    Group,
    GroupCondition,
    GroupOperation,
    SortCondition,
    SortOrder,
)
from doccrud.schemas.pagination import OffsetPagination, PaginatedSet

logger = get_logger(__name__)

DB = TypeVar('DB', bound=DatabaseClient)

FilterLike = FilterCriteria | FilterGroup | FilterCondition | Mapping[str, Any]
PaginationLike = OffsetPagination | Mapping[str, Any]
SortLike = Sequence[SortCondition | Mapping[str, Any]]
Join = GroupOperation | str

FETCH_ALL_PAGE_SIZE = 100


class DocumentRepository(ABC, Generic[DB]):
    """Abstract CRUD repository bound to a client and a document schema."""

    def __init__(self, db: DB, schema: DocumentSchema):
        self._db = db
        self._schema = schema
        self._id = schema.id

    @property
    def db(self) -> DB:
        return self._db

    @property
    def schema(self) -> DocumentSchema:
        return self._schema

    @property
    def id_field(self) -> str:
        return self._id

    @property
    def _table(self) -> Table:
        return self._db.get_collection(self._schema)

    def to_string(self, document: Document | None = None) -> str:
        if not document:
            return "unknown"
        if self._schema.to_string:
            return self._schema.to_string(document)
        return str(document.get(self._id))

    # -- backend hooks -------------------------------------------------

    @abstractmethod
    def _field(self, name: str) -> str:
        """SQL expression addressing a document field."""

    @abstractmethod
    def _select(self) -> Select:
        """Statement selecting whole documents."""

    @abstractmethod
    def _materialize(self, result: Result) -> list[Document]:
        """Documents from a result produced by ``_select``."""

    @abstractmethod
    async def _insert(self, session: AsyncSession, document: Document) -> Any:
        """Insert a document and return its identity."""

    @abstractmethod
    async def _patch(self, session: AsyncSession, id: Any, document: Document, existing: Document) -> None:
        """Write the merged document over the stored one."""

    @abstractmethod
    async def search_documents_by_criteria(
        self,
        session: AsyncSession,
        criteria: FilterLike,
        pagination: PaginationLike | None = None,
        sort: SortLike | None = None,
    ) -> PaginatedSet[Document]:
        ...

    @abstractmethod
    async def group_by_documents(
        self,
        session: AsyncSession,
        group_by: Sequence[GroupCondition | Mapping[str, Any]],
        filter: FilterLike | None = None,
    ) -> list[Document]:
        ...

    # -- statement helpers ---------------------------------------------

    def compile(self, filter: FilterGroup | FilterCondition | Mapping[str, Any] | None) -> FilterCriteria:
        """Compile a filter tree with this backend's field rendering."""
        return compile_filter(filter, self._field)

    def _criteria(self, filter: FilterLike | None, join: Join = GroupOperation.AND) -> FilterCriteria:
        if filter is None:
            return FilterCriteria()
        if isinstance(filter, FilterCriteria):
            return filter
        if isinstance(filter, (FilterGroup, FilterCondition)):
            return self.compile(filter)
        if "level" in filter or "items" in filter or filter.keys() >= {"field", "operation"}:
            return self.compile(filter)
        return props_to_criteria(filter, join, self._field)

    @staticmethod
    def _where(statement: Select, criteria: FilterCriteria) -> Select:
        if not criteria.statement.strip():
            return statement
        return statement.where(to_text_clause(criteria))

    def _order_by(self, sort: SortLike | None) -> TextClause:
        conditions = parse_sort(sort) or (SortCondition(field=self._id, order=SortOrder.ASC),)
        return text(", ".join(
            f"{self._field(condition.field)} {'ASC' if condition.order is SortOrder.ASC else 'DESC'}"
            for condition in conditions
        ))

    def _search_criteria(self, props: Mapping[str, Any], join: Join) -> FilterCriteria:
        """Case-insensitive LIKE criteria using the client's collation."""
        collation = validate_field_name(self._db.ci_collation)
        operation = GroupOperation(join.upper() if isinstance(join, str) else join)
        statements: list[str] = []
        variables: dict[str, Any] = {}
        for prop, value in props.items():
            var_name = generate_var_name()
            statements.append(f"({self._field(prop)} COLLATE {collation} LIKE :{var_name})")
            variables[var_name] = value
        if not statements:
            return FilterCriteria()
        return FilterCriteria(
            statement=f"({f' {operation.value} '.join(statements)})",
            variables=variables,
        )

    def _group(self, group_by: Sequence[GroupCondition | Mapping[str, Any]]) -> tuple[Group, str]:
        """Validated group and its SELECT column list."""
        group = parse_group(group_by)
        columns = ", ".join(
            f"{condition.aggregate.value}({self._field(condition.field)}) AS {self._db.quote(condition.label)}"
            if condition.aggregate
            else f"{self._field(condition.field)} AS {self._db.quote(condition.label)}"
            for condition in group
        )
        return group, columns

    def _group_keys(self, group: Group) -> str:
        keys = [self._field(condition.field) for condition in grouping_keys(group)]
        return f" GROUP BY {', '.join(keys)}" if keys else ""

    def _unique_criteria(self, document: Document) -> list[dict[str, Any]]:
        # NULL never collides on a unique index
        return [
            {prop: document.get(prop) for prop in index}
            for index in self._schema.unique
            if all(document.get(prop) is not None for prop in index)
        ]

    # -- operations ----------------------------------------------------

    async def init(self, session: AsyncSession) -> None:
        """Create the backing table/collection when missing. Idempotent."""
        await self._db.create_collection(session, self._schema)

    async def create_document(self, session: AsyncSession, values: Mapping[str, Any]) -> Document:
        """
        Create a document from partial values.

        Every unique index is probed before the insert; a match raises
        DuplicatedDocumentError and nothing is written.
        """
        document = self._schema.build(values)
        for criteria in self._unique_criteria(document):
            await self.exists_document(session, criteria)

        id = await self._insert(session, document)
        logger.debug("document_created", collection=self._schema.name, id=id)
        return await self.get_document(session, id)

    async def create_document_if_not_exists(self, session: AsyncSession, values: Mapping[str, Any]) -> Document:
        """Return the first document matching a unique index, or create a new one."""
        document = self._schema.build(values)
        for criteria in self._unique_criteria(document):
            existing = await self.find_document(session, criteria)
            if existing is not None:
                return existing

        id = await self._insert(session, document)
        logger.debug("document_created", collection=self._schema.name, id=id)
        return await self.get_document(session, id)

    async def update_document(self, session: AsyncSession, id: Any, values: Mapping[str, Any]) -> Document:
        """
        Merge values into the stored document and re-run the schema factory.

        Incoming values win over stored ones, stored values win over
        factory defaults, and the identity never changes.
        """
        existing = await self.get_document(session, id)
        document = self._schema.build({**existing, **values})
        document[self._id] = existing[self._id]

        await self._patch(session, id, document, existing)
        logger.debug("document_updated", collection=self._schema.name, id=id)
        return await self.get_document(session, id)

    async def delete_document(self, session: AsyncSession, id: Any) -> Any:
        table = self._table
        result = await session.execute(delete(table).where(table.c[self._id] == id))
        if result.rowcount < 1:
            raise NothingWasDeletedError(details={"id": id})
        logger.debug("document_deleted", collection=self._schema.name, id=id)
        return id

    async def delete_all(self, session: AsyncSession, filter: FilterLike | None = None) -> int:
        """Delete every document, or those matching the filter. Returns the count."""
        statement = delete(self._table)
        criteria = self._criteria(filter)
        if criteria.statement.strip():
            statement = statement.where(to_text_clause(criteria))
        result = await session.execute(statement)
        return result.rowcount

    async def get_document(self, session: AsyncSession, id: Any) -> Document:
        if id is None:
            raise NoIdProvidedError()
        result = await session.execute(self._select().where(self._table.c[self._id] == id))
        documents = self._materialize(result)
        if not documents:
            raise DocumentNotFoundError(details={"id": id})
        return documents[0]

    async def find_document(
        self,
        session: AsyncSession,
        props: FilterLike | None,
        join: Join = GroupOperation.AND,
    ) -> Document | None:
        """Return the first matching document, or None."""
        if props is None:
            raise NoCriteriaProvidedError()
        statement = self._where(self._select(), self._criteria(props, join)).limit(1)
        documents = self._materialize(await session.execute(statement))
        return documents[0] if documents else None

    async def get_document_by_criteria(
        self,
        session: AsyncSession,
        props: FilterLike | None,
        join: Join = GroupOperation.AND,
    ) -> Document:
        document = await self.find_document(session, props, join)
        if document is None:
            raise DocumentNotFoundError()
        return document

    async def get_documents(
        self,
        session: AsyncSession,
        pagination: PaginationLike | None = None,
        sort: SortLike | None = None,
    ) -> PaginatedSet[Document]:
        return await self.filter_documents_by_criteria(session, None, pagination, sort)

    async def filter_documents_by_criteria(
        self,
        session: AsyncSession,
        filter: FilterLike | None,
        pagination: PaginationLike | None = None,
        sort: SortLike | None = None,
    ) -> PaginatedSet[Document]:
        """
        Page through documents matching a filter.

        ``filter`` is a filter tree, a props mapping, or an already compiled
        FilterCriteria (which must use this repository's field rendering,
        see ``compile``). The total comes from a separate count query.
        """
        criteria = self._criteria(filter)
        page = calculate_limit(pagination, self._db.default_page_size)
        statement = (
            self._where(self._select(), criteria)
            .order_by(self._order_by(sort))
            .offset(page.offset)
            .limit(page.limit)
        )
        documents = self._materialize(await session.execute(statement))
        total = await self._count(session, criteria)
        return result_set(documents, page, total)

    async def filter_documents(
        self,
        session: AsyncSession,
        props: Mapping[str, Any] | None,
        join: Join = GroupOperation.AND,
        pagination: PaginationLike | None = None,
        sort: SortLike | None = None,
    ) -> PaginatedSet[Document]:
        """Page through documents whose fields equal the given props. Case sensitive."""
        if props is None:
            raise NoCriteriaProvidedError()
        criteria = props_to_criteria(props, join, self._field)
        return await self.filter_documents_by_criteria(session, criteria, pagination, sort)

    async def filter_documents_by_ids(
        self,
        session: AsyncSession,
        ids: Sequence[Any] | None,
        pagination: PaginationLike | None = None,
        sort: SortLike | None = None,
        filter: FilterLike | None = None,
    ) -> PaginatedSet[Document]:
        if ids is None:
            raise NoCriteriaProvidedError()
        if not ids:
            return result_set([], calculate_limit(pagination, self._db.default_page_size), 0)

        by_ids = self.compile(Filter.or_(*(Condition.eq(self._id, id) for id in ids)))
        extra = self._criteria(filter)
        if extra.statement.strip():
            by_ids = FilterCriteria(
                statement=f"({by_ids.statement} AND {extra.statement})",
                variables={**by_ids.variables, **extra.variables},
            )
        return await self.filter_documents_by_criteria(session, by_ids, pagination, sort)

    async def search_documents(
        self,
        session: AsyncSession,
        props: Mapping[str, Any] | None,
        join: Join = GroupOperation.AND,
        pagination: PaginationLike | None = None,
        sort: SortLike | None = None,
    ) -> PaginatedSet[Document]:
        """Case-insensitive LIKE search; prop values are patterns (use % wildcards)."""
        if props is None:
            raise NoCriteriaProvidedError()
        criteria = self._search_criteria(props, join)
        return await self.search_documents_by_criteria(session, criteria, pagination, sort)

    async def exists_document(self, session: AsyncSession, props: FilterLike | None) -> None:
        """Guard: raises DuplicatedDocumentError when a matching document exists."""
        if props is None:
            raise NoCriteriaProvidedError()
        if await self._count(session, self._criteria(props)) > 0:
            raise DuplicatedDocumentError(details={"collection": self._schema.name})

    async def get_count(
        self,
        session: AsyncSession,
        props: FilterLike | None,
        join: Join = GroupOperation.AND,
    ) -> int:
        if props is None:
            raise NoCriteriaProvidedError()
        return await self._count(session, self._criteria(props, join))

    async def get_total(self, session: AsyncSession) -> int:
        return await self._count(session, FilterCriteria())

    async def _count(self, session: AsyncSession, criteria: FilterCriteria) -> int:
        statement = self._where(select(func.count()).select_from(self._table), criteria)
        return (await session.execute(statement)).scalar_one()

    async def fetch_all(
        self,
        session: AsyncSession,
        sort: SortLike | None = None,
        filter: tuple[Mapping[str, Any], Join] | None = None,
    ) -> list[Document]:
        """Collect every page of ``get_documents`` (or ``filter_documents`` for (props, join))."""
        documents: list[Document] = []
        page = 1
        total_pages = 1
        while page <= total_pages:
            pagination = OffsetPagination(page=page, page_size=FETCH_ALL_PAGE_SIZE)
            if filter is not None:
                props, join = filter
                data = await self.filter_documents(session, props, join, pagination, sort)
            else:
                data = await self.get_documents(session, pagination, sort)
            documents.extend(data.data)
            total_pages = data.total_pages
            page += 1
        return documents

    async def call_stored_procedure(
        self,
        session: AsyncSession,
        procedure_name: str,
        variables: Sequence[Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Call a stored procedure (MySQL-family backends).

        Positional values are bound to generated session variables
        (``SET @p1 = ...``) which are then passed to ``CALL``.
        """
        validate_field_name(procedure_name)
        params: list[str] = []
        for value in variables or ():
            name = generate_var_name("p")
            await session.execute(text(f"SET @{name} = :value"), {"value": value})
            params.append(f"@{name}")
        params_stmt = f"({', '.join(params)})" if variables is not None else ""
        result = await session.execute(text(f"CALL {procedure_name}{params_stmt}"))
        if not result.returns_rows:
            return []
        return [dict(row) for row in result.mappings()]

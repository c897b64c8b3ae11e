"""Tests specific to the relational (table-per-schema) backend."""
import re

import pytest
import pytest_asyncio

from doccrud.core.exceptions import (
    DbError,
    DuplicatedDocumentError,
    NoIdProvidedError,
    UnsupportedFilterOperationError,
)
from doccrud.db import SQLDatabase
from doccrud.filters import Condition
from doccrud.repositories import SQLRepository
from doccrud.schemas import DocumentSchema

from tests.conftest import EMPLOYEE_SCHEMA, EMPLOYEES, OFFICE_SCHEMA


class RecordingResult:
    returns_rows = False


class RecordingSession:
    """Stand-in session that records executed statements."""

    def __init__(self):
        self.statements = []

    async def execute(self, statement, params=None):
        self.statements.append((str(statement), params))
        return RecordingResult()


@pytest_asyncio.fixture
async def employees(sql_db):
    repository = SQLRepository(sql_db, EMPLOYEE_SCHEMA)
    await sql_db.using_session(repository.init)
    return repository


@pytest_asyncio.fixture
async def offices(sql_db):
    repository = SQLRepository(sql_db, OFFICE_SCHEMA)
    await sql_db.using_session(repository.init)
    return repository


class TestGeneratedIds:
    """Test backend-assigned identities."""

    @pytest.mark.asyncio
    async def test_autoincrement_ids(self, offices):
        async def create(session):
            first = await offices.create_document(session, {"name": "HQ", "places": 40})
            second = await offices.create_document(session, {"name": "Annex"})
            return first, second

        first, second = await offices.db.using_session(create)

        assert first == {"_id": 1, "name": "HQ", "places": 40}
        assert second == {"_id": 2, "name": "Annex", "places": 0}

    @pytest.mark.asyncio
    async def test_missing_id_without_generation(self, sql_db):
        schema = DocumentSchema(name="plain", validation={"properties": {"name": {"type": "string"}}})
        repository = SQLRepository(sql_db, schema)
        await sql_db.using_session(repository.init)

        with pytest.raises(NoIdProvidedError):
            await sql_db.using_session(lambda s: repository.create_document(s, {"name": "x"}))


class TestConstraints:
    """Test database-level constraints surface as friendly errors."""

    @pytest.mark.asyncio
    async def test_unique_constraint_on_update(self, employees):
        async def seed(session):
            return [await employees.create_document(session, values) for values in EMPLOYEES[:2]]

        alice, bob = await employees.db.using_session(seed)

        with pytest.raises(DuplicatedDocumentError) as exc_info:
            await employees.db.using_session(
                lambda s: employees.update_document(s, bob["_id"], {"email": alice["email"]})
            )

        assert exc_info.value.__cause__ is not None

    @pytest.mark.asyncio
    async def test_schema_without_properties(self, sql_db):
        repository = SQLRepository(sql_db, DocumentSchema(name="shapeless"))

        with pytest.raises(DbError) as exc_info:
            await sql_db.using_session(repository.init)

        assert "declares no properties" in exc_info.value.message


class TestFieldValidation:
    """Test fields outside the table are refused before reaching SQL."""

    @pytest.mark.asyncio
    async def test_unknown_column(self, employees):
        with pytest.raises(UnsupportedFilterOperationError) as exc_info:
            await employees.db.using_session(lambda s: employees.filter_documents(s, {"salary": 1}))

        assert exc_info.value.details["field"] == "salary"

    @pytest.mark.asyncio
    async def test_dotted_path(self, employees):
        with pytest.raises(UnsupportedFilterOperationError):
            await employees.db.using_session(
                lambda s: employees.filter_documents_by_criteria(s, Condition.eq("tags.first", "a"))
            )

    @pytest.mark.asyncio
    async def test_injection_in_sort(self, employees):
        with pytest.raises(UnsupportedFilterOperationError):
            await employees.db.using_session(
                lambda s: employees.get_documents(s, sort=[{"field": "name; DROP TABLE employees"}])
            )


class TestCallStoredProcedure:
    """Test stored procedure invocation through session variables."""

    @pytest.mark.asyncio
    async def test_positional_values_bound_to_session_variables(self):
        repository = SQLRepository(SQLDatabase("sqlite+aiosqlite://"), EMPLOYEE_SCHEMA)
        session = RecordingSession()

        rows = await repository.call_stored_procedure(session, "add_places", [5, "Paris"])

        assert rows == []
        assert len(session.statements) == 3
        (first, first_params), (second, second_params), (call, _) = session.statements
        first_var = re.fullmatch(r"SET @(p\d+) = :value", first).group(1)
        second_var = re.fullmatch(r"SET @(p\d+) = :value", second).group(1)
        assert first_params == {"value": 5}
        assert second_params == {"value": "Paris"}
        assert first_var != second_var
        assert call == f"CALL add_places(@{first_var}, @{second_var})"

    @pytest.mark.asyncio
    async def test_without_values(self):
        repository = SQLRepository(SQLDatabase("sqlite+aiosqlite://"), EMPLOYEE_SCHEMA)
        session = RecordingSession()

        await repository.call_stored_procedure(session, "reports.refresh")

        assert session.statements == [("CALL reports.refresh", None)]

    @pytest.mark.asyncio
    async def test_empty_values(self):
        repository = SQLRepository(SQLDatabase("sqlite+aiosqlite://"), EMPLOYEE_SCHEMA)
        session = RecordingSession()

        await repository.call_stored_procedure(session, "refresh", [])

        assert session.statements == [("CALL refresh()", None)]

    @pytest.mark.asyncio
    async def test_invalid_procedure_name(self):
        repository = SQLRepository(SQLDatabase("sqlite+aiosqlite://"), EMPLOYEE_SCHEMA)

        with pytest.raises(UnsupportedFilterOperationError):
            await repository.call_stored_procedure(RecordingSession(), "refresh(); DROP TABLE x")

"""
Shared fixtures: file-backed SQLite clients and sample schemas.

Provides:
- Employee schema (string ids with alias prefix, unique email)
- Office schema (backend-generated ids)
- Connected relational and collection clients per test
"""
from collections.abc import Mapping
from typing import Any

import pytest
import pytest_asyncio

from doccrud.core.ids import generate_id
from doccrud.db import CollectionDatabase, SQLDatabase
from doccrud.repositories import CollectionRepository, SQLRepository
from doccrud.schemas import DocumentSchema
from doccrud.schemas.document import get_document

EMPLOYEE_VALIDATION = {
    "schema": {
        "type": "object",
        "properties": {
            "_id": {"type": "string"},
            "name": {"type": "string"},
            "email": {"type": "string"},
            "city": {"type": ["string", "null"]},
            "places": {"type": "integer"},
            "fired": {"type": "boolean"},
            "tags": {"type": "array"},
        },
    },
}

OFFICE_VALIDATION = {
    "properties": {
        "_id": {"type": "integer"},
        "name": {"type": "string"},
        "places": {"type": "integer"},
    },
}


def employee_document(values: Mapping[str, Any]) -> dict[str, Any]:
    defaults = {"_id": generate_id("emp"), "city": None, "places": 0, "fired": False, "tags": []}
    return get_document(EMPLOYEE_VALIDATION["schema"]["properties"], values, defaults)


def office_document(values: Mapping[str, Any]) -> dict[str, Any]:
    return get_document(OFFICE_VALIDATION["properties"], values, {"places": 0})


EMPLOYEE_SCHEMA = DocumentSchema(
    name="employees",
    alias="emp",
    unique=[["email"]],
    get_document=employee_document,
    to_string=lambda document: f"{document['name']} <{document['email']}>",
    validation=EMPLOYEE_VALIDATION,
)

OFFICE_SCHEMA = DocumentSchema(
    name="offices",
    alias="off",
    generated_id=True,
    get_document=office_document,
    validation=OFFICE_VALIDATION,
)

EMPLOYEES = [
    {"name": "Alice Martin", "email": "alice@example.com", "city": "Paris", "places": 10, "tags": ["a"]},
    {"name": "Bob Stone", "email": "bob@example.com", "city": "Rome", "places": 30},
    {"name": "Carla Alison", "email": "carla@example.com", "city": "Paris", "places": 20, "fired": True},
]


@pytest.fixture
def employee_schema() -> DocumentSchema:
    return EMPLOYEE_SCHEMA


@pytest.fixture
def office_schema() -> DocumentSchema:
    return OFFICE_SCHEMA


@pytest_asyncio.fixture
async def sql_db(tmp_path):
    db = SQLDatabase(f"sqlite+aiosqlite:///{tmp_path / 'tables.db'}")
    await db.connect()
    yield db
    if db.is_connected:
        await db.disconnect()


@pytest_asyncio.fixture
async def collection_db(tmp_path):
    db = CollectionDatabase(f"sqlite+aiosqlite:///{tmp_path / 'collections.db'}")
    await db.connect()
    yield db
    if db.is_connected:
        await db.disconnect()


@pytest_asyncio.fixture(params=["sql", "collection"])
async def employees(request, sql_db, collection_db):
    """Employee repository on each backend, with its table created."""
    if request.param == "sql":
        repository = SQLRepository(sql_db, EMPLOYEE_SCHEMA)
    else:
        repository = CollectionRepository(collection_db, EMPLOYEE_SCHEMA)
    await repository.db.using_session(repository.init)
    return repository


@pytest_asyncio.fixture
async def seeded(employees):
    """Employee repository holding the three sample employees."""
    async def seed(session):
        return [await employees.create_document(session, values) for values in EMPLOYEES]

    created = await employees.db.using_session(seed)
    return employees, created

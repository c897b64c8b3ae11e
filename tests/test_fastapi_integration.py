"""Tests for wiring a client into a FastAPI application."""
from contextlib import asynccontextmanager

import pytest
from fastapi import Depends, FastAPI, HTTPException
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from doccrud.db import SQLDatabase
from doccrud.integrations.fastapi import get_db, get_session, get_transacted_session, with_database
from doccrud.repositories import SQLRepository

from tests.conftest import EMPLOYEE_SCHEMA, EMPLOYEES


def create_app(db: SQLDatabase) -> FastAPI:
    employees = SQLRepository(db, EMPLOYEE_SCHEMA)
    events = []

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await db.using_session(employees.init)
        events.append("startup")
        yield
        events.append("shutdown")

    app = FastAPI(lifespan=lifespan)
    app.state.events = events
    with_database(app, db)

    @app.post("/employees")
    async def create(values: dict, session: AsyncSession = Depends(get_transacted_session)):
        return await employees.create_document(session, values)

    @app.get("/employees/{id}")
    async def read(id: str, session: AsyncSession = Depends(get_session)):
        return await employees.get_document(session, id)

    @app.get("/employees")
    async def listing(page: int = 1, page_size: int = 50, session: AsyncSession = Depends(get_session)):
        result = await employees.get_documents(session, {"page": page, "pageSize": page_size})
        return result.model_dump(by_alias=True)

    @app.get("/teapot")
    async def teapot(session: AsyncSession = Depends(get_session)):
        raise HTTPException(status_code=418, detail="short and stout")

    @app.get("/health")
    async def health(client: SQLDatabase = Depends(get_db)):
        await client.healthcheck()
        return {"status": "ok"}

    return app


@pytest.fixture
def db(tmp_path):
    return SQLDatabase(f"sqlite+aiosqlite:///{tmp_path / 'app.db'}")


@pytest.fixture
def client(db):
    app = create_app(db)
    with TestClient(app) as test_client:
        yield test_client


class TestLifespan:
    """Test connection handling around the app lifespan."""

    def test_connects_and_disconnects(self, db):
        app = create_app(db)

        assert app.state.db is db
        assert app.state.connect_db == db.connect
        with TestClient(app):
            assert db.is_connected
            assert app.state.events == ["startup"]

        assert not db.is_connected
        assert app.state.events == ["startup", "shutdown"]

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}


class TestRoutes:
    """Test sessions and error responses in request handlers."""

    def test_create_and_read(self, client):
        created = client.post("/employees", json=EMPLOYEES[0])

        assert created.status_code == 200
        document = created.json()
        assert document["email"] == EMPLOYEES[0]["email"]

        response = client.get(f"/employees/{document['_id']}")

        assert response.status_code == 200
        assert response.json() == document

    def test_listing(self, client):
        for values in EMPLOYEES:
            client.post("/employees", json=values)

        body = client.get("/employees", params={"page": 2, "page_size": 2}).json()

        assert body["page"] == 2
        assert body["pageSize"] == 2
        assert body["total"] == 3
        assert body["totalPages"] == 2
        assert len(body["data"]) == 1

    def test_duplicate_returns_conflict(self, client):
        client.post("/employees", json=EMPLOYEES[0])

        response = client.post("/employees", json=EMPLOYEES[0])

        assert response.status_code == 409
        assert response.json()["errors"][0]["code"] == "ERRDB007"

    def test_missing_returns_not_found(self, client):
        response = client.get("/employees/emp_missing")

        assert response.status_code == 404
        error = response.json()["errors"][0]
        assert error["code"] == "ERRDB011"
        assert error["details"] == {"id": "emp_missing"}

    def test_http_exceptions_pass_through(self, client):
        response = client.get("/teapot")

        assert response.status_code == 418
        assert response.json() == {"detail": "short and stout"}

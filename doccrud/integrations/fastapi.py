"""
FastAPI wiring: client lifecycle, per-request sessions and error responses.

    app = FastAPI()
    with_database(app, SQLDatabase.from_settings())

    @app.get("/employees/{id}")
    async def read(id: str, session: AsyncSession = Depends(get_session)):
        return await employees.get_document(session, id)
"""
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from doccrud.core.exceptions import (
    ConnectionNotOpenError,
    DbError,
    DbInstructionError,
    DocumentNotFoundError,
    DuplicatedDocumentError,
    DuplicatedSortingConditionError,
    ForbiddenError,
    NoCriteriaProvidedError,
    NoIdProvidedError,
    NotFoundError,
    NothingWasDeletedError,
    NotImplementedDbError,
    UnsupportedFilterOperationError,
)
from doccrud.core.logging import get_logger
from doccrud.db.base import DatabaseClient

logger = get_logger(__name__)

ERROR_STATUS_MAP: dict[type[DbError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    DocumentNotFoundError: status.HTTP_404_NOT_FOUND,
    NothingWasDeletedError: status.HTTP_404_NOT_FOUND,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    DuplicatedDocumentError: status.HTTP_409_CONFLICT,
    NoIdProvidedError: status.HTTP_400_BAD_REQUEST,
    NoCriteriaProvidedError: status.HTTP_400_BAD_REQUEST,
    UnsupportedFilterOperationError: status.HTTP_400_BAD_REQUEST,
    DuplicatedSortingConditionError: status.HTTP_400_BAD_REQUEST,
    DbInstructionError: status.HTTP_400_BAD_REQUEST,
    NotImplementedDbError: status.HTTP_501_NOT_IMPLEMENTED,
    ConnectionNotOpenError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def db_error_handler(request: Request, exc: DbError) -> JSONResponse:
    status_code = ERROR_STATUS_MAP.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)

    return JSONResponse(
        status_code=status_code,
        content={
            "data": None,
            "meta": {
                "request_id": getattr(request.state, "request_id", None),
                "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            },
            "errors": [exc.to_dict() | {"details": exc.details}],
        },
    )


def with_database(app: FastAPI, db: DatabaseClient, *, register_error_handler: bool = True) -> FastAPI:
    """
    Attach a client to the app.

    The client connects on startup and disconnects on shutdown, wrapping
    any lifespan the app already has. ``app.state.db`` holds the client
    and ``app.state.connect_db`` the connect coroutine.
    """
    app.state.db = db
    app.state.connect_db = db.connect
    inner_lifespan = app.router.lifespan_context

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[object]:
        await db.connect()
        try:
            async with inner_lifespan(app) as state:
                yield state
        finally:
            await db.disconnect()

    app.router.lifespan_context = lifespan
    if register_error_handler:
        app.add_exception_handler(DbError, db_error_handler)
    return app


def _session_dependency(transacted: bool) -> Callable[[Request], AsyncIterator[AsyncSession]]:
    async def dependency(request: Request) -> AsyncIterator[AsyncSession]:
        db: DatabaseClient = request.app.state.db
        async with db.session(transacted=transacted, passthrough=(HTTPException,)) as session:
            yield session
    return dependency


get_session = _session_dependency(transacted=False)
get_transacted_session = _session_dependency(transacted=True)


def get_db(request: Request) -> DatabaseClient:
    return request.app.state.db


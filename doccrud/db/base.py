"""Connection lifecycle and session/transaction scoping shared by both backends."""
import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, Self, TypeVar

from sqlalchemy import MetaData, Table, event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from doccrud.config.settings import Settings, get_settings
from doccrud.core.errors_mapper import ErrorsMapper, get_errors_mapper
from doccrud.core.exceptions import (
    ConnectionAlreadyOpenError,
    ConnectionNotOpenError,
    DbError,
)
from doccrud.core.logging import get_logger
from doccrud.core.pagination import DEFAULT_PAGE_SIZE
from doccrud.schemas.document import DocumentSchema

logger = get_logger(__name__)

T = TypeVar('T')


def engine_options_from_settings(url: str, settings: Settings) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.echo}
    # SQLite pools do not take sizing arguments
    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_timeout=settings.pool_timeout,
            pool_recycle=settings.pool_recycle,
            pool_pre_ping=settings.pool_pre_ping,
        )
    return options


class DatabaseClient(ABC):
    """
    Owns an async engine and hands out exclusively-owned sessions.

    Sessions are only valid inside ``session()`` / ``using_session()``;
    they are closed on every exit path and must not be retained.
    """

    def __init__(
        self,
        url: str,
        *,
        ci_collation: str = "NOCASE",
        errors_mapper: ErrorsMapper | None = None,
        engine_options: dict[str, Any] | None = None,
        timezone: str | None = None,
        healthcheck_timeout: float = 2.0,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._url = url
        self._ci_collation = ci_collation
        self._errors_mapper = errors_mapper or get_errors_mapper()
        self._engine_options = engine_options or {}
        self._timezone = timezone
        self._healthcheck_timeout = healthcheck_timeout
        self._default_page_size = default_page_size
        self._engine: AsyncEngine | None = None
        self._session_maker: async_sessionmaker[AsyncSession] | None = None
        self._autocommit_session_maker: async_sessionmaker[AsyncSession] | None = None
        self._metadata = MetaData()
        self._collections: dict[str, Table] = {}

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> Self:
        settings = settings or get_settings()
        url = cls._url_from_settings(settings)
        return cls(
            url,
            ci_collation=settings.ci_collation,
            engine_options=engine_options_from_settings(url, settings),
            timezone=settings.timezone,
            healthcheck_timeout=settings.healthcheck_timeout,
            default_page_size=settings.default_page_size,
            **kwargs,
        )

    @staticmethod
    def _url_from_settings(settings: Settings) -> str:
        return settings.database_url

    @property
    def provider(self) -> AsyncEngine | None:
        return self._engine

    @property
    def ci_collation(self) -> str:
        return self._ci_collation

    @property
    def default_page_size(self) -> int:
        return self._default_page_size

    @property
    def errors_mapper(self) -> ErrorsMapper:
        return self._errors_mapper

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @property
    def dialect_name(self) -> str:
        return self._require_engine().dialect.name

    def _require_engine(self) -> AsyncEngine:
        if self._engine is None:
            raise ConnectionNotOpenError()
        return self._engine

    async def connect(self) -> None:
        if self._engine is not None:
            raise ConnectionAlreadyOpenError()

        engine = create_async_engine(self._url, **self._engine_options)
        if self._timezone and engine.dialect.name == "mysql":
            self._set_time_zone_on_connect(engine, self._timezone)

        self._engine = engine
        self._session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        self._autocommit_session_maker = async_sessionmaker(
            engine.execution_options(isolation_level="AUTOCOMMIT"),
            class_=AsyncSession,
            expire_on_commit=False,
        )
        try:
            await self.healthcheck()
        except Exception:
            await self._reset()
            raise
        logger.info("database_connected", backend=type(self).__name__, dialect=engine.dialect.name)

    @staticmethod
    def _set_time_zone_on_connect(engine: AsyncEngine, timezone: str) -> None:
        @event.listens_for(engine.sync_engine, "connect")
        def _set_time_zone(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("SET time_zone = %s", (timezone,))
            cursor.close()

    async def disconnect(self) -> None:
        if self._engine is None:
            raise ConnectionNotOpenError()
        await self._reset()
        logger.info("database_disconnected", backend=type(self).__name__)

    async def _reset(self) -> None:
        engine, self._engine = self._engine, None
        self._session_maker = None
        self._autocommit_session_maker = None
        if engine is not None:
            await engine.dispose()

    async def healthcheck(self) -> None:
        """Run ``SELECT 1``; raises ConnectionNotOpenError when disconnected."""
        engine = self._require_engine()
        async with asyncio.timeout(self._healthcheck_timeout):
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))

    @asynccontextmanager
    async def session(
        self,
        transacted: bool = False,
        passthrough: tuple[type[BaseException], ...] = (),
    ) -> AsyncIterator[AsyncSession]:
        """
        Provide a session for one unit of work.

        Transacted sessions commit on success and roll back on failure;
        other sessions run in autocommit mode. Errors outside the DbError
        taxonomy (and outside ``passthrough``) are normalized through the
        errors mapper.
        """
        self._require_engine()
        session_maker = self._session_maker if transacted else self._autocommit_session_maker

        async with session_maker() as session:
            try:
                if transacted:
                    await session.begin()
                yield session
                if transacted:
                    await session.commit()
            except Exception as exc:
                if transacted:
                    await self._rollback_quietly(session)
                if isinstance(exc, (DbError, *passthrough)):
                    raise
                raise self._errors_mapper.normalize(exc) from exc

    async def using_session(
        self,
        callback: Callable[[AsyncSession], Awaitable[T]],
        transacted: bool = False,
    ) -> T:
        async with self.session(transacted=transacted) as session:
            return await callback(session)

    async def _rollback_quietly(self, session: AsyncSession) -> None:
        try:
            await session.rollback()
        except Exception as rollback_error:
            logger.warning("session_rollback_failed", error=str(rollback_error))
        else:
            logger.debug("session_rolled_back")

    def quote(self, name: str) -> str:
        """Quote an identifier for the connected dialect."""
        return self._require_engine().dialect.identifier_preparer.quote(name)

    def get_collection(self, schema: DocumentSchema) -> Table:
        """Table object backing a schema, built once per client."""
        table = self._collections.get(schema.name)
        if table is None:
            table = self._build_table(schema)
            self._collections[schema.name] = table
        return table

    @abstractmethod
    def _build_table(self, schema: DocumentSchema) -> Table:
        ...

    async def create_collection(self, session: AsyncSession, schema: DocumentSchema) -> None:
        """Create the backing table if it does not exist yet."""
        self._require_engine()
        table = self.get_collection(schema)
        await session.run_sync(lambda sync_session: table.create(sync_session.connection(), checkfirst=True))
        logger.info("collection_ensured", collection=schema.name)

    async def drop_collection(self, session: AsyncSession, schema: DocumentSchema) -> None:
        self._require_engine()
        table = self.get_collection(schema)
        await session.run_sync(lambda sync_session: table.drop(sync_session.connection(), checkfirst=True))
        logger.info("collection_dropped", collection=schema.name)

"""Translation of raw backend errors into the DbError taxonomy."""
from functools import lru_cache

from doccrud.core.exceptions import DbError, DbInstructionError, DuplicatedDocumentError
from doccrud.core.logging import get_logger

logger = get_logger(__name__)

ErrorsMapperKey = str | BaseException


def _message_of(error: ErrorsMapperKey) -> str:
    if isinstance(error, DbError):
        return error.message
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error)


class ErrorsMapper:
    """
    Registry of user-friendly errors keyed by lowercase message fragments.

    Keys are matched against the lowercased message of a raw error, first
    as an exact match and then as a substring, in registration order. The
    registry has no locking: populate it at startup and treat it as
    read-mostly afterwards.
    """

    def __init__(self) -> None:
        self._registry: dict[str, DbError] = {}
        self._default: DbError | None = None

    def __contains__(self, key: ErrorsMapperKey) -> bool:
        return _message_of(key).lower() in self._registry

    def __len__(self) -> int:
        return len(self._registry)

    def register(self, key: ErrorsMapperKey, error: DbError) -> None:
        """
        Map a raw error (or a fragment of its message) to a friendly error.

        Args:
            key: Message fragment, or an exception whose message is used
            error: Error returned when the fragment is found
        """
        search_key = _message_of(key).lower()
        if not search_key:
            raise ValueError("Errors mapper key cannot be empty")
        self._registry[search_key] = error

    def unregister(self, key: ErrorsMapperKey) -> None:
        self._registry.pop(_message_of(key).lower(), None)

    def set_default_message(self, error: DbError | None) -> None:
        """Set the error returned when nothing registered matches (None clears it)."""
        self._default = error

    def normalize(self, error: ErrorsMapperKey) -> DbError:
        """
        Return the friendly DbError for a raw error.

        Resolution order: exact key, first contained key, default message,
        the error itself when it is already a DbError, and finally a DbError
        with an empty code wrapping the raw message.
        """
        message = _message_of(error)
        search_message = message.lower()

        if search_message:
            found = self._registry.get(search_message)
            if found is None:
                found = next(
                    (mapped for key, mapped in self._registry.items() if key in search_message),
                    None,
                )
            if found is not None:
                return found.clone()

        if self._default is not None:
            logger.debug("errors_mapper_default", raw_message=message)
            return self._default.clone()

        if isinstance(error, DbError):
            return error

        logger.debug("errors_mapper_unmapped", raw_message=message)
        return DbError(code="", message=message)


def register_db_user_friendly_exceptions(errors_mapper: ErrorsMapper) -> None:
    errors_mapper.register(
        "Document contains a field value that is not unique but required to be",
        DuplicatedDocumentError(),
    )
    errors_mapper.register("Duplicate entry", DuplicatedDocumentError())
    errors_mapper.register("UNIQUE constraint failed", DuplicatedDocumentError())
    errors_mapper.register("duplicate key value violates unique constraint", DuplicatedDocumentError())
    errors_mapper.register("You have an error in your SQL syntax", DbInstructionError())
    errors_mapper.register("PARSING FAILED", DbInstructionError())
    errors_mapper.register("syntax error", DbInstructionError())


@lru_cache
def get_errors_mapper() -> ErrorsMapper:
    """Get the shared errors mapper with the built-in friendly errors registered."""
    errors_mapper = ErrorsMapper()
    register_db_user_friendly_exceptions(errors_mapper)
    return errors_mapper

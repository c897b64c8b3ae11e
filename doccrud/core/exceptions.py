class DbError(Exception):
    default_code = ""
    default_message = "Something went wrong!"

    def __init__(self, code: str | None = None, message: str | None = None, details: dict | None = None):
        self.code = self.default_code if code is None else code
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def clone(self) -> "DbError":
        return type(self)(self.code, self.message, dict(self.details))

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ForbiddenError(DbError):
    default_code = "ERRDB001"
    default_message = "Forbidden"


class NotFoundError(DbError):
    default_code = "ERRDB002"
    default_message = "Not Found"


class InternalServerError(DbError):
    default_code = "ERRDB003"
    default_message = "Sorry, something went wrong"


class NotImplementedDbError(DbError):
    default_code = "ERRDB004"
    default_message = "Not implemented"


class ConnectionNotOpenError(DbError):
    default_code = "ERRDB005"
    default_message = "Database connection is not opened"


class ConnectionAlreadyOpenError(DbError):
    default_code = "ERRDB006"
    default_message = "Database connection is already opened"


class DuplicatedDocumentError(DbError):
    default_code = "ERRDB007"
    default_message = "Duplicated document"


class NothingWasDeletedError(DbError):
    default_code = "ERRDB008"
    default_message = "Nothing was deleted"


class NoIdProvidedError(DbError):
    default_code = "ERRDB009"
    default_message = "Cannot get document without [id]"


class NoCriteriaProvidedError(DbError):
    default_code = "ERRDB010"
    default_message = "Cannot get document without criteria"


class DocumentNotFoundError(DbError):
    default_code = "ERRDB011"
    default_message = "Document not found"


class DbInstructionError(DbError):
    default_code = "ERRDB012"
    default_message = "Fail to receive data"


class UnsupportedFilterOperationError(DbError):
    default_code = "ERRDB013"
    default_message = "Unsupported filter operation"


class DuplicatedSortingConditionError(DbError):
    default_code = "ERRDB014"
    default_message = "Duplicated sorting condition"


class DbAnyError(DbError):
    default_code = "ERRDB015"
    default_message = "Something went wrong!"

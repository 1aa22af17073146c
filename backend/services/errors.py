class TableError(Exception):
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(TableError):
    kind = "not_found"


class Conflict(TableError):
    kind = "conflict"


class InvalidArgument(TableError):
    kind = "invalid_argument"


class StorageUnavailable(TableError):
    kind = "storage_unavailable"

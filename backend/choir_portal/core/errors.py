"""Error taxonomy shared by the storage gateway, the library services and the API layer."""


class LibraryError(Exception):
    """Base error: carries an HTTP-equivalent status and a caller-safe message."""

    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(LibraryError):
    """Role insufficient. 401 for anonymous callers, 403 for authenticated ones."""

    status_code = 403
    default_message = "Unauthorized"

    def __init__(self, message: str | None = None, anonymous: bool = False) -> None:
        super().__init__(message or ("Not authenticated" if anonymous else None))
        if anonymous:
            self.status_code = 401


class BadRequest(LibraryError):
    status_code = 400
    default_message = "Bad request"


class NotFound(LibraryError):
    status_code = 404
    default_message = "Not found"


class Conflict(LibraryError):
    status_code = 409
    default_message = "Conflict"


class AccessDenied(LibraryError):
    """The object store refused our credentials or permissions."""

    default_message = "Storage access denied"


class Transient(LibraryError):
    """Network or backend hiccup. Safe for the caller to retry; never retried here."""

    default_message = "Storage temporarily unavailable"


class Internal(LibraryError):
    default_message = "Internal error"

"""Domain errors raised by services and mapped to HTTP responses in ``dochub.main``."""


class DocHubError(Exception):
    """Base class for errors reported to API clients."""

    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Unauthenticated(DocHubError):
    """Missing, malformed or expired credentials."""

    status_code = 401
    default_detail = "Could not validate credentials"


class Forbidden(DocHubError):
    """Valid identity without the ownership or role the operation needs."""

    status_code = 403
    default_detail = "You don't have permission to access this resource"


class NotFound(DocHubError):
    status_code = 404
    default_detail = "Resource not found"


class ValidationFailed(DocHubError):
    status_code = 400
    default_detail = "Invalid request"


class Conflict(DocHubError):
    """Unique value already taken, such as a username at registration."""

    status_code = 409
    default_detail = "Resource already exists"


class NotEmpty(DocHubError):
    """Non-recursive delete of a folder that still has visible content."""

    status_code = 400
    default_detail = "Folder is not empty"


class StorageFailure(DocHubError):
    """Reading or writing file content on the blob store failed."""

    status_code = 500
    default_detail = "File storage error"

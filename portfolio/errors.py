"""
Error taxonomy for the blog backend.
Each error carries the HTTP status it is reported with.
"""


class BlogError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BlogError):
    """A required field is missing or blank."""

    status_code = 400


class ConflictError(BlogError):
    """The slug cannot be generated or is already taken."""

    status_code = 409


class NotFoundError(BlogError):
    status_code = 404


class StorageUnavailableError(BlogError):
    """The posts document cannot be written."""

    status_code = 503

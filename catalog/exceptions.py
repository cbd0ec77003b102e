"""
Domain exceptions raised by the catalog services.

Each exception carries the HTTP status the API layer answers with.
"""


class CatalogError(Exception):
    """Base class for catalog domain errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(CatalogError):
    """Referenced book or review id does not resolve."""

    status_code = 404


class ForbiddenError(CatalogError):
    """Acting user does not own the book or review."""

    status_code = 403


class ConflictError(CatalogError):
    """The acting user already reviewed this book."""

    status_code = 400
